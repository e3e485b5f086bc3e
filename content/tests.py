import base64
import os
import subprocess
import sys
from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.conf import settings
from django.contrib import admin
from django.contrib.auth.hashers import check_password, make_password
from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.db import IntegrityError, OperationalError
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from click2leads.env import EnvSettings
from content import urls as content_urls
from content.admin import ContentEntryAdmin
from content.authentication import verify_admin
from content.defaults import DEFAULT_CONTENT
from content.exceptions import StorageFailure
from content.handlers import GENERIC_SERVER_ERROR
from content.models import AdminCredential, ContentEntry
from content.signals import initialize_store
from content.store import ContentStore

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
HERO_KEYS = {d.key for d in DEFAULT_CONTENT if d.section == "hero"}


def basic_auth(username, password):
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


def reset_admin(username="admin", password="admin123"):
    AdminCredential.objects.all().delete()
    return AdminCredential.objects.create(username=username, password_hash=make_password(password))


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ContentStoreTests(TestCase):
    def setUp(self):
        cache.clear()
        self.store = ContentStore(
            cache_timeout=300, bootstrap_username="admin", bootstrap_password="admin123"
        )
        self.store.initialize()

    def _empty_tables(self):
        ContentEntry.objects.all().delete()
        AdminCredential.objects.all().delete()
        cache.clear()

    def test_initialize_seeds_defaults_and_bootstrap_admin(self):
        self._empty_tables()

        result = self.store.initialize()

        self.assertTrue(result.bootstrap_created)
        self.assertEqual(result.seeded_entries, len(DEFAULT_CONTENT))
        titles = [
            entry.value for entry in self.store.list_content()
            if (entry.section, entry.key) == ("hero", "title")
        ]
        self.assertEqual(titles, ["A Lead Generation Powerhouse"])

        credential = self.store.find_credential("admin")
        self.assertIsNotNone(credential)
        self.assertTrue(check_password("admin123", credential.password_hash))
        self.assertNotEqual(credential.password_hash, "admin123")

    def test_initialize_twice_creates_no_duplicates(self):
        self._empty_tables()

        self.store.initialize()
        second = self.store.initialize()

        self.assertFalse(second.bootstrap_created)
        self.assertEqual(second.seeded_entries, 0)
        self.assertEqual(AdminCredential.objects.count(), 1)
        self.assertEqual(ContentEntry.objects.count(), len(DEFAULT_CONTENT))

    def test_initialize_keeps_edited_values(self):
        self.store.upsert_content("hero", "title", "Edited headline")

        self.store.initialize()

        self.assertEqual(self.store.get_entry("hero", "title").value, "Edited headline")

    def test_bootstrap_admin_skipped_when_any_credential_exists(self):
        reset_admin(username="editor", password="Editor1!")

        result = self.store.initialize()

        self.assertFalse(result.bootstrap_created)
        self.assertIsNone(self.store.find_credential("admin"))
        self.assertEqual(AdminCredential.objects.count(), 1)

    def test_initialize_requires_migrated_tables(self):
        with patch.object(self.store, "tables_exist", return_value=False):
            with self.assertRaises(StorageFailure):
                self.store.initialize()

    def test_upsert_then_lookup_returns_value(self):
        for section, key, value in [
            ("faq", "question_1", "How fast do leads arrive?"),
            ("faq", "empty", ""),
            ("hero", "stats_spending", "€30 million"),
        ]:
            result = self.store.upsert_content(section, key, value)
            self.assertEqual(result.changes, 1)
            self.assertEqual(self.store.get_entry(section, key).value, value)

    def test_upsert_replaces_existing_row_in_place(self):
        first = self.store.upsert_content("about", "title", "About us")
        second = self.store.upsert_content("about", "title", "Who we are")

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.changes, 1)
        self.assertEqual(ContentEntry.objects.filter(section="about", key="title").count(), 1)
        self.assertEqual(self.store.get_entry("about", "title").value, "Who we are")

    def test_upsert_refreshes_timestamp(self):
        stale = timezone.now() - timedelta(days=1)
        ContentEntry.objects.filter(section="hero", key="title").update(updated_at=stale)

        self.store.upsert_content("hero", "title", "Fresh")

        self.assertGreater(self.store.get_entry("hero", "title").updated_at, stale)

    def test_upsert_recovers_from_concurrent_insert(self):
        real_update = self.store._update_value
        calls = []

        def racing_update(section, key, value):
            calls.append(value)
            # First pass misses the row another writer is about to commit.
            if len(calls) == 1:
                return 0
            return real_update(section, key, value)

        with patch.object(self.store, "_update_value", side_effect=racing_update):
            result = self.store.upsert_content("hero", "title", "Raced")

        self.assertEqual(result.changes, 1)
        self.assertEqual(len(calls), 2)
        self.assertEqual(ContentEntry.objects.filter(section="hero", key="title").count(), 1)
        self.assertEqual(self.store.get_entry("hero", "title").value, "Raced")

    def test_upsert_non_duplicate_integrity_error_is_storage_failure(self):
        # NOT NULL violation on insert; the fallback update finds no row.
        with self.assertRaises(StorageFailure) as ctx:
            self.store.upsert_content("hero", "brand_new", None)

        self.assertIsInstance(ctx.exception.__cause__, IntegrityError)
        self.assertFalse(ContentEntry.objects.filter(section="hero", key="brand_new").exists())

    def test_list_content_filters_by_section(self):
        entries = self.store.list_content("hero")

        self.assertEqual({entry.section for entry in entries}, {"hero"})
        self.assertEqual({entry.key for entry in entries}, HERO_KEYS)

    def test_list_content_keeps_insertion_order(self):
        for key in ["q3", "q1", "q2"]:
            self.store.upsert_content("faq", key, key.upper())

        self.assertEqual([entry.key for entry in self.store.list_content("faq")], ["q3", "q1", "q2"])

    def test_cached_listing_invalidated_by_upsert(self):
        self.store.list_content("hero")
        self.store.list_content()

        self.store.upsert_content("hero", "subtitle", "Partners for growth")

        section_values = {e.key: e.value for e in self.store.list_content("hero")}
        all_values = {(e.section, e.key): e.value for e in self.store.list_content()}
        self.assertEqual(section_values["subtitle"], "Partners for growth")
        self.assertEqual(all_values[("hero", "subtitle")], "Partners for growth")

    def test_missing_entry_is_none(self):
        self.assertIsNone(self.store.get_entry("hero", "does_not_exist"))

    def test_find_unknown_credential_is_none(self):
        self.assertIsNone(self.store.find_credential("nonexistent"))

    def test_update_credential_password(self):
        reset_admin()

        changes = self.store.update_credential_password("admin", "NewPass1!")

        self.assertEqual(changes, 1)
        credential = self.store.find_credential("admin")
        self.assertTrue(check_password("NewPass1!", credential.password_hash))
        self.assertFalse(check_password("admin123", credential.password_hash))

    def test_update_unknown_credential_reports_zero(self):
        self.assertEqual(self.store.update_credential_password("ghost", "NewPass1!"), 0)

    def test_database_errors_become_storage_failures(self):
        error = OperationalError("disk I/O error")
        with patch.object(self.store, "_update_value", side_effect=error):
            with self.assertRaises(StorageFailure) as ctx:
                self.store.upsert_content("hero", "title", "Unreachable")

        self.assertIs(ctx.exception.__cause__, error)

    def test_ping(self):
        self.store.ping()


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ContentApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.store = content_urls.store
        self.store.initialize()
        reset_admin()

    def authenticate(self, username="admin", password="admin123"):
        self.client.credentials(HTTP_AUTHORIZATION=basic_auth(username, password))

    def test_index_lists_endpoints(self):
        response = self.client.get(reverse("content:index"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("content", response.data["endpoints"])

    def test_health_reports_database(self):
        response = self.client.get(reverse("content:health"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "healthy")
        self.assertEqual(response.data["checks"]["database"], "healthy")

    def test_health_degraded_when_database_unreachable(self):
        with patch.object(self.store, "ping", side_effect=StorageFailure("ping failed")):
            response = self.client.get(reverse("content:health"))
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data["checks"]["database"], "unhealthy")

    def test_read_all_content_grouped_by_section(self):
        response = self.client.get(reverse("content:content"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["hero"]["title"], "A Lead Generation Powerhouse")
        self.assertIn("services", response.data["data"])

    def test_read_single_section(self):
        response = self.client.get(reverse("content:content-section", args=["hero"]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(set(response.data["data"]), HERO_KEYS)

    def test_unknown_section_is_empty(self):
        response = self.client.get(reverse("content:content-section", args=["pricing"]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"], {})

    def test_entries_filtered_by_section(self):
        response = self.client.get(reverse("content:content-entries"), {"section": "about"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({item["section"] for item in response.data["data"]}, {"about"})
        self.assertIn("updated_at", response.data["data"][0])

    def test_update_requires_credentials(self):
        payload = {"updates": [{"section": "hero", "key": "title", "value": "Nope"}]}
        response = self.client.post(reverse("content:content"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])

    def test_update_rejects_wrong_password(self):
        self.authenticate(password="wrong")
        payload = {"updates": [{"section": "hero", "key": "title", "value": "Nope"}]}
        response = self.client.post(reverse("content:content"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["message"], "Invalid credentials")

    def test_update_content(self):
        self.authenticate()
        payload = {
            "updates": [
                {"section": "hero", "key": "title", "value": "Leads on Demand"},
                {"section": "pricing", "key": "starter", "value": "£499/month"},
            ]
        }
        response = self.client.post(reverse("content:content"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(all(result["success"] for result in response.data["data"]))

        response = self.client.get(reverse("content:content"))
        self.assertEqual(response.data["data"]["hero"]["title"], "Leads on Demand")
        self.assertEqual(response.data["data"]["pricing"]["starter"], "£499/month")

    def test_update_reports_invalid_items_individually(self):
        self.authenticate()
        payload = {
            "updates": [
                {"section": "hero", "key": "title", "value": "Still applied"},
                {"section": "hero", "value": "no key"},
            ]
        }
        response = self.client.post(reverse("content:content"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        first, second = response.data["data"]
        self.assertTrue(first["success"])
        self.assertFalse(second["success"])
        self.assertEqual(second["error"], "Missing required fields")
        self.assertEqual(self.store.get_entry("hero", "title").value, "Still applied")

    def test_update_rejects_reserved_section(self):
        self.authenticate()
        payload = {"updates": [{"section": "entries", "key": "title", "value": "Hidden"}]}
        response = self.client.post(reverse("content:content"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        result = response.data["data"][0]
        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Invalid fields")
        self.assertIn("section", result["errors"])
        self.assertIsNone(self.store.get_entry("entries", "title"))

    def test_unknown_username_still_hashes_password(self):
        with patch("content.authentication.make_password") as hasher:
            self.assertIsNone(verify_admin(self.store, "nobody", "admin123"))
        hasher.assert_called_once_with("admin123")

    def test_update_without_updates_array(self):
        self.authenticate()
        response = self.client.post(reverse("content:content"), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])
        self.assertIn("updates", response.data["errors"])

    def test_update_storage_failure_reported_per_item(self):
        self.authenticate()
        payload = {"updates": [{"section": "hero", "key": "title", "value": "Lost"}]}
        with patch.object(self.store, "upsert_content", side_effect=StorageFailure("locked")):
            response = self.client.post(reverse("content:content"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["data"][0]["success"])

    def test_storage_failure_returns_generic_server_error(self):
        with patch.object(self.store, "list_content", side_effect=StorageFailure("disk I/O error")):
            response = self.client.get(reverse("content:content"))
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {"success": False, "message": GENERIC_SERVER_ERROR})

    def test_login(self):
        response = self.client.post(
            reverse("content:admin-login"),
            {"username": "admin", "password": "admin123"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["username"], "admin")

    def test_login_rejects_bad_credentials(self):
        for username, password in [("admin", "wrong"), ("nobody", "admin123")]:
            response = self.client.post(
                reverse("content:admin-login"),
                {"username": username, "password": password},
                format="json",
            )
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
            self.assertEqual(response.data["message"], "Invalid credentials")

    def test_login_requires_both_fields(self):
        response = self.client.post(reverse("content:admin-login"), {"username": "admin"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password", response.data["errors"])

    def test_change_password(self):
        self.authenticate()
        response = self.client.post(
            reverse("content:admin-change-password"),
            {"current_password": "admin123", "new_password": "NewPass1!"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Password updated successfully")

        self.client.credentials()
        login = reverse("content:admin-login")
        ok = self.client.post(login, {"username": "admin", "password": "NewPass1!"}, format="json")
        old = self.client.post(login, {"username": "admin", "password": "admin123"}, format="json")
        self.assertEqual(ok.status_code, status.HTTP_200_OK)
        self.assertEqual(old.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password_checks_current_password(self):
        self.authenticate()
        response = self.client.post(
            reverse("content:admin-change-password"),
            {"current_password": "not-it", "new_password": "NewPass1!"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["message"], "Current password is incorrect")

    def test_change_password_rejects_weak_password(self):
        self.authenticate()
        response = self.client.post(
            reverse("content:admin-change-password"),
            {"current_password": "admin123", "new_password": "password"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("new_password", response.data["errors"])

    def test_change_password_requires_credentials(self):
        response = self.client.post(
            reverse("content:admin-change-password"),
            {"current_password": "admin123", "new_password": "NewPass1!"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_contact_form(self):
        payload = {
            "name": "Jane Smith",
            "email": "jane@example.com",
            "company": "Acme Ltd",
            "message": "We'd like 500 leads a month.",
        }
        response = self.client.post(reverse("content:contact"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])

    def test_contact_form_requires_fields(self):
        response = self.client.post(reverse("content:contact"), {"email": "not-an-email"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(set(response.data["errors"]), {"name", "email", "message"})

    def test_schema_is_served(self):
        response = self.client.get(reverse("schema"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ManagementCommandTests(TestCase):
    def setUp(self):
        cache.clear()
        reset_admin()

    def test_init_content(self):
        ContentEntry.objects.all().delete()
        out = StringIO()

        call_command("init_content", stdout=out)

        self.assertIn("Content store ready", out.getvalue())
        self.assertEqual(ContentEntry.objects.count(), len(DEFAULT_CONTENT))

    def test_set_admin_password(self):
        out = StringIO()

        call_command("set_admin_password", "admin", password="Changed1!", stdout=out)

        credential = AdminCredential.objects.get(username="admin")
        self.assertTrue(check_password("Changed1!", credential.password_hash))

    def test_set_admin_password_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command("set_admin_password", "ghost", password="Changed1!")

    def test_set_admin_password_rejects_weak_password(self):
        with self.assertRaises(CommandError):
            call_command("set_admin_password", "admin", password="short")

    @override_settings(CONTENT_SEED_ON_MIGRATE=False)
    def test_post_migrate_seeding_can_be_disabled(self):
        ContentEntry.objects.all().delete()

        initialize_store(sender=None, using="default")

        self.assertEqual(ContentEntry.objects.count(), 0)

    def test_content_modules_import_cleanly_in_fresh_process(self):
        # Admin autodiscovery pulls in the store before DRF settings load.
        env = dict(os.environ, DJANGO_SETTINGS_MODULE="click2leads.settings")
        result = subprocess.run(
            [sys.executable, "-c", "import django; django.setup(); import content.admin, content.handlers"],
            cwd=settings.BASE_DIR,
            env=env,
            capture_output=True,
            text=True,
        )
        self.assertEqual(result.returncode, 0, result.stderr)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ContentEntryAdminTests(TestCase):
    def setUp(self):
        cache.clear()
        self.store = ContentStore(cache_timeout=300)
        self.store.initialize()
        self.model_admin = ContentEntryAdmin(ContentEntry, admin.site)
        self.model_admin.store = self.store
        # Prime the cached listings the admin must invalidate.
        self.store.list_content("hero")
        self.store.list_content("about")
        self.store.list_content("faq")
        self.store.list_content()

    def hero_keys(self):
        return {entry.key for entry in self.store.list_content("hero")}

    def test_edit_invalidates_section(self):
        obj = ContentEntry.objects.get(section="hero", key="title")
        obj.value = "Edited in admin"

        self.model_admin.save_model(None, obj, None, True)

        values = {entry.key: entry.value for entry in self.store.list_content("hero")}
        self.assertEqual(values["title"], "Edited in admin")

    def test_moving_entry_invalidates_old_and_new_section(self):
        obj = ContentEntry.objects.get(section="hero", key="title")
        obj.section = "faq"

        self.model_admin.save_model(None, obj, None, True)

        self.assertNotIn("title", self.hero_keys())
        faq = {entry.key: entry.value for entry in self.store.list_content("faq")}
        self.assertEqual(faq["title"], "A Lead Generation Powerhouse")
        self.assertIn(("faq", "title"), {(e.section, e.key) for e in self.store.list_content()})

    def test_delete_invalidates_section(self):
        obj = ContentEntry.objects.get(section="hero", key="title")

        self.model_admin.delete_model(None, obj)

        self.assertNotIn("title", self.hero_keys())
        self.assertNotIn(("hero", "title"), {(e.section, e.key) for e in self.store.list_content()})

    def test_bulk_delete_invalidates_every_section(self):
        queryset = ContentEntry.objects.filter(section__in=["hero", "about"])

        self.model_admin.delete_queryset(None, queryset)

        self.assertEqual(self.store.list_content("hero"), [])
        self.assertEqual(self.store.list_content("about"), [])
        self.assertEqual({e.section for e in self.store.list_content()}, {"services"})


class EnvSettingsTests(TestCase):
    def test_content_cache_disabled_without_shared_backend(self):
        env = EnvSettings(_env_file=None, REDIS_URL=None, CONTENT_CACHE_TIMEOUT=300)
        self.assertEqual(env.content_cache_timeout, 0)

    def test_content_cache_enabled_with_redis(self):
        env = EnvSettings(_env_file=None, REDIS_URL="redis://localhost:6379/1", CONTENT_CACHE_TIMEOUT=300)
        self.assertEqual(env.content_cache_timeout, 300)
