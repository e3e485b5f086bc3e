"""
Content store: section-scoped page copy plus the admin credentials that guard it.

A ``ContentStore`` is an explicit handle bound to one Django database alias.
Construct one where it is needed and pass it along (the URLconf hands the same
instance to every view); this module creates none.

Every operation is a single statement, or a single statement plus a fallback,
so the engine's per-statement atomicity is the only guarantee relied upon.
Database errors surface as ``StorageFailure``; nothing is retried.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from django.conf import settings
from django.contrib.auth.hashers import make_password
from django.core.cache import cache
from django.db import DatabaseError, IntegrityError, connections, transaction
from django.utils import timezone

from content.defaults import BOOTSTRAP_PASSWORD, BOOTSTRAP_USERNAME, DEFAULT_CONTENT, DefaultEntry
from content.exceptions import StorageFailure
from content.models import AdminCredential, ContentEntry

logger = logging.getLogger(__name__)

# Cache settings
CACHE_KEY_PREFIX = "content:"
ALL_SECTIONS = "*"
DEFAULT_CACHE_TIMEOUT = 300  # 5 minutes


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of ``upsert_content``: the row's id and how many rows changed."""

    id: int
    changes: int


@dataclass(frozen=True)
class InitializeResult:
    bootstrap_created: bool
    seeded_entries: int


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Re-raise engine failures (I/O, constraint) as ``StorageFailure``."""
    try:
        yield
    except DatabaseError as exc:
        logger.error(f"Content store {operation} failed: {exc}")
        raise StorageFailure(f"{operation} failed: {exc}") from exc


class ContentStore:
    """
    Persist and retrieve editable page copy and admin credentials.

    Args:
        using: Django database alias the store reads from and writes to
        cache_timeout: Seconds a cached section listing lives
            (default: ``settings.CONTENT_CACHE_TIMEOUT``, which is 0 unless a
            shared cache is configured); 0 disables caching
        defaults: Rows seeded by ``initialize`` when absent
        bootstrap_username: Account created when no credentials exist
            (default: ``settings.BOOTSTRAP_ADMIN_USERNAME``)
        bootstrap_password: Its initial password
            (default: ``settings.BOOTSTRAP_ADMIN_PASSWORD``)
    """

    def __init__(
        self,
        using: str = "default",
        cache_timeout: Optional[int] = None,
        defaults: Iterable[DefaultEntry] = DEFAULT_CONTENT,
        bootstrap_username: Optional[str] = None,
        bootstrap_password: Optional[str] = None,
    ):
        self.using = using
        if cache_timeout is None:
            cache_timeout = getattr(settings, "CONTENT_CACHE_TIMEOUT", DEFAULT_CACHE_TIMEOUT)
        self.cache_timeout = cache_timeout
        self.defaults = tuple(defaults)
        self.bootstrap_username = bootstrap_username or getattr(
            settings, "BOOTSTRAP_ADMIN_USERNAME", BOOTSTRAP_USERNAME
        )
        self.bootstrap_password = bootstrap_password or getattr(
            settings, "BOOTSTRAP_ADMIN_PASSWORD", BOOTSTRAP_PASSWORD
        )

    def __repr__(self) -> str:
        return f"ContentStore(using={self.using!r})"

    # -- caching -----------------------------------------------------------

    def _cache_key(self, section: Optional[str]) -> str:
        return f"{CACHE_KEY_PREFIX}{self.using}:{section or ALL_SECTIONS}"

    def invalidate(self, *sections: str) -> None:
        """Drop cached listings for the given sections and for the full listing."""
        keys = [self._cache_key(None)]
        keys.extend(self._cache_key(section) for section in sections)
        cache.delete_many(keys)

    # -- lifecycle ---------------------------------------------------------

    def tables_exist(self) -> bool:
        """Whether the migration creating the content tables has been applied."""
        with _storage_errors("table check"):
            existing = set(connections[self.using].introspection.table_names())
        return {
            ContentEntry._meta.db_table,
            AdminCredential._meta.db_table,
        } <= existing

    def initialize(self) -> InitializeResult:
        """
        Seed the bootstrap admin and the default content. Safe to call repeatedly.

        The tables themselves come from migrations (``manage.py migrate``, which
        also calls this through ``post_migrate``); this only checks they exist.

        The admin row is written only when the credential table is empty, and a
        default row only when its (section, key) is absent; existing values are
        never overwritten.

        Returns:
            InitializeResult with whether the bootstrap admin was created and how
            many default rows were inserted

        Raises:
            StorageFailure: If the tables are missing or the engine fails
        """
        if not self.tables_exist():
            raise StorageFailure("Content tables do not exist; run `manage.py migrate` first")

        bootstrap_created = self._insert_bootstrap_credential()

        manager = ContentEntry.objects.using(self.using)
        with _storage_errors("seed"):
            before = manager.count()
            manager.bulk_create(
                [ContentEntry(section=d.section, key=d.key, value=d.value) for d in self.defaults],
                ignore_conflicts=True,
            )
            seeded = manager.count() - before

        self.invalidate(*{d.section for d in self.defaults})

        if bootstrap_created:
            logger.warning(
                f"Created bootstrap admin '{self.bootstrap_username}' with the default password; "
                f"change it with `manage.py set_admin_password {self.bootstrap_username}`"
            )
        logger.info(f"Content store ready on '{self.using}': {seeded} default entries seeded")
        return InitializeResult(bootstrap_created=bootstrap_created, seeded_entries=seeded)

    def _insert_bootstrap_credential(self) -> bool:
        # The emptiness check and the insert are one statement.
        connection = connections[self.using]
        table = connection.ops.quote_name(AdminCredential._meta.db_table)
        columns = ", ".join(
            connection.ops.quote_name(column) for column in ("username", "password_hash", "created_at")
        )
        sql = (
            f"INSERT INTO {table} ({columns}) "
            f"SELECT %s, %s, %s WHERE NOT EXISTS (SELECT 1 FROM {table})"
        )
        params = [
            self.bootstrap_username,
            make_password(self.bootstrap_password),
            connection.ops.adapt_datetimefield_value(timezone.now()),
        ]
        with _storage_errors("bootstrap credential"):
            with connection.cursor() as cursor:
                cursor.execute(sql, params)
                return cursor.rowcount == 1

    def ping(self) -> None:
        """Round-trip a trivial query. Raises StorageFailure when the database is unreachable."""
        with _storage_errors("ping"):
            with connections[self.using].cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()

    # -- content -----------------------------------------------------------

    def list_content(self, section: Optional[str] = None) -> List[ContentEntry]:
        """
        Return every entry, or only those in ``section``, in insertion order.

        Listings are read-through cached per section; writes made through this
        store invalidate them.
        """
        cache_key = self._cache_key(section)
        if self.cache_timeout:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        queryset = ContentEntry.objects.using(self.using).all()
        if section:
            queryset = queryset.filter(section=section)
        with _storage_errors("list"):
            entries = list(queryset)

        if self.cache_timeout:
            cache.set(cache_key, entries, self.cache_timeout)
        return entries

    def get_entry(self, section: str, key: str) -> Optional[ContentEntry]:
        """Single lookup; ``None`` when the pair has never been written."""
        with _storage_errors("lookup"):
            return ContentEntry.objects.using(self.using).filter(section=section, key=key).first()

    def upsert_content(self, section: str, key: str, value: str) -> UpsertResult:
        """
        Insert the (section, key) pair or replace its value and timestamp.

        The row keeps its id across updates; a pair is never duplicated. When a
        concurrent writer inserts the same pair between our update and insert,
        the unique constraint rejects ours and the value is applied as an update.

        Returns:
            UpsertResult(id, changes) where changes is 1 on success

        Raises:
            StorageFailure: If the engine fails
        """
        manager = ContentEntry.objects.using(self.using)
        entry_id = None
        with _storage_errors("upsert"):
            changes = self._update_value(section, key, value)
            if not changes:
                try:
                    with transaction.atomic(using=self.using):
                        entry_id = manager.create(section=section, key=key, value=value).pk
                    changes = 1
                except IntegrityError:
                    changes = self._update_value(section, key, value)
                    if not changes:
                        # Not a duplicate pair (e.g. NOT NULL); let the original error surface.
                        raise
                    logger.debug(f"Concurrent insert of {section}.{key}; applied as update")
            if entry_id is None:
                entry_id = manager.filter(section=section, key=key).values_list("id", flat=True).get()

        self.invalidate(section)
        logger.debug(f"Upserted {section}.{key} (id={entry_id})")
        return UpsertResult(id=entry_id, changes=changes)

    def _update_value(self, section: str, key: str, value: str) -> int:
        # QuerySet.update() bypasses auto_now, so the timestamp is set here.
        return (
            ContentEntry.objects.using(self.using)
            .filter(section=section, key=key)
            .update(value=value, updated_at=timezone.now())
        )

    # -- credentials -------------------------------------------------------

    def find_credential(self, username: str) -> Optional[AdminCredential]:
        """Return the stored credential, or ``None`` for an unknown username."""
        with _storage_errors("credential lookup"):
            return AdminCredential.objects.using(self.using).filter(username=username).first()

    def update_credential_password(self, username: str, new_password: str) -> int:
        """
        Hash ``new_password`` and store it for ``username``.

        Returns:
            Number of rows changed; 0 means the username does not exist
        """
        password_hash = make_password(new_password)
        with _storage_errors("password update"):
            changes = (
                AdminCredential.objects.using(self.using)
                .filter(username=username)
                .update(password_hash=password_hash)
            )
        if changes:
            logger.info(f"Password updated for admin '{username}'")
        return changes
