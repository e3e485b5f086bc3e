from getpass import getpass

from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS
from rest_framework.exceptions import ValidationError

from content.exceptions import StorageFailure
from content.serializers import validate_password_strength
from content.store import ContentStore


class Command(BaseCommand):
    help = "Replace an admin's password, e.g. the bootstrap admin's default one."

    def add_arguments(self, parser):
        parser.add_argument("username")
        parser.add_argument(
            "--password",
            help="New password; prompted for when omitted",
        )
        parser.add_argument("--database", default=DEFAULT_DB_ALIAS)

    def handle(self, *args, **options):
        password = options["password"]
        if password is None:
            password = getpass("New password: ")
            if password != getpass("New password (again): "):
                raise CommandError("Passwords do not match")

        try:
            validate_password_strength(password)
        except ValidationError as exc:
            raise CommandError(" ".join(str(detail) for detail in exc.detail)) from exc

        try:
            changes = ContentStore(using=options["database"]).update_credential_password(
                options["username"], password
            )
        except StorageFailure as exc:
            raise CommandError(str(exc)) from exc

        if not changes:
            raise CommandError(f"No admin named '{options['username']}'")
        self.stdout.write(self.style.SUCCESS(f"Password updated for '{options['username']}'"))
