from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS

from content.exceptions import StorageFailure
from content.store import ContentStore


class Command(BaseCommand):
    help = "Seed default page copy and the bootstrap admin. Existing values are left alone."

    def add_arguments(self, parser):
        parser.add_argument(
            "--database",
            default=DEFAULT_DB_ALIAS,
            help="Database alias to initialize (default: %(default)s)",
        )

    def handle(self, *args, **options):
        try:
            result = ContentStore(using=options["database"]).initialize()
        except StorageFailure as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(f"Seeded {result.seeded_entries} default content entries")
        if result.bootstrap_created:
            self.stdout.write(self.style.WARNING(
                "Created the bootstrap admin with the default password; "
                "change it with `manage.py set_admin_password`"
            ))
        self.stdout.write(self.style.SUCCESS("Content store ready"))
