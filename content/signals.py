import logging

from django.conf import settings

from content.store import ContentStore

logger = logging.getLogger(__name__)


def initialize_store(sender, using="default", **kwargs):
    """Seed defaults and the bootstrap admin once the content tables exist."""
    if not getattr(settings, "CONTENT_SEED_ON_MIGRATE", True):
        return
    store = ContentStore(using=using)
    if not store.tables_exist():
        logger.debug(f"Content tables not migrated on '{using}' yet; skipping seed")
        return
    store.initialize()
