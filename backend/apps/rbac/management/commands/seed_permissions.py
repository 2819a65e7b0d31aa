"""
Seed permissions management command.

Upserts the permission catalog from apps.rbac.constants. Safe to run on every
deploy.
"""

from django.core.management.base import BaseCommand

from apps.core.logging import get_logger
from apps.rbac.services import seed_permissions

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Create or update the global permission catalog"

    def handle(self, *args, **options):
        created, updated = seed_permissions()
        logger.info("permissions_seeded", created=created, updated=updated)
        self.stdout.write(
            self.style.SUCCESS(f"Seeded permissions: {created} created, {updated} updated")
        )
