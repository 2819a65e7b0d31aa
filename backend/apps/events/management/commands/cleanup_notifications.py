"""
Cleanup notification jobs management command.

Removes old sent and failed notification jobs to prevent unbounded table
growth. Designed to run as a scheduled job (e.g., daily cron).

Sent jobs can go after a short retention period (default 7 days). Failed
jobs are kept longer (default 30 days) for debugging.
"""

from datetime import datetime, timedelta

from django.core.management.base import BaseCommand
from django.db.models import QuerySet
from django.utils import timezone

from apps.core.logging import get_logger
from apps.events.models import NotificationJob

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Clean up old notification jobs to prevent unbounded table growth"

    def add_arguments(self, parser):
        parser.add_argument(
            "--sent-retention-days",
            type=int,
            default=7,
            help="Delete sent jobs older than N days (default: 7)",
        )
        parser.add_argument(
            "--failed-retention-days",
            type=int,
            default=30,
            help="Delete failed jobs older than N days (default: 30)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=1000,
            help="Delete in batches of N to avoid long locks (default: 1000)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        batch_size = options["batch_size"]
        dry_run = options["dry_run"]

        now = timezone.now()
        sent_cutoff = now - timedelta(days=options["sent_retention_days"])
        failed_cutoff = now - timedelta(days=options["failed_retention_days"])

        logger.info(
            "notification_cleanup_started",
            sent_cutoff=sent_cutoff.isoformat(),
            failed_cutoff=failed_cutoff.isoformat(),
            dry_run=dry_run,
        )

        sent_deleted = self._cleanup_jobs(
            NotificationJob.Status.SENT, sent_cutoff, batch_size, dry_run
        )
        failed_deleted = self._cleanup_jobs(
            NotificationJob.Status.FAILED, failed_cutoff, batch_size, dry_run
        )
        total_deleted = sent_deleted + failed_deleted

        logger.info(
            "notification_cleanup_completed",
            sent_deleted=sent_deleted,
            failed_deleted=failed_deleted,
            total_deleted=total_deleted,
            dry_run=dry_run,
        )

        if dry_run:
            self.stdout.write(
                f"DRY RUN: Would delete {sent_deleted} sent and "
                f"{failed_deleted} failed jobs ({total_deleted} total)"
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Deleted {sent_deleted} sent and "
                    f"{failed_deleted} failed jobs ({total_deleted} total)"
                )
            )

    def _cleanup_jobs(self, status: str, cutoff: datetime, batch_size: int, dry_run: bool) -> int:
        """Delete jobs of the given status created before cutoff, in batches."""
        queryset: QuerySet[NotificationJob] = NotificationJob.objects.filter(
            status=status,
            created_at__lt=cutoff,
        )

        if dry_run:
            return queryset.count()

        total_deleted = 0
        while True:
            ids_to_delete = list(queryset.values_list("id", flat=True)[:batch_size])
            if not ids_to_delete:
                break

            deleted_count, _ = NotificationJob.objects.filter(id__in=ids_to_delete).delete()
            total_deleted += deleted_count

        return total_deleted
