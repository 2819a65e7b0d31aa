"""
Cleanup auth records management command.

Removes sessions and single-use tokens that can no longer authenticate
anything. Designed to run as a scheduled job (e.g., daily cron).

Expired sessions go immediately. Revoked sessions and consumed or expired
tokens are kept for a retention period so recent activity can still be
inspected.
"""

from datetime import datetime, timedelta

from django.core.management.base import BaseCommand
from django.db.models import Model, Q, QuerySet
from django.utils import timezone

from apps.accounts.models import EmailVerificationToken, PasswordResetToken, Session
from apps.core.logging import get_logger

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Delete expired sessions and stale single-use tokens"

    def add_arguments(self, parser):
        parser.add_argument(
            "--retention-days",
            type=int,
            default=7,
            help="Keep revoked sessions and spent tokens for N days (default: 7)",
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
        retention_days = options["retention_days"]
        batch_size = options["batch_size"]
        dry_run = options["dry_run"]

        now = timezone.now()
        cutoff = now - timedelta(days=retention_days)

        logger.info(
            "auth_cleanup_started",
            retention_days=retention_days,
            cutoff=cutoff.isoformat(),
            dry_run=dry_run,
        )

        counts = {
            "expired_sessions": self._cleanup(
                Session.objects.filter(expires_at__lte=now), batch_size, dry_run
            ),
            "revoked_sessions": self._cleanup(
                Session.objects.filter(revoked_at__lt=cutoff), batch_size, dry_run
            ),
            "password_resets": self._cleanup(
                self._stale_tokens(PasswordResetToken, cutoff), batch_size, dry_run
            ),
            "email_verifications": self._cleanup(
                self._stale_tokens(EmailVerificationToken, cutoff), batch_size, dry_run
            ),
        }
        total = sum(counts.values())

        logger.info("auth_cleanup_completed", total_deleted=total, dry_run=dry_run, **counts)

        summary = ", ".join(f"{count} {label.replace('_', ' ')}" for label, count in counts.items())
        if dry_run:
            self.stdout.write(f"DRY RUN: Would delete {summary} ({total} total)")
        else:
            self.stdout.write(self.style.SUCCESS(f"Deleted {summary} ({total} total)"))

    def _stale_tokens(self, model: type[Model], cutoff: datetime) -> QuerySet:
        """Tokens used, or expired, before the cutoff."""
        return model._default_manager.filter(Q(used_at__lt=cutoff) | Q(expires_at__lt=cutoff))

    def _cleanup(self, queryset: QuerySet, batch_size: int, dry_run: bool) -> int:
        """
        Delete matching rows in batches.

        Returns total number of rows deleted (or that would be, on a dry run).
        """
        if dry_run:
            return queryset.count()

        model = queryset.model
        total_deleted = 0
        while True:
            ids_to_delete = list(queryset.values_list("id", flat=True)[:batch_size])
            if not ids_to_delete:
                break

            deleted_count, _ = model._default_manager.filter(id__in=ids_to_delete).delete()
            total_deleted += deleted_count

            logger.debug(
                "auth_cleanup_batch",
                model=model.__name__,
                batch_deleted=deleted_count,
                total_deleted=total_deleted,
            )

        return total_deleted
