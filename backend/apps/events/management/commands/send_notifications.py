"""
Send notifications management command.

Polls the notification_job table and hands pending jobs to the configured
backend. Uses SELECT FOR UPDATE SKIP LOCKED for safe concurrent execution.
"""

import random
import signal
import time

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.core.logging import get_logger
from apps.events.backends import NotificationBackend, get_backend
from apps.events.context import worker_context
from apps.events.models import NotificationJob

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Deliver pending notification jobs to the notification backend"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._shutdown_requested = False

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run once and exit (default: run continuously)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=50,
            help="Number of jobs to process per batch (default: 50)",
        )
        parser.add_argument(
            "--poll-interval",
            type=float,
            default=5.0,
            help="Seconds between polls when the queue is empty (default: 5)",
        )
        parser.add_argument(
            "--max-attempts",
            type=int,
            default=10,
            help="Max delivery attempts before marking as failed (default: 10)",
        )

    def handle(self, *args, **options):
        self._setup_signal_handlers()

        once = options["once"]
        batch_size = options["batch_size"]
        poll_interval = options["poll_interval"]
        max_attempts = options["max_attempts"]

        backend = get_backend()
        logger.info(
            "notification_worker_started",
            backend=backend.__class__.__name__,
            batch_size=batch_size,
        )

        total_sent = 0
        while not self._shutdown_requested:
            try:
                with worker_context():
                    sent_count = self._send_batch(backend, batch_size, max_attempts)

                total_sent += sent_count
                if sent_count > 0:
                    logger.info("notifications_sent", count=sent_count)
                    if not once:
                        continue

            except Exception:
                logger.exception("notification_worker_error")

            if once:
                break

            self._sleep_with_jitter(poll_interval)

        logger.info("notification_worker_shutdown", total_sent=total_sent)
        self.stdout.write(f"Sent {total_sent} notification(s)")

    def _send_batch(self, backend: NotificationBackend, batch_size: int, max_attempts: int) -> int:
        """
        Claim and deliver a batch of due jobs.

        Rows stay locked until their status is written, so concurrent workers
        skip them instead of double-sending. Returns number of jobs sent.
        """
        now = timezone.now()

        with transaction.atomic():
            jobs = list(
                NotificationJob.objects.select_for_update(skip_locked=True)
                .filter(status=NotificationJob.Status.PENDING)
                .filter(Q(next_attempt_at__isnull=True) | Q(next_attempt_at__lte=now))
                .order_by("created_at")[:batch_size]
            )
            if not jobs:
                return 0

            try:
                results = backend.send(jobs)
            except Exception as e:
                logger.exception("notification_backend_failed", count=len(jobs))
                for job in jobs:
                    job.mark_failed(str(e), max_attempts)
                return 0

            sent_count = 0
            for job, result in zip(jobs, results, strict=True):
                if result.get("status") == "success":
                    job.mark_sent()
                    sent_count += 1
                else:
                    error = result.get("error", "Unknown error")
                    job.mark_failed(error, max_attempts)
                    logger.warning(
                        "notification_send_failed",
                        job_id=str(job.job_id),
                        job_type=job.job_type,
                        attempts=job.attempts,
                        error=error,
                    )

        return sent_count

    def _sleep_with_jitter(self, base_seconds: float) -> None:
        """Sleep with random jitter to avoid thundering herd."""
        jitter = base_seconds * 0.2 * random.random()
        time.sleep(base_seconds + jitter)

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown on SIGINT/SIGTERM."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info("notification_worker_signal_received", signal=signum)
        self._shutdown_requested = True
