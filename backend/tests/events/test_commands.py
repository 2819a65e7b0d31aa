"""
Tests for the send_notifications and cleanup_notifications commands.
"""

from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.events.backends import NotificationBackend
from apps.events.models import NotificationJob


def _create_job(status: str = NotificationJob.Status.PENDING, days_old: int = 0, **kwargs):
    """Helper to create a NotificationJob with a specific age."""
    job = NotificationJob.objects.create(
        job_type=NotificationJob.JobType.PASSWORD_CHANGED,
        recipient="ada@example.com",
        payload={"first_name": "Ada"},
        status=status,
        **kwargs,
    )
    if days_old:
        # auto_now_add can't be overridden on create
        NotificationJob.objects.filter(id=job.id).update(
            created_at=timezone.now() - timezone.timedelta(days=days_old)
        )
    return job


class FailingBackend(NotificationBackend):
    def send(self, jobs):
        return [{"job_id": str(job.job_id), "status": "error", "error": "bounced"} for job in jobs]


class ExplodingBackend(NotificationBackend):
    def send(self, jobs):
        raise ConnectionError("provider unreachable")


@pytest.mark.django_db
class TestSendNotificationsCommand:
    def test_sends_pending_jobs(self) -> None:
        """Due jobs are handed to the backend and marked sent."""
        jobs = [_create_job() for _ in range(2)]
        out = StringIO()

        call_command("send_notifications", "--once", stdout=out)

        for job in jobs:
            job.refresh_from_db()
            assert job.status == NotificationJob.Status.SENT
            assert job.sent_at is not None
        assert "Sent 2 notification(s)" in out.getvalue()

    def test_skips_jobs_not_yet_due(self) -> None:
        """Jobs waiting out a backoff are left alone."""
        job = _create_job(next_attempt_at=timezone.now() + timezone.timedelta(minutes=5))

        call_command("send_notifications", "--once", stdout=StringIO())

        job.refresh_from_db()
        assert job.status == NotificationJob.Status.PENDING

    def test_skips_finished_jobs(self) -> None:
        sent = _create_job(status=NotificationJob.Status.SENT)

        call_command("send_notifications", "--once", stdout=StringIO())

        sent.refresh_from_db()
        assert sent.attempts == 0

    def test_per_job_failure_schedules_retry(self) -> None:
        """A job the backend rejects is retried later."""
        job = _create_job()

        with patch(
            "apps.events.management.commands.send_notifications.get_backend",
            return_value=FailingBackend(),
        ):
            call_command("send_notifications", "--once", stdout=StringIO())

        job.refresh_from_db()
        assert job.status == NotificationJob.Status.PENDING
        assert job.attempts == 1
        assert job.last_error == "bounced"
        assert job.next_attempt_at is not None

    def test_backend_exception_marks_batch_failed(self) -> None:
        """A backend that raises fails the whole batch without crashing the worker."""
        job = _create_job(attempts=9)

        with patch(
            "apps.events.management.commands.send_notifications.get_backend",
            return_value=ExplodingBackend(),
        ):
            call_command("send_notifications", "--once", stdout=StringIO())

        job.refresh_from_db()
        assert job.status == NotificationJob.Status.FAILED
        assert "provider unreachable" in job.last_error


@pytest.mark.django_db
class TestCleanupNotificationsCommand:
    """Tests for the cleanup_notifications management command."""

    def test_deletes_old_sent_jobs(self) -> None:
        """Sent jobs older than retention period are deleted."""
        old_job = _create_job(NotificationJob.Status.SENT, days_old=10)
        recent_job = _create_job(NotificationJob.Status.SENT, days_old=3)

        call_command("cleanup_notifications", "--sent-retention-days=7", stdout=StringIO())

        assert not NotificationJob.objects.filter(id=old_job.id).exists()
        assert NotificationJob.objects.filter(id=recent_job.id).exists()

    def test_deletes_old_failed_jobs(self) -> None:
        old_job = _create_job(NotificationJob.Status.FAILED, days_old=35)
        recent_job = _create_job(NotificationJob.Status.FAILED, days_old=10)

        call_command("cleanup_notifications", "--failed-retention-days=30", stdout=StringIO())

        assert not NotificationJob.objects.filter(id=old_job.id).exists()
        assert NotificationJob.objects.filter(id=recent_job.id).exists()

    def test_does_not_delete_pending_jobs(self) -> None:
        """Pending jobs are never deleted regardless of age."""
        old_pending = _create_job(NotificationJob.Status.PENDING, days_old=100)

        call_command("cleanup_notifications", stdout=StringIO())

        assert NotificationJob.objects.filter(id=old_pending.id).exists()

    def test_dry_run_deletes_nothing(self) -> None:
        old_job = _create_job(NotificationJob.Status.SENT, days_old=10)
        out = StringIO()

        call_command("cleanup_notifications", "--dry-run", stdout=out)

        assert NotificationJob.objects.filter(id=old_job.id).exists()
        assert "DRY RUN: Would delete 1 sent and 0 failed jobs (1 total)" in out.getvalue()

    def test_batches(self) -> None:
        """Deletion loops until every eligible row is gone."""
        for _ in range(5):
            _create_job(NotificationJob.Status.SENT, days_old=10)
        out = StringIO()

        call_command("cleanup_notifications", "--batch-size=2", stdout=out)

        assert NotificationJob.objects.count() == 0
        assert "Deleted 5 sent and 0 failed jobs (5 total)" in out.getvalue()
