"""
Events models - audit log and notification job outbox.
"""

import uuid

from django.db import models
from django.utils import timezone


class NotificationJob(models.Model):
    """
    Queued "send templated message" job.

    Rows are inserted in the same transaction as the business change that caused
    them, then drained by the send_notifications worker. The request path never
    waits for delivery.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"

    class JobType(models.TextChoices):
        ACCOUNT_LOCKED = "account_locked", "Account locked"
        PASSWORD_RESET = "password_reset", "Password reset"
        PASSWORD_CHANGED = "password_changed", "Password changed"
        EMAIL_VERIFICATION = "email_verification", "Email verification"
        INVITATION = "invitation", "Invitation"

    # BigAutoField for B-tree locality on a write-heavy table
    id = models.BigAutoField(primary_key=True)

    # Idempotency key for the delivery provider
    job_id = models.UUIDField(unique=True, default=uuid.uuid4, editable=False)

    job_type = models.CharField(max_length=50, choices=JobType.choices, db_index=True)
    recipient = models.EmailField(max_length=255)
    payload = models.JSONField(default=dict, help_text="Template variables for the job type")

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    # Retry tracking
    attempts = models.PositiveIntegerField(default=0)
    next_attempt_at = models.DateTimeField(null=True, blank=True, db_index=True)
    last_error = models.TextField(blank=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["status", "next_attempt_at"], name="events_job_status_next_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.job_type} -> {self.recipient} ({self.status})"

    def mark_sent(self) -> None:
        self.status = self.Status.SENT
        self.sent_at = timezone.now()
        self.save(update_fields=["status", "sent_at"])

    def mark_failed(self, error: str, max_attempts: int = 10) -> None:
        """
        Record a failed delivery and schedule a retry with exponential backoff.

        After max_attempts, status becomes FAILED permanently.
        """
        self.attempts += 1
        self.last_error = error

        if self.attempts >= max_attempts:
            self.status = self.Status.FAILED
            self.next_attempt_at = None
        else:
            # 2s, 4s, 8s... capped at 5 minutes
            delay_seconds = min(2**self.attempts, 300)
            self.next_attempt_at = timezone.now() + timezone.timedelta(seconds=delay_seconds)

        self.save(update_fields=["attempts", "last_error", "status", "next_attempt_at"])


class AuditLog(models.Model):
    """
    Append-only audit trail.

    before/after/metadata are redacted before they are written.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # What happened
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action type, e.g. 'auth:login' or 'role:update'",
    )
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=100, blank=True)
    organization_id = models.UUIDField(null=True, blank=True, db_index=True)

    # Who did it
    actor_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="User that performed the action; NULL for anonymous or system",
    )

    # Request context
    request_id = models.CharField(max_length=64, blank=True, db_index=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)

    before = models.JSONField(null=True, blank=True)
    after = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization_id", "created_at"], name="events_audit_org_created_idx"),
            models.Index(fields=["entity_type", "entity_id"], name="events_audit_entity_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.action} by {self.actor_id or 'anonymous'}"
