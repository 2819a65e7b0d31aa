"""
Invitation model - pending offers to join an organization with a role.
"""

from django.db import models
from django.utils import timezone
from uuid6 import uuid7

from apps.core.models import TenantScopedModel


class Invitation(TenantScopedModel):
    """
    Single-use invitation for an email address.

    Lifecycle timestamps are terminal: accepted_at and revoked_at are each set
    at most once and never together. Expiry is implied by expires_at.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACCEPTED = "accepted", "Accepted"
        REVOKED = "revoked", "Revoked"
        EXPIRED = "expired", "Expired"

    tenant_parent_fields = ("role", "invited_by")

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    email = models.EmailField(max_length=255)
    role = models.ForeignKey(
        "rbac.Role",
        on_delete=models.PROTECT,
        related_name="invitations",
    )
    invited_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        related_name="invitations_sent",
    )
    token_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 hex digest of the raw invitation token",
    )
    expires_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["organization", "email"], name="invitations_org_email_idx"),
        ]

    def __str__(self) -> str:
        return f"Invitation {self.email} ({self.status})"

    @property
    def status(self) -> str:
        if self.accepted_at is not None:
            return self.Status.ACCEPTED
        if self.revoked_at is not None:
            return self.Status.REVOKED
        if timezone.now() >= self.expires_at:
            return self.Status.EXPIRED
        return self.Status.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING
