"""
Accounts models - users, profiles, sessions and single-use tokens.
"""

from django.db import models
from django.db.models import Q
from django.db.models.functions import Lower
from django.utils import timezone
from uuid6 import uuid7

from apps.core.models import SoftDeleteAllManager, SoftDeleteManager, SoftDeleteMixin, TenantScopedModel
from apps.core.utils import normalize_email


class UserManager(SoftDeleteManager["User"]):
    """Non-deleted users, with case-insensitive email lookups."""

    def get_by_email(self, email: str) -> "User | None":
        """Return the live user for an email, with organization, role and profile loaded."""
        return (
            self.get_queryset()
            .select_related("organization", "role", "profile")
            .filter(email__iexact=normalize_email(email))
            .first()
        )

    def email_exists(self, email: str) -> bool:
        """Emails are globally unique across organizations."""
        return self.get_queryset().filter(email__iexact=normalize_email(email)).exists()


class User(SoftDeleteMixin, TenantScopedModel):
    """
    Identity within one organization.

    Email is unique across all organizations. A null password_hash means the
    account cannot log in with a password.
    """

    tenant_parent_fields = ("role",)

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    role = models.ForeignKey(
        "rbac.Role",
        on_delete=models.PROTECT,
        related_name="users",
    )
    email = models.EmailField(max_length=255)
    password_hash = models.CharField(max_length=255, null=True, blank=True)

    email_verified_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    # Login lockout state
    failed_login_attempts = models.PositiveIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)

    last_login_at = models.DateTimeField(null=True, blank=True)
    password_changed_at = models.DateTimeField(null=True, blank=True)

    objects = UserManager()
    all_objects = SoftDeleteAllManager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                Lower("email"),
                condition=Q(deleted_at__isnull=True),
                name="accounts_user_unique_live_email",
            ),
        ]

    def __str__(self) -> str:
        return self.email

    def save(self, *args, **kwargs) -> None:
        self.email = normalize_email(self.email)
        super().save(*args, **kwargs)

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified_at is not None

    @property
    def is_locked(self) -> bool:
        """Locked while locked_until is in the future."""
        return self.locked_until is not None and self.locked_until > timezone.now()

    @property
    def first_name(self) -> str:
        profile = getattr(self, "profile", None)
        return profile.first_name if profile is not None else ""


class Profile(models.Model):
    """Display details for a user. Zero or one per user."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    first_name = models.CharField(max_length=255)
    last_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Session(TenantScopedModel):
    """
    Server-side session.

    Only the SHA-256 hash of the opaque secret is stored. A session is valid iff
    revoked_at is NULL and expires_at is in the future. Expiry is never written;
    revocation is.
    """

    tenant_parent_fields = ("user",)

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="sessions")
    sid_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 hex digest of the session secret",
    )
    data = models.JSONField(default=dict, blank=True)

    expires_at = models.DateTimeField(db_index=True)
    revoked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Explicit revocation timestamp. NULL = not revoked.",
    )

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    last_accessed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "revoked_at"], name="accounts_sess_user_revoked_idx"),
        ]

    def __str__(self) -> str:
        return f"Session {self.id} ({self.user_id})"

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_expired(self) -> bool:
        return timezone.now() >= self.expires_at

    @property
    def is_valid(self) -> bool:
        return not self.is_revoked and not self.is_expired


class SingleUseToken(models.Model):
    """
    Hashed, expiring, consume-once token.

    At most one outstanding token per user: issuing a new one deletes the old.
    used_at moves from NULL to a timestamp exactly once.
    """

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="%(class)s_set")
    token_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 hex digest of the raw token",
    )
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when token was consumed. NULL = unused.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        status = "used" if self.is_used else ("expired" if self.is_expired else "valid")
        return f"{type(self).__name__} {self.id} ({status})"

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    @property
    def is_expired(self) -> bool:
        return timezone.now() >= self.expires_at

    @property
    def is_valid(self) -> bool:
        return not self.is_used and not self.is_expired


class PasswordResetToken(SingleUseToken):
    """Password reset link token (1 hour by default)."""


class EmailVerificationToken(SingleUseToken):
    """Email verification link token (24 hours by default)."""
