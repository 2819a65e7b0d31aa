"""
Registration flows - organization sign-up and email verification.
"""

from dataclasses import dataclass

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.accounts.crypto import hash_password, timing_safe_delay
from apps.accounts.models import EmailVerificationToken, Profile, User
from apps.accounts.passwords import format_ttl
from apps.accounts.policy import AuthPolicy
from apps.accounts.tokens import RacePolicy, SingleUseTokenService
from apps.core.context import RequestContext
from apps.core.errors import ConflictError
from apps.core.logging import get_logger
from apps.events.models import NotificationJob
from apps.events.notifications import NotificationDispatcher, get_notification_dispatcher
from apps.events.services import AuditSink, get_audit_sink
from apps.organizations.models import Organization
from apps.rbac.services import RbacService, get_rbac_service

REGISTRATION_CONFLICT = "Email or organization slug already in use"
INVALID_VERIFICATION_TOKEN = "Invalid or expired verification token"
RESEND_GENERIC_MESSAGE = (
    "If this email is registered and unverified, a verification email has been sent."
)
RESEND_SENT_MESSAGE = "Verification email sent. Please check your inbox and spam folder."


def _user_reachable(record: EmailVerificationToken) -> bool:
    return not record.user.is_deleted and not record.user.organization.is_deleted


@dataclass(frozen=True)
class Registration:
    organization: Organization
    user: User


class RegistrationService:
    """Creates tenants with their first admin, and verifies email ownership."""

    def __init__(
        self,
        policy: AuthPolicy,
        rbac: RbacService,
        audit: AuditSink,
        notifications: NotificationDispatcher,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.policy = policy
        self.rbac = rbac
        self.audit = audit
        self.notifications = notifications
        self.logger = logger or get_logger(__name__)
        self.verification_tokens = SingleUseTokenService(
            EmailVerificationToken,
            name="email_verification",
            invalid_message=INVALID_VERIFICATION_TOKEN,
            race_policy=RacePolicy.IDEMPOTENT,
            policy=policy,
            select_related=("user", "user__organization", "user__profile"),
            logger=self.logger,
        )

    def register(
        self,
        organization_name: str,
        slug: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        ctx: RequestContext,
    ) -> Registration:
        """
        Create an organization, its Admin role, and an unverified admin user.

        Slugs stay reserved after an organization is deleted.

        Raises:
            ConflictError: Email or slug already taken
        """
        if User.objects.email_exists(email) or Organization.all_objects.filter(slug=slug).exists():
            raise ConflictError(REGISTRATION_CONFLICT)

        password_hash = hash_password(password)

        try:
            with transaction.atomic():
                organization = Organization.objects.create(name=organization_name, slug=slug)
                role = self.rbac.create_default_role(organization.id)
                user = User.objects.create(
                    organization=organization,
                    role=role,
                    email=email,
                    password_hash=password_hash,
                )
                Profile.objects.create(user=user, first_name=first_name, last_name=last_name)
        except IntegrityError:
            raise ConflictError(REGISTRATION_CONFLICT) from None

        scoped = {"organization_id": organization.id, "actor_id": user.id}
        self.audit.record(
            "org:create",
            "organization",
            organization.id,
            ctx,
            metadata={"name": organization.name, "slug": organization.slug},
            **scoped,
        )
        self.audit.record(
            "role:create",
            "role",
            role.id,
            ctx,
            metadata={"name": role.name, "is_default": True},
            **scoped,
        )
        self.audit.record("user:create", "user", user.id, ctx, metadata={"email": user.email}, **scoped)

        self._send_verification(user, first_name)

        self.logger.info(
            "organization_registered",
            organization_id=str(organization.id),
            user_id=str(user.id),
        )
        return Registration(organization=organization, user=user)

    def verify_email(self, token: str, ctx: RequestContext) -> None:
        """
        Mark the token's user verified. Verifying twice is a success.

        Raises:
            UnauthorizedError: Token unusable, or user or organization deleted
        """
        record = self.verification_tokens.find_usable(token, extra_check=_user_reachable)
        user = record.user

        if user.is_email_verified:
            return

        def mark_verified(consumed: EmailVerificationToken) -> None:
            User.objects.filter(pk=user.pk).update(email_verified_at=timezone.now())

        result = self.verification_tokens.consume(record, side_effect=mark_verified)
        if not result.won:
            return

        self.audit.record(
            "auth:email_verify",
            "user",
            user.id,
            ctx,
            organization_id=user.organization_id,
            actor_id=user.id,
        )
        self.logger.info("email_verified", user_id=str(user.id))

    def resend_verification(self, email: str, ctx: RequestContext) -> str:
        """Re-issue the verification link. Unknown or verified emails get the generic message."""
        user = User.objects.get_by_email(email)

        if (
            user is None
            or user.organization.is_deleted
            or user.is_email_verified
            or not user.is_active
        ):
            timing_safe_delay(self.policy)
            return RESEND_GENERIC_MESSAGE

        self._send_verification(user, user.first_name)

        self.audit.record(
            "auth:email_verify_resend",
            "user",
            user.id,
            ctx,
            organization_id=user.organization_id,
            actor_id=user.id,
        )
        self.logger.info("verification_resent", user_id=str(user.id))
        return RESEND_SENT_MESSAGE

    def _send_verification(self, user: User, first_name: str) -> None:
        issued = self.verification_tokens.issue(self.policy.email_verification_ttl, subject=user)
        self.notifications.enqueue(
            NotificationJob.JobType.EMAIL_VERIFICATION,
            user.email,
            {
                "first_name": first_name or "User",
                "verify_url": self.policy.frontend_link("/verify-email", issued.raw),
                "expires_in": format_ttl(self.policy.email_verification_ttl),
            },
        )


def get_registration_service() -> RegistrationService:
    return RegistrationService(
        policy=AuthPolicy.from_settings(),
        rbac=get_rbac_service(),
        audit=get_audit_sink(),
        notifications=get_notification_dispatcher(),
    )
