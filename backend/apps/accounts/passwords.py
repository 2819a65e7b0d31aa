"""
Password flows - forgot, reset and change.
"""

from datetime import timedelta

import structlog
from django.db import transaction
from django.utils import timezone

from apps.accounts.crypto import hash_password, timing_safe_delay, verify_password
from apps.accounts.models import PasswordResetToken, User
from apps.accounts.policy import AuthPolicy
from apps.accounts.sessions import SessionManager, get_session_manager
from apps.accounts.tokens import RacePolicy, SingleUseTokenService
from apps.core.auth import Principal
from apps.core.context import RequestContext
from apps.core.errors import UnauthorizedError
from apps.core.logging import get_logger
from apps.events.models import NotificationJob
from apps.events.notifications import NotificationDispatcher, get_notification_dispatcher
from apps.events.services import AuditSink, get_audit_sink

FORGOT_PASSWORD_MESSAGE = "If an account exists, a reset email has been sent"
INVALID_RESET_TOKEN = "Invalid or expired reset token"


def format_ttl(ttl: timedelta) -> str:
    """Human-readable lifetime for notification templates, e.g. '1 hour'."""
    hours = int(ttl.total_seconds() // 3600)
    if hours >= 1:
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    minutes = max(int(ttl.total_seconds() // 60), 1)
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def _can_reset(record: PasswordResetToken) -> bool:
    user = record.user
    return user.is_active and not user.is_deleted and not user.organization.is_deleted


class PasswordService:
    def __init__(
        self,
        policy: AuthPolicy,
        sessions: SessionManager,
        audit: AuditSink,
        notifications: NotificationDispatcher,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.policy = policy
        self.sessions = sessions
        self.audit = audit
        self.notifications = notifications
        self.logger = logger or get_logger(__name__)
        self.reset_tokens = SingleUseTokenService(
            PasswordResetToken,
            name="password_reset",
            invalid_message=INVALID_RESET_TOKEN,
            race_policy=RacePolicy.FAIL,
            policy=policy,
            logger=self.logger,
        )

    def forgot_password(self, email: str, ctx: RequestContext) -> str:
        """
        Issue a reset link if the account can use one.

        Always returns the same message so the response does not reveal
        whether the email is registered.
        """
        user = User.objects.get_by_email(email)

        if (
            user is None
            or user.organization.is_deleted
            or not user.password_hash
            or not user.is_active
        ):
            timing_safe_delay(self.policy)
            self.logger.info("password_reset_skipped", found=user is not None)
            return FORGOT_PASSWORD_MESSAGE

        issued = self.reset_tokens.issue(self.policy.password_reset_ttl, subject=user)

        self.notifications.enqueue(
            NotificationJob.JobType.PASSWORD_RESET,
            user.email,
            {
                "first_name": user.first_name or "User",
                "reset_url": self.policy.frontend_link("/reset-password", issued.raw),
                "expires_in": format_ttl(self.policy.password_reset_ttl),
            },
        )
        self.audit.record(
            "auth:password_reset_request",
            "user",
            user.id,
            ctx,
            organization_id=user.organization_id,
            actor_id=user.id,
        )
        self.logger.info("password_reset_requested", user_id=str(user.id))
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, token: str, new_password: str, ctx: RequestContext) -> None:
        """
        Set a new password from a reset token and end every session of the user.

        Raises:
            UnauthorizedError: Token unusable, user or organization gone, or the
                token was consumed by a concurrent request
        """
        record = self.reset_tokens.find_usable(token, extra_check=_can_reset)
        user = record.user

        password_hash = hash_password(new_password)

        def apply_reset(consumed: PasswordResetToken) -> None:
            now = timezone.now()
            User.objects.filter(pk=user.pk).update(
                password_hash=password_hash,
                password_changed_at=now,
                failed_login_attempts=0,
                locked_until=None,
            )
            self.sessions.delete_all_for_user(user.id)

        self.reset_tokens.consume(record, side_effect=apply_reset)

        self.notifications.enqueue(
            NotificationJob.JobType.PASSWORD_CHANGED,
            user.email,
            {"first_name": user.first_name or "User"},
        )
        self.audit.record(
            "auth:password_reset_complete",
            "user",
            user.id,
            ctx,
            organization_id=user.organization_id,
            actor_id=user.id,
        )
        self.logger.info("password_reset_completed", user_id=str(user.id))

    def change_password(
        self,
        principal: Principal,
        current_password: str,
        new_password: str,
        ctx: RequestContext,
    ) -> int:
        """
        Change the caller's password and revoke their other sessions.

        Returns the number of sessions revoked.

        Raises:
            UnauthorizedError: No password set, or current password wrong
        """
        user = User.objects.filter(pk=principal.user.id).first()
        if user is None or not user.password_hash:
            raise UnauthorizedError("Unable to change password")

        if not verify_password(current_password, user.password_hash):
            self.audit.record(
                "auth:password_change",
                "user",
                user.id,
                ctx,
                metadata={"success": False, "reason": "invalid_current_password"},
            )
            raise UnauthorizedError("Current password is incorrect")

        password_hash = hash_password(new_password)

        with transaction.atomic():
            User.objects.filter(pk=user.pk).update(
                password_hash=password_hash,
                password_changed_at=timezone.now(),
            )
            revoked = self.sessions.revoke_all_except(user.id, principal.session.id)

        self.notifications.enqueue(
            NotificationJob.JobType.PASSWORD_CHANGED,
            user.email,
            {"first_name": principal.user.first_name or "User"},
        )
        self.audit.record(
            "auth:password_change",
            "user",
            user.id,
            ctx,
            metadata={"sessions_revoked": revoked},
        )
        self.logger.info("password_changed", user_id=str(user.id), sessions_revoked=revoked)
        return revoked


def get_password_service() -> PasswordService:
    return PasswordService(
        policy=AuthPolicy.from_settings(),
        sessions=get_session_manager(),
        audit=get_audit_sink(),
        notifications=get_notification_dispatcher(),
    )
