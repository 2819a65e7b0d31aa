"""
Authentication service - login, logout, profile and session management.

Every failure on the login path before the password is proven correct
produces the same delayed "Invalid email or password" response, so callers
cannot tell an unknown email from a locked account or a wrong password.
"""

from dataclasses import dataclass
from typing import Any, NoReturn
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.accounts.crypto import timing_safe_delay, verify_password
from apps.accounts.models import Profile, Session, User
from apps.accounts.policy import AuthPolicy
from apps.accounts.sessions import SessionManager, get_session_manager
from apps.core.auth import Principal
from apps.core.context import RequestContext
from apps.core.errors import EmailNotVerifiedError, ForbiddenError, NotFoundError, UnauthorizedError
from apps.core.logging import get_logger
from apps.events.models import NotificationJob
from apps.events.notifications import NotificationDispatcher, get_notification_dispatcher
from apps.events.services import AuditSink, get_audit_sink
from apps.rbac.services import UNSET, RbacService, get_rbac_service

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass(frozen=True)
class LoginResult:
    """session_secret is returned to the client once and never stored."""

    user: User
    permissions: frozenset[str]
    session_secret: str
    session: Session
    max_age_seconds: int


@dataclass(frozen=True)
class SessionItem:
    session: Session
    is_current: bool


class AuthenticationService:
    """Credential checks and session-bound account operations."""

    def __init__(
        self,
        policy: AuthPolicy,
        sessions: SessionManager,
        rbac: RbacService,
        audit: AuditSink,
        notifications: NotificationDispatcher,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.policy = policy
        self.sessions = sessions
        self.rbac = rbac
        self.audit = audit
        self.notifications = notifications
        self.logger = logger or get_logger(__name__)

    def login(
        self,
        email: str,
        password: str,
        ctx: RequestContext,
        remember_me: bool = False,
    ) -> LoginResult:
        """
        Authenticate by email and password and open a session.

        Raises:
            UnauthorizedError: Unknown email, locked account, no password, wrong password
            EmailNotVerifiedError: Correct password, email not verified
            ForbiddenError: Correct password, account deactivated
        """
        user = User.objects.get_by_email(email)

        if user is None or user.organization.is_deleted:
            self._reject_login(ctx, email, "user_not_found")

        if user.is_locked:
            self._reject_login(ctx, email, "account_locked", user)

        if not user.password_hash:
            self._reject_login(ctx, email, "no_password", user)

        if not verify_password(password, user.password_hash):
            attempts, locked = self._record_failed_attempt(user)
            self._reject_login(
                ctx, email, "invalid_password", user, attempts=attempts, locked=locked
            )

        if not user.is_email_verified:
            self._audit_login_failure(ctx, email, "email_not_verified", user)
            raise EmailNotVerifiedError()

        if not user.is_active:
            self._audit_login_failure(ctx, email, "account_inactive", user)
            raise ForbiddenError("Account has been deactivated")

        duration = self.policy.session_duration_for(remember_me)
        now = timezone.now()

        with transaction.atomic():
            User.objects.filter(pk=user.pk).update(
                failed_login_attempts=0,
                locked_until=None,
                last_login_at=now,
            )
            created = self.sessions.create(user, ctx.ip_address, ctx.user_agent, duration)

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now

        permissions = self.rbac.resolve_permissions(user.role_id)

        self.audit.record(
            "auth:login",
            "user",
            user.id,
            ctx,
            organization_id=user.organization_id,
            actor_id=user.id,
        )
        self.logger.info(
            "user_logged_in",
            user_id=str(user.id),
            organization_id=str(user.organization_id),
            remember_me=remember_me,
        )

        return LoginResult(
            user=user,
            permissions=permissions,
            session_secret=created.raw_secret,
            session=created.session,
            max_age_seconds=int(duration.total_seconds()),
        )

    def logout(self, principal: Principal, ctx: RequestContext) -> None:
        """Delete the current session row."""
        self.sessions.delete(principal.session.id)
        self.audit.record("auth:logout", "session", principal.session.id, ctx)
        self.logger.info("user_logged_out", user_id=str(principal.user.id))

    def me(self, principal: Principal) -> tuple[User, frozenset[str]]:
        """The caller with organization, role and profile loaded, plus permissions."""
        user = (
            User.objects.select_related("organization", "role", "profile")
            .filter(pk=principal.user.id)
            .first()
        )
        if user is None:
            raise NotFoundError("User not found")
        return user, principal.permissions

    def update_profile(
        self,
        principal: Principal,
        ctx: RequestContext,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = UNSET,
    ) -> User:
        """Update only the provided profile fields, creating the profile if missing."""
        user = principal.user
        profile, _ = Profile.objects.get_or_create(
            user=user,
            defaults={"first_name": "", "last_name": ""},
        )
        before = _profile_snapshot(profile)

        if first_name is not None:
            profile.first_name = first_name
        if last_name is not None:
            profile.last_name = last_name
        if phone is not UNSET:
            profile.phone = phone
        profile.save()
        user.profile = profile

        self.audit.record(
            "user:update",
            "user",
            user.id,
            ctx,
            before=before,
            after=_profile_snapshot(profile),
        )
        self.logger.info("profile_updated", user_id=str(user.id))
        return user

    def list_sessions(self, principal: Principal) -> list[SessionItem]:
        current_id = principal.session.id
        return [
            SessionItem(session=session, is_current=session.id == current_id)
            for session in self.sessions.list_active(principal.user.id)
        ]

    def revoke_session(self, principal: Principal, session_id: UUID, ctx: RequestContext) -> None:
        """
        Revoke one of the caller's other sessions.

        Raises:
            NotFoundError: Current session, someone else's, or already revoked
        """
        if session_id == principal.session.id:
            raise NotFoundError("Session not found")

        session = self.sessions.find_revocable(session_id, principal.user.id)
        if session is None:
            raise NotFoundError("Session not found")

        self.sessions.revoke(session.id)
        self.audit.record("session:revoke", "session", session.id, ctx)
        self.logger.info("session_revoked", session_id=str(session.id))

    def revoke_other_sessions(self, principal: Principal, ctx: RequestContext) -> int:
        """Revoke every session except the current one. Returns the count."""
        count = self.sessions.revoke_all_except(principal.user.id, principal.session.id)
        if count > 0:
            self.audit.record(
                "session:revoke_all",
                "user",
                principal.user.id,
                ctx,
                metadata={"revoked_count": count},
            )
        self.logger.info("other_sessions_revoked", user_id=str(principal.user.id), count=count)
        return count

    # --- Login helpers ---

    def _record_failed_attempt(self, user: User) -> tuple[int, bool]:
        """Increment the counter atomically and lock the account at the threshold."""
        User.objects.filter(pk=user.pk).update(
            failed_login_attempts=F("failed_login_attempts") + 1
        )
        user.refresh_from_db(fields=["failed_login_attempts"])
        attempts = user.failed_login_attempts

        if attempts < self.policy.max_failed_attempts:
            return attempts, False

        user.locked_until = timezone.now() + self.policy.lockout_duration
        User.objects.filter(pk=user.pk).update(locked_until=user.locked_until)

        self.logger.warning("account_locked", user_id=str(user.id), attempts=attempts)
        self.notifications.enqueue(
            NotificationJob.JobType.ACCOUNT_LOCKED,
            user.email,
            {
                "first_name": user.first_name or "User",
                "unlock_at": user.locked_until.isoformat(),
            },
        )
        return attempts, True

    def _reject_login(
        self,
        ctx: RequestContext,
        email: str,
        reason: str,
        user: User | None = None,
        **metadata: Any,
    ) -> NoReturn:
        timing_safe_delay(self.policy)
        self._audit_login_failure(ctx, email, reason, user, **metadata)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    def _audit_login_failure(
        self,
        ctx: RequestContext,
        email: str,
        reason: str,
        user: User | None = None,
        **metadata: Any,
    ) -> None:
        self.audit.record(
            "auth:login_failed",
            "user",
            user.id if user is not None else None,
            ctx,
            metadata={"email": email, "reason": reason, **metadata},
            organization_id=user.organization_id if user is not None else None,
        )
        self.logger.warning(
            "login_failed",
            reason=reason,
            user_id=str(user.id) if user is not None else None,
        )


def _profile_snapshot(profile: Profile) -> dict[str, Any]:
    return {
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "phone": profile.phone,
    }


def get_auth_service() -> AuthenticationService:
    """AuthenticationService wired to settings and the default sinks."""
    return AuthenticationService(
        policy=AuthPolicy.from_settings(),
        sessions=get_session_manager(),
        rbac=get_rbac_service(),
        audit=get_audit_sink(),
        notifications=get_notification_dispatcher(),
    )
