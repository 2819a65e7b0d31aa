"""
Session manager - issuance, resolution, revocation and expiry of server-side sessions.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from uuid import UUID

import structlog
from django.db import DatabaseError
from django.utils import timezone

from apps.accounts.crypto import generate_opaque_token, hash_token
from apps.accounts.models import Session, User
from apps.accounts.policy import AuthPolicy
from apps.core.logging import get_logger
from apps.organizations.models import Organization
from apps.rbac.models import Role

PermissionResolver = Callable[[UUID], frozenset[str]]


class SessionFailure(StrEnum):
    """Why a secret did not resolve. ABSENT/EXPIRED/REVOKED look identical to callers."""

    ABSENT = "absent"
    EXPIRED = "expired"
    REVOKED = "revoked"
    USER_INACTIVE = "user_inactive"


class SessionResolutionError(Exception):
    """Raised by SessionManager.resolve()."""

    def __init__(self, reason: SessionFailure) -> None:
        self.reason = reason
        super().__init__(reason.value)


@dataclass(frozen=True)
class SessionContext:
    """Everything the transport layer needs about an authenticated caller."""

    session: Session
    user: User
    organization: Organization
    role: Role
    permissions: frozenset[str]


@dataclass(frozen=True)
class CreatedSession:
    """raw_secret is handed to the client once and never stored."""

    raw_secret: str
    session: Session


class SessionManager:
    """
    Session lifecycle.

    Active -> Revoked is an explicit, one-way write. Active -> Expired is implied
    by expires_at and never written.
    """

    def __init__(
        self,
        policy: AuthPolicy,
        permission_resolver: PermissionResolver,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.policy = policy
        self.permission_resolver = permission_resolver
        self.logger = logger or get_logger(__name__)

    def create(
        self,
        user: User,
        ip_address: str | None,
        user_agent: str,
        duration: timedelta,
    ) -> CreatedSession:
        """Persist a new session for user; call inside the caller's transaction."""
        raw_secret = generate_opaque_token()
        now = timezone.now()
        session = Session.objects.create(
            user=user,
            organization_id=user.organization_id,
            sid_hash=hash_token(raw_secret),
            expires_at=now + duration,
            ip_address=ip_address,
            user_agent=user_agent or "",
            last_accessed_at=now,
        )
        self.logger.info(
            "session_created",
            session_id=str(session.id),
            user_id=str(user.id),
            expires_at=session.expires_at.isoformat(),
        )
        return CreatedSession(raw_secret=raw_secret, session=session)

    def resolve(self, raw_secret: str | None) -> SessionContext:
        """
        Resolve a raw secret into a full caller context.

        Raises:
            SessionResolutionError: absent, expired, revoked or user_inactive
        """
        if not raw_secret:
            raise SessionResolutionError(SessionFailure.ABSENT)

        session = (
            Session.objects.select_related(
                "user", "user__organization", "user__role", "user__profile"
            )
            .filter(sid_hash=hash_token(raw_secret))
            .first()
        )
        if session is None:
            raise SessionResolutionError(SessionFailure.ABSENT)

        if session.is_revoked:
            raise SessionResolutionError(SessionFailure.REVOKED)

        if session.is_expired:
            self._discard_expired(session)
            raise SessionResolutionError(SessionFailure.EXPIRED)

        user = session.user
        if user.is_deleted or user.organization.is_deleted:
            raise SessionResolutionError(SessionFailure.ABSENT)

        if not user.is_active:
            raise SessionResolutionError(SessionFailure.USER_INACTIVE)

        self.touch(session)

        return SessionContext(
            session=session,
            user=user,
            organization=user.organization,
            role=user.role,
            permissions=self.permission_resolver(user.role_id),
        )

    def touch(self, session: Session) -> bool:
        """
        Bump last_accessed_at at most once per threshold.

        Best-effort: a failed write is logged, never raised.
        """
        now = timezone.now()
        if now - session.last_accessed_at < self.policy.session_touch_threshold:
            return False
        try:
            Session.objects.filter(pk=session.pk).update(last_accessed_at=now)
        except DatabaseError:
            self.logger.warning("session_touch_failed", session_id=str(session.pk), exc_info=True)
            return False
        session.last_accessed_at = now
        return True

    def revoke(self, session_id: UUID) -> bool:
        """Set revoked_at. Re-revoking is a no-op; returns whether a row changed."""
        updated = Session.objects.filter(pk=session_id, revoked_at__isnull=True).update(
            revoked_at=timezone.now()
        )
        return updated == 1

    def revoke_all_except(self, user_id: UUID, keep_id: UUID) -> int:
        """Revoke every other live session of the user. Returns the count."""
        return (
            Session.objects.filter(user_id=user_id, revoked_at__isnull=True)
            .exclude(pk=keep_id)
            .update(revoked_at=timezone.now())
        )

    def delete(self, session_id: UUID) -> int:
        deleted, _ = Session.objects.filter(pk=session_id).delete()
        return deleted

    def delete_all_for_user(self, user_id: UUID) -> int:
        deleted, _ = Session.objects.filter(user_id=user_id).delete()
        return deleted

    def list_active(self, user_id: UUID) -> list[Session]:
        """Non-revoked, unexpired sessions, least recently used first."""
        return list(
            Session.objects.filter(
                user_id=user_id,
                revoked_at__isnull=True,
                expires_at__gt=timezone.now(),
            ).order_by("last_accessed_at")
        )

    def find_revocable(self, session_id: UUID, user_id: UUID) -> Session | None:
        """A non-revoked session owned by the user, or None."""
        return Session.objects.filter(
            pk=session_id, user_id=user_id, revoked_at__isnull=True
        ).first()

    def _discard_expired(self, session: Session) -> None:
        try:
            session.delete()
        except DatabaseError:
            self.logger.warning(
                "expired_session_delete_failed", session_id=str(session.pk), exc_info=True
            )


def get_session_manager() -> SessionManager:
    """SessionManager wired to settings and the RBAC permission resolver."""
    from apps.rbac.services import resolve_permissions

    return SessionManager(AuthPolicy.from_settings(), permission_resolver=resolve_permissions)
