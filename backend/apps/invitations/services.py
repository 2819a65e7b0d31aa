"""
Invitation services - invite, accept, list and revoke.
"""

from dataclasses import dataclass
from uuid import UUID

import structlog
from django.db import IntegrityError
from django.db.models import QuerySet
from django.utils import timezone

from apps.accounts.crypto import hash_password
from apps.accounts.models import Profile, User
from apps.accounts.passwords import format_ttl
from apps.accounts.policy import AuthPolicy
from apps.accounts.tokens import RacePolicy, SingleUseTokenService
from apps.core.auth import Principal
from apps.core.context import RequestContext
from apps.core.errors import ConflictError, ForbiddenError, NotFoundError
from apps.core.logging import get_logger
from apps.core.utils import normalize_email
from apps.events.models import NotificationJob
from apps.events.notifications import NotificationDispatcher, get_notification_dispatcher
from apps.events.services import AuditSink, get_audit_sink
from apps.invitations.models import Invitation
from apps.rbac.services import RbacService, get_rbac_service

INVALID_INVITATION = "Invalid or expired invitation"


def _tenant_live(invitation: Invitation) -> bool:
    return not invitation.organization.is_deleted and not invitation.role.is_deleted


@dataclass(frozen=True)
class AcceptResult:
    """user is None when a concurrent request accepted the invitation first."""

    invitation: Invitation
    user: User | None


class InvitationService:
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
        self.tokens = SingleUseTokenService(
            Invitation,
            name="invitation",
            invalid_message=INVALID_INVITATION,
            race_policy=RacePolicy.IDEMPOTENT,
            policy=policy,
            subject_field=None,
            consumed_field="accepted_at",
            open_filter={"revoked_at__isnull": True},
            select_related=("organization", "role", "invited_by"),
            logger=self.logger,
        )

    def create_invitation(
        self,
        principal: Principal,
        email: str,
        role_id: UUID,
        ctx: RequestContext,
    ) -> Invitation:
        """
        Invite an email address to the caller's organization.

        Raises:
            NotFoundError: Role not in this organization
            ForbiddenError: Role is the default (admin) role
            ConflictError: Email registered, or an invitation is already pending
        """
        organization = principal.organization
        email = normalize_email(email)

        role = self.rbac.get_role(organization.id, role_id)
        if role.is_default:
            raise ForbiddenError("Cannot invite to admin role")

        if User.objects.email_exists(email):
            raise ConflictError("Email already registered")

        if self._pending_for(organization.id, email).exists():
            raise ConflictError("Invitation already pending")

        issued = self.tokens.issue(
            self.policy.invitation_ttl,
            organization=organization,
            email=email,
            role=role,
            invited_by=principal.user,
        )
        invitation = issued.record

        self.notifications.enqueue(
            NotificationJob.JobType.INVITATION,
            email,
            {
                "inviter_name": principal.user.first_name or "Your colleague",
                "organization_name": organization.name,
                "role_name": role.name,
                "invite_url": self.policy.frontend_link("/accept-invitation", issued.raw),
                "expires_in": format_ttl(self.policy.invitation_ttl),
            },
        )
        self.audit.record(
            "invitation:create",
            "invitation",
            invitation.id,
            ctx,
            metadata={"email": email, "role_id": str(role.id), "role_name": role.name},
        )
        self.logger.info(
            "invitation_created",
            invitation_id=str(invitation.id),
            role_id=str(role.id),
        )
        return invitation

    def accept_invitation(
        self,
        token: str,
        password: str,
        first_name: str,
        last_name: str,
        ctx: RequestContext,
    ) -> AcceptResult:
        """
        Create the invited user, verified and active, and close the invitation.

        The email check runs inside the accepting transaction, so an address
        registered after the invitation was sent rolls the acceptance back.

        Raises:
            UnauthorizedError: Invitation unusable, or its organization or role deleted
            ConflictError: Email registered since the invitation was sent
        """
        invitation = self.tokens.find_usable(token, extra_check=_tenant_live)

        password_hash = hash_password(password)
        created: list[User] = []

        def create_member(accepted: Invitation) -> None:
            if User.objects.email_exists(accepted.email):
                raise ConflictError("Email already registered")
            user = User.objects.create(
                organization=accepted.organization,
                role=accepted.role,
                email=accepted.email,
                password_hash=password_hash,
                email_verified_at=timezone.now(),
                is_active=True,
            )
            Profile.objects.create(user=user, first_name=first_name, last_name=last_name)
            created.append(user)

        try:
            result = self.tokens.consume(invitation, side_effect=create_member)
        except IntegrityError:
            raise ConflictError("Email already registered") from None

        invitation = result.record
        if not result.won:
            return AcceptResult(invitation=invitation, user=None)

        user = created[0]
        self.audit.record(
            "invitation:accept",
            "invitation",
            invitation.id,
            ctx,
            metadata={"email": invitation.email, "user_id": str(user.id)},
            organization_id=invitation.organization_id,
            actor_id=user.id,
        )
        self.logger.info(
            "invitation_accepted",
            invitation_id=str(invitation.id),
            user_id=str(user.id),
            organization_id=str(invitation.organization_id),
        )
        return AcceptResult(invitation=invitation, user=user)

    def list_pending_invitations(self, organization_id: UUID) -> list[Invitation]:
        """Open invitations, oldest first."""
        return list(
            Invitation.objects.filter(
                organization_id=organization_id,
                accepted_at__isnull=True,
                revoked_at__isnull=True,
                expires_at__gt=timezone.now(),
            )
            .select_related("role", "invited_by", "invited_by__profile")
            .order_by("created_at")
        )

    def revoke_invitation(
        self,
        principal: Principal,
        invitation_id: UUID,
        ctx: RequestContext,
    ) -> None:
        """
        Raises:
            NotFoundError: Missing, in another organization, or expired
            ForbiddenError: Already accepted or already revoked
        """
        invitation = Invitation.objects.filter(
            pk=invitation_id, organization_id=principal.organization.id
        ).first()
        if invitation is None:
            raise NotFoundError("Invitation not found")
        if invitation.accepted_at is not None:
            raise ForbiddenError("Invitation has already been accepted")
        if invitation.revoked_at is not None:
            raise ForbiddenError("Invitation has already been revoked")
        if invitation.status == Invitation.Status.EXPIRED:
            raise NotFoundError("Invitation not found")

        updated = Invitation.objects.filter(
            pk=invitation.pk, accepted_at__isnull=True, revoked_at__isnull=True
        ).update(revoked_at=timezone.now())
        if updated == 0:
            raise ForbiddenError("Invitation is no longer pending")

        self.audit.record(
            "invitation:revoke",
            "invitation",
            invitation.id,
            ctx,
            metadata={"email": invitation.email},
        )
        self.logger.info("invitation_revoked", invitation_id=str(invitation.id))

    def _pending_for(self, organization_id: UUID, email: str) -> QuerySet[Invitation]:
        return Invitation.objects.filter(
            organization_id=organization_id,
            email__iexact=email,
            accepted_at__isnull=True,
            revoked_at__isnull=True,
            expires_at__gt=timezone.now(),
        )


def get_invitation_service() -> InvitationService:
    return InvitationService(
        policy=AuthPolicy.from_settings(),
        rbac=get_rbac_service(),
        audit=get_audit_sink(),
        notifications=get_notification_dispatcher(),
    )
