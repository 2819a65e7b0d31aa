"""
Invitation API endpoints.
"""

from uuid import UUID

from django.http import HttpRequest
from ninja import Router

from apps.core.context import RequestContext
from apps.core.schemas import ErrorResponse, MessageResponse
from apps.core.security import SessionAuth
from apps.core.types import AuthenticatedHttpRequest
from apps.invitations.models import Invitation
from apps.invitations.schemas import (
    AcceptInvitationRequest,
    CreateInvitationRequest,
    InvitationListResponse,
    InvitationResponse,
)
from apps.invitations.services import get_invitation_service
from apps.rbac.constants import Permissions

router = Router(tags=["invitations"])


def _invitation_response(invitation: Invitation) -> InvitationResponse:
    inviter = invitation.invited_by
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role={"id": invitation.role.id, "name": invitation.role.name},
        invited_by={"id": inviter.id, "email": inviter.email, "first_name": inviter.first_name},
        status=invitation.status,
        expires_at=invitation.expires_at,
        created_at=invitation.created_at,
    )


@router.get(
    "",
    response={200: InvitationListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=SessionAuth(Permissions.INVITATIONS_READ),
    operation_id="listInvitations",
    summary="List pending invitations",
)
def list_invitations(request: AuthenticatedHttpRequest) -> InvitationListResponse:
    invitations = get_invitation_service().list_pending_invitations(request.auth.organization.id)
    return InvitationListResponse(invitations=[_invitation_response(i) for i in invitations])


@router.post(
    "",
    response={
        201: InvitationResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=SessionAuth(Permissions.INVITATIONS_CREATE),
    operation_id="createInvitation",
    summary="Invite a user to the organization",
)
def create_invitation(
    request: AuthenticatedHttpRequest, payload: CreateInvitationRequest
) -> tuple[int, InvitationResponse]:
    """Queue an invitation email carrying a 48-hour, single-use link."""
    invitation = get_invitation_service().create_invitation(
        request.auth,
        payload.email,
        payload.role_id,
        RequestContext.from_request(request),
    )
    return 201, _invitation_response(invitation)


@router.post(
    "/accept",
    response={200: MessageResponse, 400: ErrorResponse, 401: ErrorResponse, 409: ErrorResponse},
    operation_id="acceptInvitation",
    summary="Accept an invitation and create the account",
)
def accept_invitation(request: HttpRequest, payload: AcceptInvitationRequest) -> MessageResponse:
    get_invitation_service().accept_invitation(
        payload.token,
        payload.password,
        payload.first_name,
        payload.last_name,
        RequestContext.from_request(request),
    )
    return MessageResponse(message="Account created successfully. You can now log in.")


@router.delete(
    "/{invitation_id}",
    response={204: None, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=SessionAuth(Permissions.INVITATIONS_DELETE),
    operation_id="revokeInvitation",
    summary="Revoke a pending invitation",
)
def revoke_invitation(request: AuthenticatedHttpRequest, invitation_id: UUID):
    get_invitation_service().revoke_invitation(
        request.auth, invitation_id, RequestContext.from_request(request)
    )
    return 204, None
