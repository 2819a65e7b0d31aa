"""
Invitation API schemas.
"""

from datetime import datetime
from uuid import UUID

from ninja import Schema
from pydantic import EmailStr, Field

from apps.accounts.schemas import NormalizedEmailSchema


class CreateInvitationRequest(NormalizedEmailSchema):
    email: EmailStr = Field(..., examples=["new.hire@acme.com"])
    role_id: UUID


class AcceptInvitationRequest(Schema):
    token: str = Field(..., min_length=1, description="Raw token from the invitation link")
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)


class InvitationRole(Schema):
    id: UUID
    name: str


class InvitedBy(Schema):
    id: UUID
    email: str
    first_name: str


class InvitationResponse(Schema):
    id: UUID
    email: str
    role: InvitationRole
    invited_by: InvitedBy
    status: str
    expires_at: datetime
    created_at: datetime


class InvitationListResponse(Schema):
    invitations: list[InvitationResponse]
