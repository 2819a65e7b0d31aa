"""
Auth API schemas - Pydantic models for request/response.
"""

from datetime import datetime
from uuid import UUID

from ninja import Schema
from pydantic import EmailStr, Field, field_validator

from apps.core.utils import normalize_email
from apps.organizations.models import SLUG_PATTERN


class NormalizedEmailSchema(Schema):
    """Mixin that normalizes an `email` field."""

    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def normalize(cls, v):
        return normalize_email(v) if isinstance(v, str) else v


# =============================================================================
# Request Schemas
# =============================================================================


class OrganizationInput(Schema):
    name: str = Field(..., min_length=1, max_length=255, examples=["Acme Corp"])
    slug: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=SLUG_PATTERN,
        description="URL-safe identifier (lowercase, hyphens allowed)",
        examples=["acme-corp"],
    )


class RegisterRequest(NormalizedEmailSchema):
    """New organization plus its first admin."""

    organization: OrganizationInput
    email: EmailStr = Field(..., examples=["owner@acme.com"])
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(NormalizedEmailSchema):
    email: EmailStr = Field(..., examples=["user@acme.com"])
    password: str = Field(..., min_length=1, max_length=72)
    remember_me: bool = Field(False, description="Extend the session to 30 days")


class UpdateProfileRequest(Schema):
    """Only fields present in the body are changed."""

    first_name: str | None = Field(None, min_length=1, max_length=255)
    last_name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=50)


class TokenRequest(Schema):
    token: str = Field(..., min_length=1, description="Raw token from the emailed link")


class EmailRequest(NormalizedEmailSchema):
    email: EmailStr


class ResetPasswordRequest(Schema):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=72)


class ChangePasswordRequest(Schema):
    current_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=8, max_length=72)


# =============================================================================
# Response Schemas
# =============================================================================


class ProfileInfo(Schema):
    first_name: str
    last_name: str
    phone: str | None = None


class OrganizationInfo(Schema):
    id: UUID
    name: str
    slug: str


class RoleInfo(Schema):
    id: UUID
    name: str


class UserInfo(Schema):
    """Current user with tenant context."""

    id: UUID
    email: str
    profile: ProfileInfo
    organization: OrganizationInfo
    role: RoleInfo


class AuthResponse(Schema):
    """Response for login and /auth/me."""

    user: UserInfo
    permissions: list[str] = Field(..., description="Permission names granted by the role")


class LoginResponse(AuthResponse):
    session_token: str = Field(
        ...,
        description="Session secret, also set as an httpOnly cookie. Shown once.",
    )
    expires_in: int = Field(..., description="Session lifetime in seconds")


class SessionInfo(Schema):
    id: UUID
    ip_address: str | None
    user_agent: str
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    is_current: bool


class SessionListResponse(Schema):
    sessions: list[SessionInfo]


class RevokedSessionsResponse(Schema):
    revoked_count: int
