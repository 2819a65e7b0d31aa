"""
RBAC API schemas.
"""

from datetime import datetime
from uuid import UUID

from ninja import Schema
from pydantic import Field


class PermissionResponse(Schema):
    id: UUID
    name: str
    description: str


class PermissionListResponse(Schema):
    permissions: list[PermissionResponse]


class CreateRoleRequest(Schema):
    name: str = Field(..., min_length=1, max_length=100, examples=["Sales"])
    description: str | None = Field(None, max_length=500)


class UpdateRoleRequest(Schema):
    """Only fields present in the body are changed; `description: null` clears it."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)


class SetRolePermissionsRequest(Schema):
    permission_ids: list[UUID] = Field(..., description="Complete replacement set")


class RoleSummary(Schema):
    id: UUID
    name: str
    description: str | None
    is_default: bool
    user_count: int
    created_at: datetime
    updated_at: datetime


class RoleListResponse(Schema):
    roles: list[RoleSummary]


class RoleDetail(Schema):
    id: UUID
    name: str
    description: str | None
    is_default: bool
    permissions: list[PermissionResponse]
    created_at: datetime
    updated_at: datetime
