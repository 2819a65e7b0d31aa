"""
RBAC API endpoints - permission catalog and role management.

All role lookups are scoped to the caller's organization; another tenant's
role id answers 404.
"""

from uuid import UUID

from ninja import Router

from apps.core.context import RequestContext
from apps.core.schemas import ErrorResponse
from apps.core.security import SessionAuth
from apps.core.types import AuthenticatedHttpRequest
from apps.rbac.constants import Permissions
from apps.rbac.models import Permission, Role
from apps.rbac.schemas import (
    CreateRoleRequest,
    PermissionListResponse,
    PermissionResponse,
    RoleDetail,
    RoleListResponse,
    RoleSummary,
    SetRolePermissionsRequest,
    UpdateRoleRequest,
)
from apps.rbac.services import UNSET, get_rbac_service

router = Router(tags=["roles"])
permissions_router = Router(tags=["roles"])


def _permission(permission: Permission) -> PermissionResponse:
    return PermissionResponse(
        id=permission.id, name=permission.name, description=permission.description
    )


def _role_detail(role: Role, permissions: list[Permission]) -> RoleDetail:
    return RoleDetail(
        id=role.id,
        name=role.name,
        description=role.description,
        is_default=role.is_default,
        permissions=[_permission(p) for p in permissions],
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


@permissions_router.get(
    "",
    response={200: PermissionListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=SessionAuth(Permissions.ROLES_READ),
    operation_id="listPermissions",
    summary="List all permissions",
)
def list_permissions(request: AuthenticatedHttpRequest) -> PermissionListResponse:
    permissions = get_rbac_service().list_permissions()
    return PermissionListResponse(permissions=[_permission(p) for p in permissions])


@router.get(
    "",
    response={200: RoleListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=SessionAuth(Permissions.ROLES_READ),
    operation_id="listRoles",
    summary="List roles in the organization",
)
def list_roles(request: AuthenticatedHttpRequest) -> RoleListResponse:
    roles = get_rbac_service().list_roles(request.auth.organization.id)
    return RoleListResponse(
        roles=[
            RoleSummary(
                id=role.id,
                name=role.name,
                description=role.description,
                is_default=role.is_default,
                user_count=role.user_count,
                created_at=role.created_at,
                updated_at=role.updated_at,
            )
            for role in roles
        ]
    )


@router.post(
    "",
    response={
        201: RoleDetail,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        409: ErrorResponse,
    },
    auth=SessionAuth(Permissions.ROLES_WRITE),
    operation_id="createRole",
    summary="Create a role",
)
def create_role(
    request: AuthenticatedHttpRequest, payload: CreateRoleRequest
) -> tuple[int, RoleDetail]:
    """New roles start with no permissions."""
    role = get_rbac_service().create_role(
        request.auth.organization.id,
        payload.name,
        RequestContext.from_request(request),
        description=payload.description,
    )
    return 201, _role_detail(role, [])


@router.get(
    "/{role_id}",
    response={200: RoleDetail, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=SessionAuth(Permissions.ROLES_READ),
    operation_id="getRole",
    summary="Get a role with its permissions",
)
def get_role(request: AuthenticatedHttpRequest, role_id: UUID) -> RoleDetail:
    service = get_rbac_service()
    role = service.get_role(request.auth.organization.id, role_id)
    return _role_detail(role, service.role_permissions(role))


@router.patch(
    "/{role_id}",
    response={
        200: RoleDetail,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=SessionAuth(Permissions.ROLES_WRITE),
    operation_id="updateRole",
    summary="Rename or re-describe a role",
)
def update_role(
    request: AuthenticatedHttpRequest, role_id: UUID, payload: UpdateRoleRequest
) -> RoleDetail:
    service = get_rbac_service()
    role = service.update_role(
        request.auth.organization.id,
        role_id,
        RequestContext.from_request(request),
        name=payload.name,
        description=(
            payload.description if "description" in payload.model_fields_set else UNSET
        ),
    )
    return _role_detail(role, service.role_permissions(role))


@router.delete(
    "/{role_id}",
    response={
        204: None,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=SessionAuth(Permissions.ROLES_DELETE),
    operation_id="deleteRole",
    summary="Delete a role",
)
def delete_role(request: AuthenticatedHttpRequest, role_id: UUID):
    """The default role and roles with assigned users cannot be deleted."""
    get_rbac_service().delete_role(
        request.auth.organization.id, role_id, RequestContext.from_request(request)
    )
    return 204, None


@router.put(
    "/{role_id}/permissions",
    response={
        200: RoleDetail,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
    },
    auth=SessionAuth(Permissions.ROLES_WRITE),
    operation_id="setRolePermissions",
    summary="Replace a role's permissions",
)
def set_role_permissions(
    request: AuthenticatedHttpRequest, role_id: UUID, payload: SetRolePermissionsRequest
) -> RoleDetail:
    role, permissions = get_rbac_service().set_role_permissions(
        request.auth.organization.id,
        role_id,
        payload.permission_ids,
        RequestContext.from_request(request),
    )
    return _role_detail(role, permissions)
