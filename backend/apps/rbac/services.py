"""
RBAC services - role CRUD, permission assignment and permission-set resolution.

Every role lookup is scoped to the caller's organization: a role in another
tenant reads as not found, never forbidden.
"""

from typing import Any
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, QuerySet

from apps.core.context import RequestContext
from apps.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from apps.core.logging import get_logger
from apps.events.services import AuditSink, get_audit_sink
from apps.rbac.constants import DEFAULT_ROLE_DESCRIPTION, DEFAULT_ROLE_NAME, PERMISSIONS
from apps.rbac.models import Permission, Role, RolePermission

UNSET: Any = object()


def resolve_permissions(role_id: UUID) -> frozenset[str]:
    """Permission names granted to a role."""
    return frozenset(
        Permission.objects.filter(role_permissions__role_id=role_id).values_list("name", flat=True)
    )


def seed_permissions(catalog: dict[str, str] | None = None) -> tuple[int, int]:
    """
    Upsert the permission catalog by name.

    Returns (created, updated). Permissions missing from the catalog are left alone.
    """
    created = updated = 0
    with transaction.atomic():
        for name, description in (catalog or PERMISSIONS).items():
            _, was_created = Permission.objects.update_or_create(
                name=name, defaults={"description": description}
            )
            if was_created:
                created += 1
            else:
                updated += 1
    return created, updated


class RbacService:
    """Role and permission management for one organization at a time."""

    def __init__(
        self,
        audit: AuditSink | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.audit = audit or get_audit_sink()
        self.logger = logger or get_logger(__name__)

    # --- Queries ---

    def resolve_permissions(self, role_id: UUID) -> frozenset[str]:
        return resolve_permissions(role_id)

    def list_permissions(self) -> list[Permission]:
        return list(Permission.objects.order_by("name"))

    def list_roles(self, organization_id: UUID) -> list[Role]:
        """Roles with user_count of non-deleted users, ordered by name."""
        return list(
            Role.objects.for_org(organization_id)
            .annotate(user_count=Count("users", filter=Q(users__deleted_at__isnull=True)))
            .order_by("name")
        )

    def get_role(self, organization_id: UUID, role_id: UUID) -> Role:
        """
        Raises:
            NotFoundError: Role missing, deleted, or in another organization
        """
        role = Role.objects.for_org(organization_id).filter(pk=role_id).first()
        if role is None:
            raise NotFoundError("Role not found")
        return role

    def role_permissions(self, role: Role) -> list[Permission]:
        return list(Permission.objects.filter(role_permissions__role=role).order_by("name"))

    # --- Commands ---

    def create_default_role(self, organization_id: UUID) -> Role:
        """
        Create the immutable, fully-privileged role for a new organization.

        Must run inside the registration transaction.
        """
        role = Role.objects.create(
            organization_id=organization_id,
            name=DEFAULT_ROLE_NAME,
            description=DEFAULT_ROLE_DESCRIPTION,
            is_default=True,
        )
        RolePermission.objects.bulk_create(
            [RolePermission(role=role, permission=p) for p in Permission.objects.all()]
        )
        return role

    def create_role(
        self,
        organization_id: UUID,
        name: str,
        ctx: RequestContext,
        description: str | None = None,
    ) -> Role:
        """
        Raises:
            ConflictError: A live role with this name exists in the organization
        """
        if self._name_taken(organization_id, name):
            raise ConflictError("Role name already exists")

        try:
            with transaction.atomic():
                role = Role.objects.create(
                    organization_id=organization_id,
                    name=name,
                    description=description,
                )
        except IntegrityError:
            raise ConflictError("Role name already exists") from None

        self.audit.record(
            "role:create",
            "role",
            role.id,
            ctx,
            after={"name": role.name, "description": role.description},
        )
        self.logger.info("role_created", role_id=str(role.id), name=name)
        return role

    def update_role(
        self,
        organization_id: UUID,
        role_id: UUID,
        ctx: RequestContext,
        name: str | None = None,
        description: str | None = UNSET,
    ) -> Role:
        """
        Rename and/or re-describe a role. Omitted fields are left alone.

        Raises:
            NotFoundError: Role not in this organization
            ForbiddenError: Renaming the default role
            ConflictError: New name already used by another live role
        """
        role = self.get_role(organization_id, role_id)

        renaming = name is not None and name != role.name
        if role.is_default and renaming:
            raise ForbiddenError("Cannot rename default role")
        if renaming and self._name_taken(organization_id, name, exclude_id=role.id):  # type: ignore[arg-type]
            raise ConflictError("Role name already exists")

        if name is None and description is UNSET:
            return role

        before = {"name": role.name, "description": role.description}
        update_fields = ["updated_at"]
        if name is not None:
            role.name = name
            update_fields.append("name")
        if description is not UNSET:
            role.description = description
            update_fields.append("description")

        try:
            with transaction.atomic():
                role.save(update_fields=update_fields)
        except IntegrityError:
            raise ConflictError("Role name already exists") from None

        self.audit.record(
            "role:update",
            "role",
            role.id,
            ctx,
            before=before,
            after={"name": role.name, "description": role.description},
        )
        self.logger.info("role_updated", role_id=str(role.id))
        return role

    def delete_role(self, organization_id: UUID, role_id: UUID, ctx: RequestContext) -> None:
        """
        Soft-delete a role.

        Raises:
            NotFoundError: Role not in this organization
            ForbiddenError: Role is the default role
            ConflictError: Live users are still assigned to it
        """
        role = self.get_role(organization_id, role_id)
        if role.is_default:
            raise ForbiddenError("Cannot delete default role")

        user_count = role.users.filter(deleted_at__isnull=True).count()
        if user_count > 0:
            raise ConflictError(f"Cannot delete role with {user_count} assigned user(s)")

        role.soft_delete()

        self.audit.record("role:delete", "role", role.id, ctx, metadata={"name": role.name})
        self.logger.info("role_deleted", role_id=str(role.id), name=role.name)

    def set_role_permissions(
        self,
        organization_id: UUID,
        role_id: UUID,
        permission_ids: list[UUID],
        ctx: RequestContext,
    ) -> tuple[Role, list[Permission]]:
        """
        Replace the role's permission set.

        Raises:
            NotFoundError: Role not in this organization
            ForbiddenError: Role is the default role
            ValidationError: Any id is unknown or repeated
        """
        role = self.get_role(organization_id, role_id)
        if role.is_default:
            raise ForbiddenError("Cannot modify default role permissions")

        unique_ids = set(permission_ids)
        permissions: QuerySet[Permission] = Permission.objects.filter(pk__in=unique_ids)
        if len(unique_ids) != len(permission_ids) or permissions.count() != len(unique_ids):
            raise ValidationError("One or more permission IDs are invalid")

        before = sorted(p.name for p in self.role_permissions(role))

        with transaction.atomic():
            RolePermission.objects.filter(role=role).delete()
            RolePermission.objects.bulk_create(
                [RolePermission(role=role, permission=p) for p in permissions]
            )

        after_permissions = self.role_permissions(role)
        self.audit.record(
            "role:permission_grant",
            "role",
            role.id,
            ctx,
            before={"permissions": before},
            after={"permissions": [p.name for p in after_permissions]},
        )
        self.logger.info(
            "role_permissions_updated", role_id=str(role.id), count=len(after_permissions)
        )
        return role, after_permissions

    def _name_taken(self, organization_id: UUID, name: str, exclude_id: UUID | None = None) -> bool:
        queryset = Role.objects.for_org(organization_id).filter(name=name)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        return queryset.exists()


def get_rbac_service() -> RbacService:
    return RbacService()
