"""
RBAC models - roles, global permissions and the junction between them.
"""

from django.db import models
from django.db.models import Q
from uuid6 import uuid7

from apps.core.models import SoftDeleteAllManager, SoftDeleteManager, SoftDeleteMixin, TenantScopedModel


class Permission(models.Model):
    """
    Global, tenant-independent named capability, e.g. 'roles:write'.

    Seeded from apps.rbac.constants.PERMISSIONS by the seed_permissions command.
    """

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class RoleManager(SoftDeleteManager["Role"]):
    """Non-deleted roles, with a tenant-scoped entry point."""

    def for_org(self, organization_id) -> models.QuerySet["Role"]:
        return self.get_queryset().filter(organization_id=organization_id)


class Role(SoftDeleteMixin, TenantScopedModel):
    """
    Named bundle of permissions within an organization.

    Each organization has exactly one default role, created at registration,
    which is never renamed, deleted or edited.
    """

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, null=True)
    is_default = models.BooleanField(default=False)

    permissions = models.ManyToManyField(
        Permission,
        through="RolePermission",
        related_name="roles",
    )

    objects = RoleManager()
    all_objects = SoftDeleteAllManager()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "name"],
                condition=Q(deleted_at__isnull=True),
                name="rbac_role_unique_live_name_per_org",
            ),
            models.UniqueConstraint(
                fields=["organization"],
                condition=Q(is_default=True, deleted_at__isnull=True),
                name="rbac_role_single_default_per_org",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.organization_id})"

    def permission_names(self) -> list[str]:
        return sorted(self.permissions.values_list("name", flat=True))


class RolePermission(models.Model):
    """Junction row granting a permission to a role."""

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="role_permissions")
    permission = models.ForeignKey(
        Permission, on_delete=models.CASCADE, related_name="role_permissions"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["role", "permission"], name="rbac_role_permission_unique"),
        ]

    def __str__(self) -> str:
        return f"{self.role_id} -> {self.permission_id}"
