"""
Core models - shared base classes and utilities.
"""

from collections.abc import Iterable
from typing import Any, ClassVar, TypeVar

from django.db import models
from django.utils import timezone

_M = TypeVar("_M", bound=models.Model)


class TenantMismatchError(ValueError):
    """A child row references a parent that belongs to another organization."""


def assert_same_tenant(child: models.Model, **parents: models.Model | None) -> None:
    """
    Verify that every referenced parent shares the child's organization.

    Called at write time because the storage layer only knows plain foreign keys,
    not (id, organization_id) composites.

    Raises:
        TenantMismatchError: If any parent lives in a different organization.
    """
    org_id = getattr(child, "organization_id", None)
    for field_name, parent in parents.items():
        if parent is None:
            continue
        parent_org_id = getattr(parent, "organization_id", None)
        if parent_org_id != org_id:
            raise TenantMismatchError(
                f"{type(child).__name__}.{field_name} belongs to organization "
                f"{parent_org_id}, expected {org_id}"
            )


class TimestampedModel(models.Model):
    """
    Abstract base model with created_at/updated_at timestamps.

    All business entities should inherit from this or TenantScopedModel.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class SoftDeleteQuerySet(models.QuerySet[_M]):
    """
    QuerySet whose delete() tags rows as deleted instead of removing them.

    Use hard_delete() when a row really has to go.
    """

    def delete(self) -> tuple[int, dict[str, int]]:  # type: ignore[override]
        count = self.update(deleted_at=timezone.now())
        return count, {self.model._meta.label: count}

    def hard_delete(self) -> tuple[int, dict[str, int]]:
        return super().delete()

    def alive(self) -> "SoftDeleteQuerySet[_M]":
        return self.filter(deleted_at__isnull=True)

    def dead(self) -> "SoftDeleteQuerySet[_M]":
        return self.filter(deleted_at__isnull=False)


class SoftDeleteManager(models.Manager[_M]):
    """Default manager: only rows that are not soft-deleted."""

    def get_queryset(self) -> SoftDeleteQuerySet[_M]:
        return SoftDeleteQuerySet(self.model, using=self._db).alive()


class SoftDeleteAllManager(models.Manager[_M]):
    """Manager that includes soft-deleted rows."""

    def get_queryset(self) -> SoftDeleteQuerySet[_M]:
        return SoftDeleteQuerySet(self.model, using=self._db)

    def dead(self) -> SoftDeleteQuerySet[_M]:
        return self.get_queryset().dead()


class SoftDeleteMixin(models.Model):
    """
    Explicit active/deleted tag for entities that are never physically removed.

    Must come before TimestampedModel in the MRO so soft_delete() can bump
    updated_at.

    Managers:
    - .objects: excludes deleted rows (every normal query)
    - .all_objects: includes deleted rows
    """

    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp when soft-deleted. NULL = active.",
    )

    objects: Any = SoftDeleteManager()
    all_objects: Any = SoftDeleteAllManager()

    class Meta:
        abstract = True

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, update_timestamp: bool = True) -> None:
        """Tag this row as deleted."""
        self.deleted_at = timezone.now()
        update_fields = ["deleted_at"]
        if update_timestamp and hasattr(self, "updated_at"):
            update_fields.append("updated_at")
        self.save(update_fields=update_fields)

    def restore(self) -> None:
        """Clear the deleted tag."""
        self.deleted_at = None
        update_fields = ["deleted_at"]
        if hasattr(self, "updated_at"):
            update_fields.append("updated_at")
        self.save(update_fields=update_fields)

    def delete(self, using: Any = None, keep_parents: bool = False) -> tuple[int, dict[str, int]]:
        self.soft_delete()
        return 1, {self._meta.label: 1}

    def hard_delete(self) -> tuple[int, dict[str, int]]:
        """Permanently remove the row."""
        return super().delete()


class TenantScopedModel(TimestampedModel):
    """
    Abstract base model for all organization-scoped entities.

    Provides:
    - Automatic organization FK
    - Timestamps from TimestampedModel
    - Same-tenant checks for the FKs named in tenant_parent_fields, run by
      clean_tenant() on every save

    Usage:
        class Project(TenantScopedModel):
            tenant_parent_fields = ("owner",)

            owner = models.ForeignKey("accounts.User", ...)
    """

    tenant_parent_fields: ClassVar[tuple[str, ...]] = ()

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.PROTECT,
        related_name="%(class)s_set",
    )

    class Meta:
        abstract = True

    def clean_tenant(self, fields: Iterable[str] | None = None) -> None:
        """
        Check the named parent FKs (default: all of tenant_parent_fields).

        Raises:
            TenantMismatchError: A parent belongs to another organization.
        """
        names = self.tenant_parent_fields if fields is None else tuple(fields)
        assert_same_tenant(self, **{name: getattr(self, name) for name in names})

    def save(self, *args: Any, **kwargs: Any) -> None:
        update_fields = kwargs.get("update_fields")
        if update_fields is None:
            self.clean_tenant()
        else:
            self.clean_tenant(
                name
                for name in self.tenant_parent_fields
                if name in update_fields or f"{name}_id" in update_fields
            )
        super().save(*args, **kwargs)
