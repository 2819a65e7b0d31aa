"""
Client model - a tenant-owned business record.
"""

from django.db import models
from uuid6 import uuid7

from apps.core.models import SoftDeleteMixin, TenantScopedModel


class Client(SoftDeleteMixin, TenantScopedModel):
    """A customer of the organization. Soft-deleted, never removed."""

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="clients_created",
    )

    tenant_parent_fields = ("created_by",)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name
