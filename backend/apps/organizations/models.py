"""
Organizations models - multi-tenancy foundation.
"""

from django.core.validators import MinLengthValidator, RegexValidator
from django.db import models
from uuid6 import uuid7

from apps.core.models import SoftDeleteAllManager, SoftDeleteManager, SoftDeleteMixin, TimestampedModel

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class Organization(SoftDeleteMixin, TimestampedModel):
    """
    Tenant boundary.

    Every other entity carries an organization reference. Organizations are
    soft-deleted only; a deleted organization makes its users unable to log in
    or resolve sessions.
    """

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)

    name = models.CharField(max_length=255)
    slug = models.CharField(
        max_length=50,
        unique=True,
        validators=[MinLengthValidator(3), RegexValidator(SLUG_PATTERN)],
        help_text="Globally unique URL-safe identifier, e.g. 'acme-corp'",
    )

    objects = SoftDeleteManager()
    all_objects = SoftDeleteAllManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name
