"""Rbac app configuration."""

from django.apps import AppConfig


class RbacConfig(AppConfig):
    """Configuration for rbac app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.rbac"
