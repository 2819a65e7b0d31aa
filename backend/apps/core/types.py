"""
Custom type definitions for the application.

These types help mypy understand custom attributes added by middleware and auth.
"""

from typing import TYPE_CHECKING

from django.http import HttpRequest

if TYPE_CHECKING:
    from apps.core.auth import Principal


class AuthenticatedHttpRequest(HttpRequest):
    """
    HttpRequest after SessionAuth has run.

    request_id is set by RequestContextMiddleware, auth by SessionAuth.
    """

    auth: "Principal"
    request_id: str
