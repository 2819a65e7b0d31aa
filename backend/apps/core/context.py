"""
Request context passed into every service operation.

organization_id and actor_id identify the tenant and caller; the remaining
fields are opaque and used only for audit attribution.
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from django.http import HttpRequest

from apps.core.utils import get_client_ip

if TYPE_CHECKING:
    from apps.core.auth import Principal


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, from where, within which request."""

    organization_id: UUID | None = None
    actor_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str = ""
    request_id: str | None = None

    @classmethod
    def from_request(cls, request: HttpRequest) -> "RequestContext":
        """Build a context from an HTTP request, attaching the principal if any."""
        ctx = cls(
            ip_address=get_client_ip(request),
            user_agent=request.META.get("HTTP_USER_AGENT", "")[:512],
            request_id=getattr(request, "request_id", None),
        )
        principal = getattr(request, "auth", None)
        if principal is not None and hasattr(principal, "user"):
            ctx = ctx.for_principal(principal)
        return ctx

    @classmethod
    def system(cls) -> "RequestContext":
        """Context for management commands and other non-request code."""
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        return cls(user_agent="system", request_id=request_id)

    def for_principal(self, principal: "Principal") -> "RequestContext":
        return replace(
            self,
            organization_id=principal.organization.id,
            actor_id=principal.user.id,
        )
