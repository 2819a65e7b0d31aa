"""
Django Ninja API configuration.
"""

from typing import Any

from django.db import IntegrityError
from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI
from ninja.errors import AuthenticationError
from ninja.errors import ValidationError as NinjaValidationError

from apps.accounts.api import router as auth_router
from apps.clients.api import router as clients_router
from apps.core.errors import AppError
from apps.core.logging import get_logger
from apps.invitations.api import router as invitations_router
from apps.rbac.api import permissions_router
from apps.rbac.api import router as roles_router

logger = get_logger(__name__)

api = NinjaAPI(
    title="Tenant Auth API",
    version="1.0.0",
    description="Multi-tenant authentication, sessions and role-based access control.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {
                "name": "auth",
                "description": "Registration, password login and session management",
            },
            {
                "name": "roles",
                "description": "Roles and the permission catalog",
            },
            {
                "name": "invitations",
                "description": "Invite users into the organization",
            },
            {
                "name": "clients",
                "description": "Organization clients",
            },
            {
                "name": "health",
                "description": "Service health and readiness checks",
            },
        ],
    },
)

# Register routers
api.add_router("/auth", auth_router)
api.add_router("/permissions", permissions_router)
api.add_router("/roles", roles_router)
api.add_router("/invitations", invitations_router)
api.add_router("/clients", clients_router)


def error_response(
    request: HttpRequest,
    *,
    message: str,
    code: str,
    status: int,
    details: Any = None,
) -> HttpResponse:
    """Render the standard error envelope."""
    return api.create_response(
        request,
        {
            "error": {
                "message": message,
                "code": code,
                "status_code": status,
                "request_id": getattr(request, "request_id", None),
                "details": details,
            }
        },
        status=status,
    )


@api.exception_handler(AppError)
def handle_app_error(request: HttpRequest, exc: AppError) -> HttpResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", code=exc.code, message=exc.message)
    return error_response(
        request,
        message=exc.message,
        code=exc.code,
        status=exc.status_code,
        details=exc.details,
    )


def _field_path(loc: tuple | list) -> str:
    """("body", "payload", "organization", "slug") -> "organization.slug"."""
    parts = list(loc)
    if parts and parts[0] == "body":
        parts = parts[2:] or parts[1:]
    elif parts:
        parts = parts[1:]
    return ".".join(str(part) for part in parts)


@api.exception_handler(NinjaValidationError)
def handle_validation_error(request: HttpRequest, exc: NinjaValidationError) -> HttpResponse:
    details = [
        {
            "field": _field_path(error.get("loc", ())),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors
    ]
    return error_response(
        request,
        message="Validation failed",
        code="VALIDATION_ERROR",
        status=400,
        details=details,
    )


@api.exception_handler(AuthenticationError)
def handle_authentication_error(request: HttpRequest, exc: AuthenticationError) -> HttpResponse:
    return error_response(
        request,
        message="Authentication required",
        code="UNAUTHORIZED",
        status=401,
    )


@api.exception_handler(IntegrityError)
def handle_integrity_error(request: HttpRequest, exc: IntegrityError) -> HttpResponse:
    logger.warning("integrity_error", error=str(exc))
    return error_response(
        request,
        message="Resource already exists",
        code="CONFLICT",
        status=409,
    )


@api.exception_handler(Exception)
def handle_unexpected_error(request: HttpRequest, exc: Exception) -> HttpResponse:
    logger.exception("unhandled_exception", path=request.path)
    return error_response(
        request,
        message="Internal server error",
        code="INTERNAL_ERROR",
        status=500,
    )


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
