"""
Application error taxonomy.

Services raise these; the API layer renders them into the standard error envelope:

    {"error": {"message", "code", "status_code", "request_id", "details"}}
"""

from typing import Any


class AppError(Exception):
    """Base exception for errors that map onto an HTTP response."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed input. Raised before storage is touched."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class UnauthorizedError(AppError):
    """Bad credential, session or token. Message is intentionally generic."""

    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(AppError):
    """Authenticated but not allowed."""

    code = "FORBIDDEN"
    status_code = 403
    default_message = "Insufficient permissions"


class EmailNotVerifiedError(ForbiddenError):
    """Correct password, but the email address has not been verified."""

    code = "EMAIL_NOT_VERIFIED"
    default_message = "Please verify your email before logging in"


class NotFoundError(AppError):
    """Missing resource, or one that belongs to another organization."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    """Uniqueness or single-row invariant violated."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Resource already exists"
