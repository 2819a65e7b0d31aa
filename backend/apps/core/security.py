"""
Core security - session authentication for the API.
"""

from django.conf import settings
from django.http import HttpRequest
from ninja.security import APIKeyCookie

from apps.core.auth import Principal
from apps.core.errors import ForbiddenError, UnauthorizedError
from apps.core.logging import bind_contextvars


class SessionAuth(APIKeyCookie):
    """
    Resolve the opaque session secret into a Principal.

    The secret is read from the session cookie, falling back to an
    `Authorization: Bearer <secret>` header for non-browser clients.

    When constructed with a permission, the check runs here: ninja authenticates
    before it parses the request body, so a caller lacking the permission gets
    403 even when the payload would also fail validation.

    Usage:
        @router.delete("/{id}", auth=SessionAuth("clients:delete"))
    """

    param_name = settings.AUTH_SESSION_COOKIE_NAME

    def __init__(self, permission: str | None = None) -> None:
        super().__init__(csrf=False)
        self.permission = permission

    def _get_key(self, request: HttpRequest) -> str | None:
        cookie = request.COOKIES.get(self.param_name)
        if cookie:
            return cookie
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
        return None

    def authenticate(self, request: HttpRequest, key: str | None) -> Principal | None:
        """
        Returns None when no secret was presented (ninja answers 401).

        Raises:
            UnauthorizedError: Secret is unknown, expired or revoked
            ForbiddenError: Account deactivated, or permission missing
        """
        if not key:
            return None

        from apps.accounts.sessions import SessionFailure, SessionResolutionError, get_session_manager

        try:
            resolved = get_session_manager().resolve(key)
        except SessionResolutionError as exc:
            if exc.reason is SessionFailure.USER_INACTIVE:
                raise ForbiddenError("Account deactivated") from None
            raise UnauthorizedError("Authentication required") from None

        principal = Principal(
            user=resolved.user,
            organization=resolved.organization,
            role=resolved.role,
            session=resolved.session,
            permissions=resolved.permissions,
        )
        bind_contextvars(
            user_id=str(principal.user.id),
            organization_id=str(principal.organization.id),
        )

        if self.permission is not None:
            principal.require_permission(self.permission)
        return principal
