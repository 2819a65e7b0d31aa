"""
Authenticated principal for the request lifecycle.

SessionAuth resolves a session secret into a Principal and attaches it to
request.auth; endpoints and services consume it.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from apps.core.errors import ForbiddenError

if TYPE_CHECKING:
    from apps.accounts.models import Session, User
    from apps.organizations.models import Organization
    from apps.rbac.models import Role


@dataclass(frozen=True)
class Principal:
    """
    The authenticated identity: user + role + organization, resolved from a session.

    Attributes:
        user: The authenticated User
        organization: The Organization the user belongs to
        role: The user's Role within that organization
        session: The Session row the secret resolved to
        permissions: Permission names granted by the role
    """

    user: "User"
    organization: "Organization"
    role: "Role"
    session: "Session"
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has_permission(self, name: str) -> bool:
        """Check whether the principal's role grants the named permission."""
        return name in self.permissions

    def require_permission(self, name: str) -> None:
        """
        Raise unless the principal holds the named permission.

        Raises:
            ForbiddenError: If the permission is missing
        """
        if not self.has_permission(name):
            raise ForbiddenError("Insufficient permissions")
