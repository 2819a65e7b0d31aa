"""
Permission catalog.

Permission names are '<resource>:<action>'. The catalog is the source of truth
for seed_permissions; the default role of every organization receives all of
them at registration.
"""

DEFAULT_ROLE_NAME = "Admin"
DEFAULT_ROLE_DESCRIPTION = "Organization administrator with full access"


class Permissions:
    """Permission name constants for use in endpoint guards."""

    ROLES_READ = "roles:read"
    ROLES_WRITE = "roles:write"
    ROLES_DELETE = "roles:delete"

    INVITATIONS_READ = "invitations:read"
    INVITATIONS_CREATE = "invitations:create"
    INVITATIONS_DELETE = "invitations:delete"

    CLIENTS_READ = "clients:read"
    CLIENTS_WRITE = "clients:write"
    CLIENTS_DELETE = "clients:delete"


PERMISSIONS: dict[str, str] = {
    Permissions.ROLES_READ: "View roles and permissions",
    Permissions.ROLES_WRITE: "Create and edit roles, assign permissions",
    Permissions.ROLES_DELETE: "Delete roles",
    Permissions.INVITATIONS_READ: "View pending invitations",
    Permissions.INVITATIONS_CREATE: "Invite users to the organization",
    Permissions.INVITATIONS_DELETE: "Revoke pending invitations",
    Permissions.CLIENTS_READ: "View clients",
    Permissions.CLIENTS_WRITE: "Create and edit clients",
    Permissions.CLIENTS_DELETE: "Delete clients",
}
