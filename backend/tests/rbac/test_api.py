"""
Tests for the roles and permissions API endpoints.
"""

from uuid import uuid4

import pytest

from apps.rbac.constants import PERMISSIONS, Permissions
from apps.rbac.models import Role
from tests.accounts.factories import UserFactory
from tests.rbac.factories import RoleFactory


def _json(client, method: str, path: str, data: dict):
    return getattr(client, method)(path, data=data, content_type="application/json")


@pytest.mark.django_db
class TestPermissionCatalog:
    def test_list_permissions(self, admin_user, login_as) -> None:
        response = login_as(admin_user).get("/api/v1/permissions")

        assert response.status_code == 200
        names = [p["name"] for p in response.json()["permissions"]]
        assert names == sorted(PERMISSIONS)


@pytest.mark.django_db
class TestRoleEndpoints:
    def test_list_roles(self, admin_user, login_as) -> None:
        """Only the caller's roles are listed, with user counts."""
        RoleFactory.create(organization=admin_user.organization, name="Sales")
        RoleFactory.create(name="Someone else's")

        response = login_as(admin_user).get("/api/v1/roles")

        roles = {r["name"]: r for r in response.json()["roles"]}
        assert set(roles) == {"Admin", "Sales"}
        assert roles["Admin"]["user_count"] == 1
        assert roles["Admin"]["is_default"] is True

    def test_create_role(self, admin_user, login_as) -> None:
        response = _json(
            login_as(admin_user), "post", "/api/v1/roles", {"name": "Sales", "description": "Team"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Sales"
        assert body["permissions"] == []
        assert Role.objects.filter(pk=body["id"], organization=admin_user.organization).exists()

    def test_create_duplicate(self, admin_user, login_as) -> None:
        response = _json(login_as(admin_user), "post", "/api/v1/roles", {"name": "Admin"})

        assert response.status_code == 409

    def test_get_role_detail(self, admin_user, login_as) -> None:
        role = RoleFactory.create(organization=admin_user.organization, permissions=["roles:read"])

        response = login_as(admin_user).get(f"/api/v1/roles/{role.id}")

        assert [p["name"] for p in response.json()["permissions"]] == ["roles:read"]

    def test_get_other_tenant_role_404(self, admin_user, login_as) -> None:
        foreign = RoleFactory.create()

        response = login_as(admin_user).get(f"/api/v1/roles/{foreign.id}")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Role not found"

    def test_patch_description_only(self, admin_user, login_as) -> None:
        role = RoleFactory.create(organization=admin_user.organization, name="Sales")

        response = _json(
            login_as(admin_user), "patch", f"/api/v1/roles/{role.id}", {"description": None}
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Sales"
        assert response.json()["description"] is None

    def test_rename_default_forbidden(self, admin_user, login_as) -> None:
        response = _json(
            login_as(admin_user), "patch", f"/api/v1/roles/{admin_user.role_id}", {"name": "Boss"}
        )

        assert response.status_code == 403

    def test_delete_role(self, admin_user, login_as) -> None:
        role = RoleFactory.create(organization=admin_user.organization)

        response = login_as(admin_user).delete(f"/api/v1/roles/{role.id}")

        assert response.status_code == 204
        assert not Role.objects.filter(pk=role.pk).exists()

    def test_delete_role_in_use(self, admin_user, login_as) -> None:
        role = RoleFactory.create(organization=admin_user.organization)
        UserFactory.create(role=role)

        response = login_as(admin_user).delete(f"/api/v1/roles/{role.id}")

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Cannot delete role with 1 assigned user(s)"

    def test_set_permissions(self, admin_user, login_as, permissions) -> None:
        role = RoleFactory.create(organization=admin_user.organization)

        response = _json(
            login_as(admin_user),
            "put",
            f"/api/v1/roles/{role.id}/permissions",
            {"permission_ids": [str(permissions["clients:read"].id)]},
        )

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["permissions"]] == ["clients:read"]

    def test_set_unknown_permission_400(self, admin_user, login_as) -> None:
        role = RoleFactory.create(organization=admin_user.organization)

        response = _json(
            login_as(admin_user),
            "put",
            f"/api/v1/roles/{role.id}/permissions",
            {"permission_ids": [str(uuid4())]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.django_db
class TestRolePermissionGates:
    def test_read_only_cannot_write(self, make_user, login_as) -> None:
        reader = make_user(Permissions.ROLES_READ)
        client = login_as(reader)

        assert client.get("/api/v1/roles").status_code == 200
        assert _json(client, "post", "/api/v1/roles", {"name": "X"}).status_code == 403

    def test_writer_cannot_delete(self, make_user, login_as) -> None:
        writer = make_user(Permissions.ROLES_WRITE)
        role = RoleFactory.create(organization=writer.organization)

        response = login_as(writer).delete(f"/api/v1/roles/{role.id}")

        assert response.status_code == 403
