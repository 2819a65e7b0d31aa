"""
Tests for the client endpoints and ClientService.
"""

import pytest

from apps.clients.models import Client
from apps.events.models import AuditLog
from apps.rbac.constants import Permissions
from tests.clients.factories import ClientFactory


def _post(client, data: dict):
    return client.post("/api/v1/clients", data=data, content_type="application/json")


@pytest.mark.django_db
class TestClientEndpoints:
    def test_list_scoped_to_tenant(self, make_user, login_as) -> None:
        """Callers only see their own organization's clients."""
        user = make_user(Permissions.CLIENTS_READ)
        mine = ClientFactory.create(organization=user.organization, name="Globex")
        ClientFactory.create(name="Initech")

        response = login_as(user).get("/api/v1/clients")

        assert [c["id"] for c in response.json()["clients"]] == [str(mine.id)]

    def test_list_hides_deleted(self, make_user, login_as) -> None:
        user = make_user(Permissions.CLIENTS_READ)
        ClientFactory.create(organization=user.organization).soft_delete()

        response = login_as(user).get("/api/v1/clients")

        assert response.json()["clients"] == []

    def test_create(self, make_user, login_as) -> None:
        user = make_user(Permissions.CLIENTS_WRITE)

        response = _post(login_as(user), {"name": "Globex", "email": "ops@globex.example.com"})

        assert response.status_code == 201
        client = Client.objects.get(pk=response.json()["id"])
        assert client.organization_id == user.organization_id
        assert client.created_by == user
        entry = AuditLog.objects.get(action="client:create")
        assert entry.actor_id == user.id
        assert entry.organization_id == user.organization_id

    def test_viewer_invalid_body_gets_403(self, make_user, login_as) -> None:
        """Permission is checked before the body is validated."""
        viewer = make_user(Permissions.CLIENTS_READ)

        response = _post(login_as(viewer), {"name": ""})

        assert response.status_code == 403

    def test_delete_soft_deletes(self, make_user, login_as) -> None:
        user = make_user(Permissions.CLIENTS_DELETE)
        client = ClientFactory.create(organization=user.organization)

        response = login_as(user).delete(f"/api/v1/clients/{client.id}")

        assert response.status_code == 204
        assert Client.all_objects.get(pk=client.pk).is_deleted

    def test_delete_other_tenant_404(self, make_user, login_as) -> None:
        """Another tenant's client is indistinguishable from a missing one."""
        user = make_user(Permissions.CLIENTS_DELETE)
        foreign = ClientFactory.create()

        response = login_as(user).delete(f"/api/v1/clients/{foreign.id}")

        assert response.status_code == 404
        assert not Client.all_objects.get(pk=foreign.pk).is_deleted

    def test_delete_twice_404(self, make_user, login_as) -> None:
        user = make_user(Permissions.CLIENTS_DELETE)
        client = ClientFactory.create(organization=user.organization)
        session = login_as(user)
        session.delete(f"/api/v1/clients/{client.id}")

        assert session.delete(f"/api/v1/clients/{client.id}").status_code == 404
