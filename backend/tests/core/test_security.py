"""
Tests for SessionAuth - session resolution and permission checks at the API edge.
"""

from datetime import timedelta

import pytest
from django.conf import settings
from django.test import Client
from django.utils import timezone

from apps.accounts.models import Session
from apps.rbac.constants import Permissions
from tests.accounts.factories import SessionFactory


def _error(response) -> dict:
    return response.json()["error"]


@pytest.mark.django_db
class TestSessionAuth:
    def test_missing_credentials_401(self, api_client) -> None:
        """No cookie and no header yields the standard 401 envelope."""
        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 401
        error = _error(response)
        assert error["code"] == "UNAUTHORIZED"
        assert error["message"] == "Authentication required"
        assert error["status_code"] == 401

    def test_cookie_authenticates(self, admin_user, api_client) -> None:
        """A valid session cookie resolves the caller."""
        SessionFactory.create(user=admin_user, raw_secret="cookie-secret")
        api_client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = "cookie-secret"

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["user"]["email"] == admin_user.email

    def test_bearer_header_authenticates(self, admin_user, api_client) -> None:
        """Non-browser clients can send the secret as a bearer credential."""
        SessionFactory.create(user=admin_user, raw_secret="header-secret")

        response = api_client.get("/api/v1/auth/me", HTTP_AUTHORIZATION="Bearer header-secret")

        assert response.status_code == 200

    def test_unknown_secret_401(self, api_client) -> None:
        """A secret that matches no session is rejected."""
        api_client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = "nope"

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert _error(response)["message"] == "Authentication required"

    def test_revoked_session_401(self, admin_user, api_client) -> None:
        """Revoked sessions look the same as unknown ones."""
        SessionFactory.create(user=admin_user, raw_secret="revoked", revoked_at=timezone.now())
        api_client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = "revoked"

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert _error(response)["message"] == "Authentication required"

    def test_expired_session_401_and_removed(self, admin_user, api_client) -> None:
        """An expired session is rejected and discarded."""
        session = SessionFactory.create(
            user=admin_user,
            raw_secret="expired",
            expires_at=timezone.now() - timedelta(minutes=1),
        )
        api_client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = "expired"

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert not Session.objects.filter(pk=session.pk).exists()

    def test_inactive_user_403(self, admin_user, api_client) -> None:
        """A deactivated account is told so rather than asked to log in."""
        SessionFactory.create(user=admin_user, raw_secret="inactive")
        admin_user.is_active = False
        admin_user.save(update_fields=["is_active"])
        api_client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = "inactive"

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 403
        assert _error(response)["message"] == "Account deactivated"

    def test_deleted_organization_401(self, admin_user, api_client) -> None:
        """Sessions stop resolving once the organization is deleted."""
        SessionFactory.create(user=admin_user, raw_secret="orphan")
        admin_user.organization.soft_delete()
        api_client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = "orphan"

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 401


@pytest.mark.django_db
class TestPermissionGate:
    def test_missing_permission_403(self, make_user, login_as) -> None:
        """A role without the permission is forbidden."""
        viewer = make_user(Permissions.CLIENTS_READ)
        client: Client = login_as(viewer)

        response = client.get("/api/v1/roles")

        assert response.status_code == 403
        assert _error(response)["code"] == "FORBIDDEN"
        assert _error(response)["message"] == "Insufficient permissions"

    def test_forbidden_before_validation(self, make_user, login_as) -> None:
        """An invalid body from a caller lacking the permission gets 403, not 400."""
        viewer = make_user(Permissions.CLIENTS_READ)
        client: Client = login_as(viewer)

        response = client.post("/api/v1/clients", data={"name": ""}, content_type="application/json")

        assert response.status_code == 403

    def test_granted_permission_passes(self, make_user, login_as) -> None:
        """A role with the permission reaches the endpoint."""
        viewer = make_user(Permissions.CLIENTS_READ)
        client: Client = login_as(viewer)

        response = client.get("/api/v1/clients")

        assert response.status_code == 200
        assert response.json() == {"clients": []}
