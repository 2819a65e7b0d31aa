"""
Shared pytest fixtures for all tests.

This module provides common fixtures used across multiple test modules.
Individual test modules can override these fixtures if needed.

Factories
---------
Import factories directly from their modules:

    from tests.organizations.factories import OrganizationFactory
    from tests.rbac.factories import RoleFactory
    from tests.accounts.factories import UserFactory, SessionFactory
    from tests.invitations.factories import InvitationFactory

Example usage:

    @pytest.mark.django_db
    def test_something(admin_user, login_as):
        client = login_as(admin_user)
        response = client.get("/api/v1/roles")
        assert response.status_code == 200
"""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest
from django.conf import settings
from django.test import Client

from apps.accounts.models import User
from apps.accounts.policy import AuthPolicy
from apps.accounts.sessions import get_session_manager
from apps.core.auth import Principal
from apps.core.context import RequestContext
from apps.events.notifications import NotificationDispatcher
from apps.events.services import AuditSink
from apps.rbac.constants import DEFAULT_ROLE_NAME, PERMISSIONS
from apps.rbac.models import Permission
from apps.rbac.services import resolve_permissions, seed_permissions


@pytest.fixture
def policy() -> AuthPolicy:
    """AuthPolicy with no timing delay and a fixed frontend URL."""
    return AuthPolicy(
        timing_delay_min_ms=0,
        timing_delay_jitter_ms=0,
        frontend_url="https://app.example.com",
    )


@pytest.fixture
def ctx() -> RequestContext:
    """Request context for unauthenticated service calls."""
    return RequestContext(ip_address="203.0.113.7", user_agent="pytest", request_id="req-test")


@pytest.fixture
def audit_sink() -> AuditSink:
    return AuditSink()


@pytest.fixture
def dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


@pytest.fixture
def permissions(db) -> dict[str, Permission]:
    """Seed the permission catalog and return it keyed by name."""
    seed_permissions()
    return {p.name: p for p in Permission.objects.filter(name__in=PERMISSIONS)}


@pytest.fixture
def admin_user(permissions) -> User:
    """
    Verified user holding the organization's default Admin role.

    Example:
        def test_admin_only_action(admin_user):
            assert admin_user.role.is_default
    """
    from tests.accounts.factories import UserFactory
    from tests.rbac.factories import RoleFactory

    role = RoleFactory.create(
        name=DEFAULT_ROLE_NAME,
        is_default=True,
        permissions=list(PERMISSIONS),
    )
    return UserFactory.create(role=role, email="admin@example.com")


@pytest.fixture
def make_user(permissions) -> Callable[..., User]:
    """
    Factory fixture for users whose role grants exactly the given permissions.

    Example:
        def test_viewer(make_user):
            viewer = make_user("clients:read", organization=org)
    """
    from tests.accounts.factories import UserFactory
    from tests.rbac.factories import RoleFactory

    def _make_user(*permission_names: str, organization: Any = None, **kwargs: Any) -> User:
        role_kwargs: dict[str, Any] = {"permissions": list(permission_names)}
        if organization is not None:
            role_kwargs["organization"] = organization
        role = RoleFactory.create(**role_kwargs)
        return UserFactory.create(role=role, **kwargs)

    return _make_user


@pytest.fixture
def principal_for() -> Callable[[User], Principal]:
    """
    Build a Principal backed by a real session, as SessionAuth would.

    Example:
        principal = principal_for(admin_user)
        service.revoke_other_sessions(principal, ctx)
    """

    def _principal_for(user: User) -> Principal:
        created = get_session_manager().create(user, "127.0.0.1", "pytest", timedelta(hours=1))
        return Principal(
            user=user,
            organization=user.organization,
            role=user.role,
            session=created.session,
            permissions=resolve_permissions(user.role_id),
        )

    return _principal_for


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()


@pytest.fixture
def login_as() -> Callable[[User], Client]:
    """
    Return a test client carrying a fresh session cookie for the user.

    Example:
        client = login_as(admin_user)
        response = client.get("/api/v1/auth/me")
    """

    def _login_as(user: User) -> Client:
        created = get_session_manager().create(user, "127.0.0.1", "pytest", timedelta(hours=1))
        client = Client()
        client.cookies[settings.AUTH_SESSION_COOKIE_NAME] = created.raw_secret
        return client

    return _login_as
