"""
Tests for the auth API endpoints.
"""

import pytest
from django.conf import settings

from apps.accounts.crypto import hash_token
from apps.accounts.models import Session, User
from apps.events.models import NotificationJob
from tests.accounts.factories import (
    DEFAULT_PASSWORD,
    EmailVerificationTokenFactory,
    PasswordResetTokenFactory,
    SessionFactory,
    UserFactory,
)

COOKIE = settings.AUTH_SESSION_COOKIE_NAME


def _post(client, path: str, data: dict):
    return client.post(f"/api/v1/auth{path}", data=data, content_type="application/json")


@pytest.mark.django_db
class TestRegisterEndpoint:
    def _payload(self, **overrides) -> dict:
        payload = {
            "organization": {"name": "Acme Corp", "slug": "acme-corp"},
            "email": "Founder@Example.com",
            "password": "founder-password",
            "first_name": "Wile",
            "last_name": "Coyote",
        }
        payload.update(overrides)
        return payload

    def test_register(self, api_client, permissions) -> None:
        """Registration returns 201 and stores the email lowercased."""
        response = _post(api_client, "/register", self._payload())

        assert response.status_code == 201
        assert response.json()["message"].startswith("Registration successful")
        assert User.objects.filter(email="founder@example.com").exists()

    def test_invalid_slug(self, api_client) -> None:
        response = _post(
            api_client, "/register", self._payload(organization={"name": "Acme", "slug": "Bad Slug"})
        )

        assert response.status_code == 400
        fields = [d["field"] for d in response.json()["error"]["details"]]
        assert "organization.slug" in fields

    def test_short_password(self, api_client) -> None:
        response = _post(api_client, "/register", self._payload(password="short"))

        assert response.status_code == 400

    def test_duplicate(self, api_client) -> None:
        UserFactory.create(email="founder@example.com")

        response = _post(api_client, "/register", self._payload())

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Email or organization slug already in use"


@pytest.mark.django_db
class TestLoginEndpoint:
    def test_login_sets_cookie(self, api_client) -> None:
        """The session secret is returned once and set as an httpOnly cookie."""
        user = UserFactory.create(role__permissions=["roles:read", "clients:read"])

        response = _post(api_client, "/login", {"email": user.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == user.email
        assert body["permissions"] == ["clients:read", "roles:read"]
        assert body["expires_in"] == 24 * 60 * 60

        cookie = response.cookies[COOKIE]
        assert cookie.value == body["session_token"]
        assert cookie["httponly"] is True
        assert cookie["samesite"] == "Lax"
        assert cookie["max-age"] == 24 * 60 * 60
        assert Session.objects.filter(sid_hash=hash_token(cookie.value), user=user).exists()

    def test_remember_me(self, api_client) -> None:
        user = UserFactory.create()

        response = _post(
            api_client,
            "/login",
            {"email": user.email, "password": DEFAULT_PASSWORD, "remember_me": True},
        )

        assert response.cookies[COOKIE]["max-age"] == 30 * 24 * 60 * 60

    def test_bad_credentials(self, api_client) -> None:
        user = UserFactory.create()

        response = _post(api_client, "/login", {"email": user.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid email or password"
        assert COOKIE not in response.cookies

    def test_unverified(self, api_client) -> None:
        user = UserFactory.create(email_verified_at=None)

        response = _post(api_client, "/login", {"email": user.email, "password": DEFAULT_PASSWORD})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EMAIL_NOT_VERIFIED"

    def test_session_cookie_reaches_me(self, api_client) -> None:
        """The cookie set by login authenticates later requests."""
        user = UserFactory.create()
        _post(api_client, "/login", {"email": user.email, "password": DEFAULT_PASSWORD})

        response = api_client.get("/api/v1/auth/me")

        assert response.status_code == 200


@pytest.mark.django_db
class TestLogoutEndpoint:
    def test_logout_clears_cookie(self, admin_user, login_as) -> None:
        client = login_as(admin_user)

        response = client.post("/api/v1/auth/logout")

        assert response.status_code == 204
        assert response.cookies[COOKIE].value == ""
        assert response.cookies[COOKIE]["max-age"] == 0
        assert not Session.objects.filter(user=admin_user).exists()

    def test_logout_requires_session(self, api_client) -> None:
        assert api_client.post("/api/v1/auth/logout").status_code == 401


@pytest.mark.django_db
class TestMeEndpoints:
    def test_me(self, admin_user, login_as) -> None:
        response = login_as(admin_user).get("/api/v1/auth/me")

        body = response.json()
        assert body["user"]["organization"]["id"] == str(admin_user.organization_id)
        assert body["user"]["role"]["name"] == "Admin"
        assert body["permissions"] == sorted(body["permissions"])
        assert "roles:write" in body["permissions"]

    def test_patch_only_given_fields(self, login_as) -> None:
        user = UserFactory.create(profile__first_name="Ada", profile__phone="+1 555 0100")
        client = login_as(user)

        response = client.patch(
            "/api/v1/auth/me", data={"last_name": "King"}, content_type="application/json"
        )

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["first_name"] == "Ada"
        assert profile["last_name"] == "King"
        assert profile["phone"] == "+1 555 0100"

    def test_patch_null_phone_clears_it(self, login_as) -> None:
        user = UserFactory.create(profile__phone="+1 555 0100")
        client = login_as(user)

        response = client.patch(
            "/api/v1/auth/me", data={"phone": None}, content_type="application/json"
        )

        assert response.json()["profile"]["phone"] is None


@pytest.mark.django_db
class TestTokenEndpoints:
    def test_verify_email(self, api_client) -> None:
        token = EmailVerificationTokenFactory.create(raw="verify-api")

        response = _post(api_client, "/verify-email", {"token": "verify-api"})

        assert response.status_code == 200
        token.user.refresh_from_db()
        assert token.user.is_email_verified

    def test_verify_email_bad_token(self, api_client) -> None:
        response = _post(api_client, "/verify-email", {"token": "bogus"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid or expired verification token"

    def test_forgot_password_always_200(self, api_client) -> None:
        response = _post(api_client, "/forgot-password", {"email": "nobody@example.com"})

        assert response.status_code == 200
        assert response.json()["message"] == "If an account exists, a reset email has been sent"

    def test_reset_password(self, api_client) -> None:
        token = PasswordResetTokenFactory.create(raw="reset-api")

        response = _post(
            api_client, "/reset-password", {"token": "reset-api", "password": "fresh-password"}
        )

        assert response.status_code == 200
        login = _post(
            api_client, "/login", {"email": token.user.email, "password": "fresh-password"}
        )
        assert login.status_code == 200

    def test_resend_verification(self, api_client) -> None:
        user = UserFactory.create(email_verified_at=None)

        response = _post(api_client, "/resend-verification", {"email": user.email})

        assert response.status_code == 200
        assert NotificationJob.objects.filter(recipient=user.email).exists()

    def test_change_password(self, login_as) -> None:
        user = UserFactory.create()
        client = login_as(user)

        response = client.post(
            "/api/v1/auth/change-password",
            data={"current_password": DEFAULT_PASSWORD, "new_password": "another-password"},
            content_type="application/json",
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Password changed successfully"


@pytest.mark.django_db
class TestSessionEndpoints:
    def test_list_sessions(self, admin_user, login_as) -> None:
        SessionFactory.create(user=admin_user)
        client = login_as(admin_user)

        response = client.get("/api/v1/auth/sessions")

        sessions = response.json()["sessions"]
        assert len(sessions) == 2
        assert sum(s["is_current"] for s in sessions) == 1

    def test_revoke_one(self, admin_user, login_as) -> None:
        other = SessionFactory.create(user=admin_user)
        client = login_as(admin_user)

        response = client.delete(f"/api/v1/auth/sessions/{other.id}")

        assert response.status_code == 204
        other.refresh_from_db()
        assert other.revoked_at is not None

    def test_revoke_unknown(self, admin_user, login_as) -> None:
        foreign = SessionFactory.create()

        response = login_as(admin_user).delete(f"/api/v1/auth/sessions/{foreign.id}")

        assert response.status_code == 404

    def test_revoke_all_others(self, admin_user, login_as) -> None:
        SessionFactory.create_batch(3, user=admin_user)
        client = login_as(admin_user)

        response = client.delete("/api/v1/auth/sessions")

        assert response.json() == {"revoked_count": 3}
        assert client.get("/api/v1/auth/me").status_code == 200
