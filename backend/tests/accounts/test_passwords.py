"""
Tests for PasswordService - forgot, reset and change.
"""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from django.utils import timezone

from apps.accounts.crypto import verify_password
from apps.accounts.models import PasswordResetToken, Session, User
from apps.accounts.passwords import (
    FORGOT_PASSWORD_MESSAGE,
    INVALID_RESET_TOKEN,
    PasswordService,
    format_ttl,
)
from apps.accounts.sessions import SessionManager
from apps.core.errors import UnauthorizedError
from apps.events.models import AuditLog, NotificationJob
from apps.rbac.services import resolve_permissions
from tests.accounts.factories import (
    DEFAULT_PASSWORD,
    PasswordResetTokenFactory,
    SessionFactory,
    UserFactory,
)

NEW_PASSWORD = "a-brand-new-password"


@pytest.fixture
def service(policy, audit_sink, dispatcher) -> PasswordService:
    return PasswordService(
        policy=policy,
        sessions=SessionManager(policy, permission_resolver=resolve_permissions),
        audit=audit_sink,
        notifications=dispatcher,
    )


def _raw_token_from(job: NotificationJob) -> str:
    return parse_qs(urlparse(job.payload["reset_url"]).query)["token"][0]


class TestFormatTtl:
    @pytest.mark.parametrize(
        ("ttl", "expected"),
        [
            (timedelta(hours=1), "1 hour"),
            (timedelta(hours=24), "24 hours"),
            (timedelta(hours=48), "48 hours"),
            (timedelta(minutes=30), "30 minutes"),
            (timedelta(seconds=10), "1 minute"),
        ],
    )
    def test_format(self, ttl, expected) -> None:
        assert format_ttl(ttl) == expected


@pytest.mark.django_db
class TestForgotPassword:
    def test_issues_token_and_queues_email(self, service, ctx) -> None:
        """A reset link carrying the raw token is queued for the user."""
        user = UserFactory.create(profile__first_name="Ada")

        message = service.forgot_password(user.email, ctx)

        assert message == FORGOT_PASSWORD_MESSAGE
        job = NotificationJob.objects.get(job_type=NotificationJob.JobType.PASSWORD_RESET)
        assert job.recipient == user.email
        assert job.payload["first_name"] == "Ada"
        assert job.payload["expires_in"] == "1 hour"
        assert job.payload["reset_url"].startswith("https://app.example.com/reset-password?token=")
        assert service.reset_tokens.lookup(_raw_token_from(job)).user == user
        assert AuditLog.objects.filter(action="auth:password_reset_request").exists()

    def test_unknown_email_same_message(self, service, ctx) -> None:
        """Unknown emails are indistinguishable from known ones."""
        message = service.forgot_password("nobody@example.com", ctx)

        assert message == FORGOT_PASSWORD_MESSAGE
        assert NotificationJob.objects.count() == 0

    @pytest.mark.parametrize("overrides", [{"password_hash": None}, {"is_active": False}])
    def test_ineligible_user_silently_skipped(self, service, ctx, overrides) -> None:
        user = UserFactory.create(**overrides)

        assert service.forgot_password(user.email, ctx) == FORGOT_PASSWORD_MESSAGE
        assert not PasswordResetToken.objects.filter(user=user).exists()

    def test_new_request_supersedes_old_token(self, service, ctx) -> None:
        user = UserFactory.create()
        service.forgot_password(user.email, ctx)
        first_raw = _raw_token_from(NotificationJob.objects.get())

        service.forgot_password(user.email, ctx)

        assert PasswordResetToken.objects.filter(user=user).count() == 1
        with pytest.raises(UnauthorizedError, match=INVALID_RESET_TOKEN):
            service.reset_password(first_raw, NEW_PASSWORD, ctx)


@pytest.mark.django_db
class TestResetPassword:
    def test_reset_sets_password_and_clears_sessions(self, service, ctx) -> None:
        """A successful reset unlocks the account and logs out everywhere."""
        user = UserFactory.create(
            failed_login_attempts=5, locked_until=timezone.now() + timedelta(minutes=10)
        )
        SessionFactory.create_batch(2, user=user)
        token = PasswordResetTokenFactory.create(user=user, raw="reset-me")

        service.reset_password("reset-me", NEW_PASSWORD, ctx)

        user.refresh_from_db()
        assert verify_password(NEW_PASSWORD, user.password_hash)
        assert user.password_changed_at is not None
        assert user.failed_login_attempts == 0
        assert user.locked_until is None
        assert not Session.objects.filter(user=user).exists()
        token.refresh_from_db()
        assert token.used_at is not None
        assert NotificationJob.objects.filter(
            job_type=NotificationJob.JobType.PASSWORD_CHANGED, recipient=user.email
        ).exists()
        assert AuditLog.objects.filter(action="auth:password_reset_complete").exists()

    def test_token_single_use(self, service, ctx) -> None:
        PasswordResetTokenFactory.create(raw="once")
        service.reset_password("once", NEW_PASSWORD, ctx)

        with pytest.raises(UnauthorizedError, match=INVALID_RESET_TOKEN):
            service.reset_password("once", "another-password", ctx)

    def test_expired_token(self, service, ctx) -> None:
        user = UserFactory.create()
        PasswordResetTokenFactory.create(
            user=user, raw="late", expires_at=timezone.now() - timedelta(seconds=1)
        )

        with pytest.raises(UnauthorizedError, match=INVALID_RESET_TOKEN):
            service.reset_password("late", NEW_PASSWORD, ctx)

        user.refresh_from_db()
        assert verify_password(DEFAULT_PASSWORD, user.password_hash)

    def test_inactive_user(self, service, ctx) -> None:
        user = UserFactory.create(is_active=False)
        PasswordResetTokenFactory.create(user=user, raw="inactive")

        with pytest.raises(UnauthorizedError, match=INVALID_RESET_TOKEN):
            service.reset_password("inactive", NEW_PASSWORD, ctx)

    def test_lost_race_reports_invalid(self, service, ctx) -> None:
        """A second request holding the same token is told it is invalid."""
        token = PasswordResetTokenFactory.create(raw="raced")
        stale = PasswordResetToken.objects.select_related("user", "user__organization").get(
            pk=token.pk
        )
        service.reset_password("raced", NEW_PASSWORD, ctx)

        with pytest.raises(UnauthorizedError, match=INVALID_RESET_TOKEN):
            service.reset_tokens.consume(stale)


@pytest.mark.django_db
class TestChangePassword:
    def test_change_revokes_other_sessions(self, service, ctx, principal_for) -> None:
        user = UserFactory.create()
        others = SessionFactory.create_batch(2, user=user)
        principal = principal_for(user)

        revoked = service.change_password(principal, DEFAULT_PASSWORD, NEW_PASSWORD, ctx)

        assert revoked == 2
        user.refresh_from_db()
        assert verify_password(NEW_PASSWORD, user.password_hash)
        assert all(Session.objects.get(pk=s.pk).revoked_at for s in others)
        assert Session.objects.get(pk=principal.session.pk).revoked_at is None
        entry = AuditLog.objects.get(action="auth:password_change")
        assert entry.metadata == {"sessions_revoked": 2}

    def test_wrong_current_password(self, service, ctx, principal_for) -> None:
        """A failed attempt is audited and nothing changes."""
        user = UserFactory.create()
        principal = principal_for(user)

        with pytest.raises(UnauthorizedError, match="Current password is incorrect"):
            service.change_password(principal, "not-it", NEW_PASSWORD, ctx)

        user.refresh_from_db()
        assert verify_password(DEFAULT_PASSWORD, user.password_hash)
        entry = AuditLog.objects.get(action="auth:password_change")
        assert entry.metadata == {"success": False, "reason": "invalid_current_password"}

    def test_no_password_set(self, service, ctx, principal_for) -> None:
        user = UserFactory.create(password_hash=None)
        principal = principal_for(user)

        with pytest.raises(UnauthorizedError, match="Unable to change password"):
            service.change_password(principal, "anything", NEW_PASSWORD, ctx)

    def test_deleted_user(self, service, ctx, principal_for) -> None:
        user = UserFactory.create()
        principal = principal_for(user)
        User.objects.filter(pk=user.pk).delete()

        with pytest.raises(UnauthorizedError, match="Unable to change password"):
            service.change_password(principal, DEFAULT_PASSWORD, NEW_PASSWORD, ctx)
