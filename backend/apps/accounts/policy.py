"""
Authentication policy - lockout thresholds, durations and token lifetimes.

Services receive an AuthPolicy instead of reading django.conf.settings directly,
so tests can hand them a tailored policy.
"""

from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings


@dataclass(frozen=True)
class AuthPolicy:
    """Tunable authentication limits."""

    max_failed_attempts: int = 5
    lockout_duration: timedelta = timedelta(minutes=15)
    session_duration: timedelta = timedelta(hours=24)
    remember_me_duration: timedelta = timedelta(days=30)
    session_touch_threshold: timedelta = timedelta(minutes=5)
    password_reset_ttl: timedelta = timedelta(hours=1)
    email_verification_ttl: timedelta = timedelta(hours=24)
    invitation_ttl: timedelta = timedelta(hours=48)
    timing_delay_min_ms: int = 100
    timing_delay_jitter_ms: int = 50
    frontend_url: str = "http://localhost:5173"

    @classmethod
    def from_settings(cls) -> "AuthPolicy":
        return cls(
            max_failed_attempts=settings.AUTH_MAX_FAILED_ATTEMPTS,
            lockout_duration=timedelta(minutes=settings.AUTH_LOCKOUT_DURATION_MINUTES),
            session_duration=timedelta(hours=settings.AUTH_SESSION_DURATION_HOURS),
            remember_me_duration=timedelta(days=settings.AUTH_REMEMBER_ME_DURATION_DAYS),
            session_touch_threshold=timedelta(
                seconds=settings.AUTH_SESSION_TOUCH_THRESHOLD_SECONDS
            ),
            password_reset_ttl=timedelta(hours=settings.AUTH_PASSWORD_RESET_TOKEN_EXPIRY_HOURS),
            email_verification_ttl=timedelta(
                hours=settings.AUTH_EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS
            ),
            invitation_ttl=timedelta(hours=settings.AUTH_INVITATION_EXPIRY_HOURS),
            timing_delay_min_ms=settings.AUTH_TIMING_DELAY_MIN_MS,
            timing_delay_jitter_ms=settings.AUTH_TIMING_DELAY_JITTER_MS,
            frontend_url=settings.FRONTEND_URL,
        )

    def session_duration_for(self, remember_me: bool) -> timedelta:
        return self.remember_me_duration if remember_me else self.session_duration

    def frontend_link(self, path: str, token: str) -> str:
        """Absolute link into the frontend carrying a raw token."""
        return f"{self.frontend_url.rstrip('/')}/{path.lstrip('/')}?token={token}"
