"""
Test settings.

In-memory SQLite, a fast password hasher and no timing-safe delay so the suite
stays quick. Argon2 parameters are exercised directly in the hasher tests.
"""

from .base import *  # noqa: F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

AUTH_TIMING_DELAY_MIN_MS = 0
AUTH_TIMING_DELAY_JITTER_MS = 0

FRONTEND_URL = "https://app.example.com"
NOTIFICATION_BACKEND = "local"

configure_logging(json_format=False, log_level="WARNING")  # noqa: F405
