"""
Core utility functions.
"""

from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str | None:
    """
    Client IP from X-Forwarded-For (first hop) or REMOTE_ADDR.

    Returns None when neither is present.
    """
    forwarded_for: str | None = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.META.get("REMOTE_ADDR") or None


def normalize_email(email: str) -> str:
    """Emails are matched case-insensitively and stored lowercase."""
    return email.strip().lower()
