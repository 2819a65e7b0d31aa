"""
Credential store - password hashing, opaque tokens, timing-safe delay.
"""

import hashlib
import secrets
import time

from django.contrib.auth.hashers import check_password, make_password

from apps.accounts.policy import AuthPolicy

TOKEN_BYTES = 32


def hash_password(plaintext: str) -> str:
    """Salted, memory-hard hash using the configured hasher (Argon2id)."""
    return make_password(plaintext)


def verify_password(plaintext: str, encoded: str | None) -> bool:
    """Constant-time verification. An empty hash never matches."""
    if not encoded:
        return False
    return check_password(plaintext, encoded)


def generate_opaque_token() -> str:
    """256 bits of randomness, hex encoded (64 characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(raw: str) -> str:
    """Create SHA-256 hash of token for storage."""
    return hashlib.sha256(raw.encode()).hexdigest()


def timing_safe_delay(policy: AuthPolicy) -> None:
    """
    Sleep for a randomized interval on an authentication failure path.

    Keeps distinct failure causes (unknown email, wrong password, bad token)
    indistinguishable by latency.
    """
    delay_ms = policy.timing_delay_min_ms
    if policy.timing_delay_jitter_ms > 0:
        delay_ms += secrets.randbelow(policy.timing_delay_jitter_ms + 1)
    if delay_ms > 0:
        time.sleep(delay_ms / 1000)
