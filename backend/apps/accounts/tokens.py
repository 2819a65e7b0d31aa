"""
Token lifecycle - hashed, expiring, consume-once tokens.

One service instance per use case (password reset, email verification,
invitation acceptance). The use cases differ only in how a lost consumption
race is interpreted:

- IDEMPOTENT: the winner already reached the desired end state, so the loser
  reports success (verification, invitation acceptance).
- FAIL: the loser is told the token is invalid (password reset), so a second
  requester is never told their reset succeeded when it did not.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import Any, Generic, TypeVar

import structlog
from django.db import models, transaction
from django.utils import timezone

from apps.accounts.crypto import generate_opaque_token, hash_token, timing_safe_delay
from apps.accounts.policy import AuthPolicy
from apps.core.errors import UnauthorizedError
from apps.core.logging import get_logger

T = TypeVar("T", bound=models.Model)


class RacePolicy(StrEnum):
    IDEMPOTENT = "idempotent"
    FAIL = "fail"


@dataclass
class IssuedToken(Generic[T]):
    """Raw token (shown once) and its stored record."""

    raw: str
    record: T


@dataclass
class ConsumeResult(Generic[T]):
    """won is False when a concurrent request consumed the token first."""

    won: bool
    record: T


class SingleUseTokenService(Generic[T]):
    """
    Issue, look up and atomically consume single-use tokens.

    Args:
        model: Token model with token_hash and expires_at fields
        name: Short name used in log events, e.g. 'password_reset'
        invalid_message: Generic message for every rejection
        race_policy: How a lost consumption race is reported
        subject_field: FK identifying the token's subject; issuing a token for a
            subject deletes any earlier token for it. None disables superseding.
        consumed_field: Nullable timestamp set exactly once on consumption
        open_filter: Extra conditions a token must meet to be consumable
        select_related: Relations loaded alongside the token on lookup
    """

    def __init__(
        self,
        model: type[T],
        *,
        name: str,
        invalid_message: str,
        race_policy: RacePolicy,
        policy: AuthPolicy,
        subject_field: str | None = "user",
        consumed_field: str = "used_at",
        open_filter: dict[str, Any] | None = None,
        select_related: tuple[str, ...] = ("user", "user__organization"),
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.model = model
        self.name = name
        self.invalid_message = invalid_message
        self.race_policy = race_policy
        self.policy = policy
        self.subject_field = subject_field
        self.consumed_field = consumed_field
        self.open_filter = open_filter or {}
        self.select_related = select_related
        self.logger = logger or get_logger(__name__)

    @property
    def _manager(self) -> models.Manager[T]:
        return self.model._default_manager

    def issue(
        self,
        ttl: timedelta,
        subject: models.Model | None = None,
        **fields: Any,
    ) -> IssuedToken[T]:
        """
        Create a token, superseding any outstanding one for the same subject.

        Delete and insert run in one transaction. The raw value is returned
        here and never again.
        """
        raw = generate_opaque_token()
        expires_at = timezone.now() + ttl

        with transaction.atomic():
            if self.subject_field is not None:
                superseded, _ = self._manager.filter(**{self.subject_field: subject}).delete()
                fields[self.subject_field] = subject
            else:
                superseded = 0
            record = self._manager.create(
                token_hash=hash_token(raw),
                expires_at=expires_at,
                **fields,
            )

        self.logger.info(
            "single_use_token_issued",
            kind=self.name,
            record_id=str(record.pk),
            superseded=superseded,
            expires_at=expires_at.isoformat(),
        )
        return IssuedToken(raw=raw, record=record)

    def lookup(self, raw: str) -> T | None:
        """Find a token by the hash of its raw value, in any state."""
        if not raw:
            return None
        return (
            self._manager.select_related(*self.select_related)
            .filter(token_hash=hash_token(raw))
            .first()
        )

    def is_open(self, record: T) -> bool:
        """Unconsumed, unexpired, and matching open_filter."""
        if getattr(record, self.consumed_field) is not None:
            return False
        if timezone.now() >= record.expires_at:  # type: ignore[attr-defined]
            return False
        for lookup, expected in self.open_filter.items():
            field_name = lookup.removesuffix("__isnull")
            if lookup.endswith("__isnull"):
                if (getattr(record, field_name) is None) != expected:
                    return False
            elif getattr(record, field_name) != expected:
                return False
        return True

    def reject(self, reason: str) -> UnauthorizedError:
        """Delay, log, and build the generic failure for this token type."""
        timing_safe_delay(self.policy)
        self.logger.info("single_use_token_rejected", kind=self.name, reason=reason)
        return UnauthorizedError(self.invalid_message)

    def find_usable(self, raw: str, extra_check: Callable[[T], bool] | None = None) -> T:
        """
        Return an open token or raise the generic failure.

        extra_check lets the use case veto an otherwise open token, e.g. when
        its user or organization has since been deleted.

        Raises:
            UnauthorizedError: Token unknown, expired, consumed, closed or vetoed
        """
        record = self.lookup(raw)
        if record is None:
            raise self.reject("not_found")
        if not self.is_open(record):
            raise self.reject("not_open")
        if extra_check is not None and not extra_check(record):
            raise self.reject("subject_unavailable")
        return record

    def consume(
        self,
        record: T,
        side_effect: Callable[[T], None] | None = None,
    ) -> ConsumeResult[T]:
        """
        Atomically mark the token consumed and apply its side effect.

        The conditional update (consumed_field IS NULL) decides the race: the
        request that changes one row wins and runs side_effect in the same
        transaction; if side_effect raises, the consumption rolls back too.

        A zero-row update only counts as a lost race when the row now carries
        a consumption timestamp. A token that was deleted or closed in the
        meantime is rejected whatever the policy.

        Raises:
            UnauthorizedError: The token was closed or superseded, or the race
                was lost and the policy is FAIL
        """
        now = timezone.now()

        with transaction.atomic():
            updated = self._manager.filter(
                pk=record.pk,
                **{f"{self.consumed_field}__isnull": True},
                **self.open_filter,
            ).update(**{self.consumed_field: now})

            if updated == 1:
                setattr(record, self.consumed_field, now)
                if side_effect is not None:
                    side_effect(record)
                self.logger.info(
                    "single_use_token_consumed", kind=self.name, record_id=str(record.pk)
                )
                return ConsumeResult(won=True, record=record)

        current = self._manager.filter(pk=record.pk).first()
        if current is None or getattr(current, self.consumed_field) is None:
            # Deleted (superseded) or closed by something other than a consumer
            raise self.reject("closed")

        self.logger.info(
            "single_use_token_race_lost",
            kind=self.name,
            record_id=str(record.pk),
            race_policy=str(self.race_policy),
        )
        if self.race_policy is RacePolicy.FAIL:
            raise self.reject("race_lost")
        return ConsumeResult(won=False, record=current)
