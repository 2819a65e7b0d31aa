"""
Audit sink - append-only audit trail with redaction.

Audit writes are a side channel: a failure here is logged and swallowed, never
surfaced to the operation being audited.
"""

from typing import Any
from uuid import UUID

import structlog
from django.db import DatabaseError, transaction

from apps.core.context import RequestContext
from apps.core.logging import get_logger
from apps.core.redaction import redact
from apps.events.models import AuditLog


class AuditSink:
    """
    Accepts {action, entity, actor, organization, before/after, metadata}.

    Payloads are redacted before storage. Each write runs in its own savepoint
    so a failed insert cannot poison the caller's transaction.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self.logger = logger or get_logger(__name__)

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        ctx: RequestContext,
        *,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        organization_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> AuditLog | None:
        """
        Append an audit entry. Returns None if the write failed.

        organization_id and actor_id default to the context's values; pass them
        explicitly for unauthenticated flows (login, reset) where the context
        carries no principal.
        """
        try:
            with transaction.atomic():
                return AuditLog.objects.create(
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id) if entity_id is not None else "",
                    organization_id=organization_id or ctx.organization_id,
                    actor_id=actor_id or ctx.actor_id,
                    request_id=ctx.request_id or "",
                    ip_address=ctx.ip_address,
                    user_agent=ctx.user_agent or "",
                    before=redact(before) if before is not None else None,
                    after=redact(after) if after is not None else None,
                    metadata=redact(metadata or {}),
                )
        except (DatabaseError, ValueError, TypeError):
            self.logger.exception("audit_log_failed", action=action, entity_type=entity_type)
            return None


_default_sink: AuditSink | None = None


def get_audit_sink() -> AuditSink:
    """Process-wide default sink."""
    global _default_sink
    if _default_sink is None:
        _default_sink = AuditSink()
    return _default_sink
