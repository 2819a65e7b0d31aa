"""
Notification dispatcher - queue producer for templated messages.

enqueue() writes a NotificationJob row and returns immediately; the
send_notifications worker drains the queue with its own retry/backoff.
"""

from typing import Any

import structlog
from django.db import DatabaseError, transaction
from pydantic import ValidationError as PydanticValidationError

from apps.core.logging import get_logger
from apps.events.models import NotificationJob
from apps.events.schemas import PAYLOAD_SCHEMAS


class NotificationDispatcher:
    """
    Producer side of the notification queue.

    Jobs are inserted in the caller's transaction (transactional outbox), so a
    rolled-back operation never sends mail. Enqueue failures are logged and
    swallowed: notifications are best-effort.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self.logger = logger or get_logger(__name__)

    def enqueue(
        self,
        job_type: NotificationJob.JobType | str,
        recipient: str,
        payload: dict[str, Any],
    ) -> NotificationJob | None:
        """Queue a job. Returns None if the payload was invalid or the insert failed."""
        schema = PAYLOAD_SCHEMAS.get(job_type)
        if schema is None:
            self.logger.error("notification_unknown_job_type", job_type=str(job_type))
            return None

        try:
            data = schema.model_validate(payload).model_dump(mode="json")
        except PydanticValidationError as e:
            self.logger.error(
                "notification_payload_invalid",
                job_type=str(job_type),
                fields=[".".join(str(part) for part in err["loc"]) for err in e.errors()],
            )
            return None

        try:
            with transaction.atomic():
                job = NotificationJob.objects.create(
                    job_type=job_type,
                    recipient=recipient,
                    payload=data,
                )
        except DatabaseError:
            self.logger.exception("notification_enqueue_failed", job_type=str(job_type))
            return None

        self.logger.info("notification_queued", job_type=str(job_type), job_id=str(job.job_id))
        return job


_default_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide default dispatcher."""
    global _default_dispatcher
    if _default_dispatcher is None:
        _default_dispatcher = NotificationDispatcher()
    return _default_dispatcher
