"""
Notification backends - pluggable delivery for queued jobs.

LocalBackend: logs jobs to the console (development and tests)

Rendering and delivering email is owned by an external provider; a backend for
it implements NotificationBackend and is selected via NOTIFICATION_BACKEND.
"""

from abc import ABC, abstractmethod
from typing import Any

from apps.core.logging import get_logger
from apps.events.models import NotificationJob

logger = get_logger(__name__)


class NotificationBackend(ABC):
    """Abstract base class for notification delivery backends."""

    @abstractmethod
    def send(self, jobs: list[NotificationJob]) -> list[dict[str, Any]]:
        """
        Deliver a batch of jobs.

        Returns one result per job, in order:
        [{"job_id": "...", "status": "success"}, {"job_id": "...", "status": "error", "error": "..."}]
        """


class LocalBackend(NotificationBackend):
    """Logs each job instead of delivering it."""

    def send(self, jobs: list[NotificationJob]) -> list[dict[str, Any]]:
        results = []
        for job in jobs:
            logger.info(
                "notification_delivered",
                job_type=job.job_type,
                job_id=str(job.job_id),
                recipient=job.recipient,
                backend="local",
            )
            results.append({"job_id": str(job.job_id), "status": "success"})
        return results


_BACKENDS: dict[str, type[NotificationBackend]] = {
    "local": LocalBackend,
}


def get_backend() -> NotificationBackend:
    """
    Get the configured notification backend.

    Uses NOTIFICATION_BACKEND setting.

    Raises:
        ValueError: If the setting names an unknown backend
    """
    from django.conf import settings

    backend_type = getattr(settings, "NOTIFICATION_BACKEND", "local")
    try:
        return _BACKENDS[backend_type]()
    except KeyError:
        raise ValueError(f"Unknown NOTIFICATION_BACKEND: {backend_type!r}") from None
