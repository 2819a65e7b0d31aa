"""
Core middleware.
"""

import time
from collections.abc import Callable
from uuid import UUID, uuid4

from django.http import HttpRequest, HttpResponse

from apps.core.logging import bind_contextvars, clear_contextvars, get_logger
from apps.core.utils import get_client_ip

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _parse_request_id(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return str(UUID(value))
    except ValueError:
        return None


class RequestContextMiddleware:
    """
    Assigns a request id and binds request context for structured logging.

    Uses the incoming X-Request-ID header when it is a valid UUID, otherwise
    generates one. The id is echoed back on the response and ends up in every
    log event and error envelope for the request.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = _parse_request_id(request.headers.get(REQUEST_ID_HEADER)) or str(uuid4())
        request.request_id = request_id  # type: ignore[attr-defined]

        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            **{
                "request.ip_address": get_client_ip(request),
                "request.user_agent": request.META.get("HTTP_USER_AGENT", ""),
                "http.method": request.method,
                "http.path": request.path,
            },
        )

        started = time.perf_counter()
        try:
            response = self.get_response(request)
        finally:
            clear_contextvars()

        logger.debug(
            "request_finished",
            request_id=request_id,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        response[REQUEST_ID_HEADER] = request_id
        return response
