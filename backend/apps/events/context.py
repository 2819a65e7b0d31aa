"""
Logging context for non-request code paths.

Binds a request-like id for management commands and workers so their log
events and audit entries can be correlated the same way HTTP requests are.
"""

from collections.abc import Generator
from contextlib import contextmanager
from uuid import uuid4

import structlog


@contextmanager
def worker_context(request_id: str | None = None, **fields: str) -> Generator[str, None, None]:
    """
    Bind request_id (generated if not given) plus extra fields for the block.

    Usage:
        with worker_context() as request_id:
            process_batch()

    Yields:
        The bound request id.
    """
    bound_id = request_id or str(uuid4())
    ctx = {"request_id": bound_id, **fields}

    structlog.contextvars.bind_contextvars(**ctx)
    try:
        yield bound_id
    finally:
        structlog.contextvars.unbind_contextvars(*ctx.keys())
