"""Request context: a request ID on every log line.

Autosaves from many learners interleave in the logs; the request ID (and
the attempt ID the attempt endpoints add) is what lets one learner's
session be read back in order.  Context lives in ContextVars because
concurrent requests share a thread under asyncio.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
attempt_id_var: ContextVar[str] = ContextVar("attempt_id", default="-")


class _RequestContextFilter(logging.Filter):
    """Copies the context variables onto every LogRecord.

    Values passed explicitly through `extra=` take precedence.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if getattr(record, "attempt_id", None) is None:
            attempt_id = attempt_id_var.get("-")
            if attempt_id != "-":
                record.attempt_id = attempt_id  # type: ignore[attr-defined]
        return True


# Filters on the root logger only see records logged to the root logger
# itself, so install on the root handlers too once they exist.
def install_context_filter() -> None:
    root = logging.getLogger()
    for target in (root, *root.handlers):
        if not any(isinstance(f, _RequestContextFilter) for f in target.filters):
            target.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID, times the request, and logs one summary line.

    Honors an incoming X-Request-ID header and echoes the ID back on the
    response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        attempt_id_var.set("-")

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
