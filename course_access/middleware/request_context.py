"""Request context: request id, acting user, timing.

Every request gets an id (client-supplied X-Request-ID or a fresh UUID)
held in a ContextVar.  A filter on the root handler copies it, and the
actor id once require_actor has resolved the caller, onto every record
emitted while the request is being handled, so service-level lines like
"Enrolled student=... course=..." can be joined back to their request.
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
actor_id_var: ContextVar[str] = ContextVar("actor_id", default="-")


class _RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "actor_id"):
            record.actor_id = actor_id_var.get("-")  # type: ignore[attr-defined]
        return True


# Handler-level, not logger-level: filters on the root logger do not run
# for records propagated up from child loggers.
def install_request_context_filter(handler: logging.Handler) -> None:
    if not any(isinstance(f, _RequestContextFilter) for f in handler.filters):
        handler.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request, log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        actor_id_var.set("-")

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
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
