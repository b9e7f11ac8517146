"""HTTP request logging for the Sprintflow API.

Every request gets a correlation id (taken from ``X-Correlation-ID`` or
generated) that is echoed on the response and attached to every log event
emitted while the request is handled. The caller from ``X-User-ID`` is
bound as ``user_id``. Health and readiness probes are logged at debug so
orchestrator polling does not flood the log.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware

from sprintflow.logging import clear_workflow_context, get_logger, set_correlation_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
USER_HEADER = "X-User-ID"
PROBE_PREFIX = "/health"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlates and times each request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        clear_workflow_context()

        user_id = (request.headers.get(USER_HEADER) or "").strip()
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        path = request.url.path
        log = logger.debug if path.startswith(PROBE_PREFIX) else logger.info
        started = time.perf_counter()
        log("request_started", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                duration_ms=_elapsed_ms(started),
            )
            raise
        else:
            log(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            set_correlation_id(None)
            clear_workflow_context()
