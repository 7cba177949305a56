"""HTTP middleware: Prometheus request metrics, correlation IDs, access logging."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from app.core.logging import clear_correlation_id, log_error, log_info, set_correlation_id
from app.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

CORRELATION_ID_HEADER = "X-Correlation-ID"
# Incoming IDs are echoed into logs and headers; anything else is replaced.
_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Label for requests that match no route.
UNMATCHED_ENDPOINT = "unmatched"

access_logger = logging.getLogger("app.requests")


def endpoint_label(request: Request) -> str:
    """Low-cardinality endpoint label for metrics.

    Uses the route template (``/api/videos/stream/{video_id}/{quality}``).
    Before routing has run the app's routes are matched directly.
    """
    route = request.scope.get("route")
    if route is None:
        app = request.scope.get("app")
        for candidate in getattr(app, "routes", ()):
            match, _ = candidate.matches(request.scope)
            if match == Match.FULL:
                route = candidate
                break
    return getattr(route, "path", None) or UNMATCHED_ENDPOINT


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request count, latency and in-flight requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(
            method=method, endpoint=endpoint_label(request)
        )
        in_progress.inc()

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            in_progress.dec()
            endpoint = endpoint_label(request)
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=endpoint, status_code=str(status_code)
            ).inc()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation ID to the request and echoes it in the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(CORRELATION_ID_HEADER, "")
        correlation_id = incoming if _CORRELATION_ID_RE.match(incoming) else str(uuid.uuid4())

        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access log entry per request.

    Streaming responses are logged when headers are sent, so ``duration_ms``
    covers time to first byte rather than the whole transfer.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            log_error(
                access_logger,
                "Request failed",
                exception=e,
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise

        log_info(
            access_logger,
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            range=request.headers.get("range"),
            response_bytes=response.headers.get("content-length"),
            client_ip=request.client.host if request.client else None,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response


__all__ = [
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "MetricsMiddleware",
    "RequestLoggingMiddleware",
    "UNMATCHED_ENDPOINT",
    "endpoint_label",
]
