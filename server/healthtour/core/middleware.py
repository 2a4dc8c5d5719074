"""Custom middleware for request correlation, trace context, and request logging."""

import re
import time
import uuid
import logging
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .observability import REQUEST_COUNT, REQUEST_DURATION


logger = logging.getLogger(__name__)

TRACEPARENT_PATTERN = re.compile(r"^00-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a request ID to every request.

    The ID comes from the X-Request-ID header when the caller supplies one.
    It is echoed on the response and bound into the structlog context so
    every log line emitted while handling the request carries it.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


class TraceContextMiddleware(BaseHTTPMiddleware):
    """
    Propagate W3C Trace Context headers.

    https://www.w3.org/TR/trace-context/
    """

    @staticmethod
    def _parse_traceparent(traceparent: Optional[str]) -> Optional[tuple[str, str, str]]:
        if not traceparent:
            return None
        match = TRACEPARENT_PATTERN.match(traceparent)
        if not match:
            return None
        trace_id, parent_id, flags = match.groups()
        if trace_id == "0" * 32 or parent_id == "0" * 16:
            return None
        return trace_id, parent_id, flags

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        parsed = self._parse_traceparent(request.headers.get("traceparent"))
        if parsed:
            trace_id, parent_span_id, flags = parsed
        else:
            trace_id, parent_span_id, flags = uuid.uuid4().hex, None, "01"

        span_id = uuid.uuid4().hex[:16]
        tracestate = request.headers.get("tracestate")
        request.state.trace_context = {
            "trace_id": trace_id,
            "span_id": span_id,
            "parent_span_id": parent_span_id,
            "flags": flags,
        }

        response = await call_next(request)

        response.headers["traceparent"] = f"00-{trace_id}-{span_id}-{flags}"
        if tracestate:
            response.headers["tracestate"] = tracestate
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each HTTP request with timing and record the request metrics."""

    def __init__(self, app: ASGIApp, skip_paths: Optional[list] = None):
        super().__init__(app)
        self.skip_paths = skip_paths or ["/health", "/metrics", "/favicon.ico"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.skip_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route template keeps label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(
            method=request.method, endpoint=endpoint, status_code=str(response.status_code)
        ).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

        trace_context = getattr(request.state, "trace_context", {})
        log_data = {
            "request_id": getattr(request.state, "request_id", "unknown"),
            "trace_id": trace_context.get("trace_id", "unknown"),
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }

        if response.status_code >= 500:
            logger.error("HTTP request completed with server error", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("HTTP request completed with client error", extra=log_data)
        else:
            logger.info("HTTP request completed successfully", extra=log_data)

        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Setup all middleware on the FastAPI app.

    Args:
        app: FastAPI application instance
        enable_logging: Whether to enable request logging middleware
    """
    # Last added runs first
    if enable_logging:
        app.add_middleware(LoggingMiddleware)

    app.add_middleware(TraceContextMiddleware)
    app.add_middleware(RequestIDMiddleware)

    logger.debug("Middleware configured", extra={"environment": settings.environment})
