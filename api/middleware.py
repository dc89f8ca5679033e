"""
Facility Status API Middleware
==============================
Request lifecycle middleware:

1. RequestIDMiddleware    — Tags every request/response with X-Request-ID
2. TimingMiddleware       — Logs each request with its latency
"""

import time
import uuid
import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("facility.middleware")

SLOW_REQUEST_MS = 500


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Reuses the client's X-Request-ID when present, otherwise mints one,
    and echoes it on the response for log correlation.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """Adds X-Response-Time and logs slow requests as warnings."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Response-Time"] = f"{duration_ms:.1f}ms"

        request_id = getattr(request.state, "request_id", "-")
        line = f"[{request_id}] {request.method} {request.url.path} → {response.status_code} in {duration_ms:.0f}ms"
        if duration_ms > SLOW_REQUEST_MS:
            logger.warning(f"SLOW {line}")
        else:
            logger.info(line)

        return response
