"""
Request Logging Middleware

Logs every API request with its duration and tags the response with a
request id for correlation.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from simplr.logging import get_logger

logger = get_logger("access")

SKIPPED_PATHS = ["/", "/health", "/docs", "/openapi.json"]
SLOW_REQUEST_SECONDS = 1.0


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Captures:
    - Request details (method, path, client IP)
    - Response status and duration
    - Request id (incoming X-Request-ID is reused when present)
    """

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if not self.enabled or request.url.path in SKIPPED_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.request(
            "API request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round(duration, 4),
            request_id=request_id,
            ip=self._get_client_ip(request),
        )
        if duration > SLOW_REQUEST_SECONDS:
            logger.slow("Slow request", duration=duration, threshold=SLOW_REQUEST_SECONDS,
                        path=request.url.path)

        response.headers["X-Request-ID"] = request_id
        return response

    def _get_client_ip(self, request: Request) -> str:
        # First hop set by proxies/load balancers
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"
