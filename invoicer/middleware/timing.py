"""
Request timing middleware.

Adds Server-Timing and X-Response-Time headers and writes one access log
line per request. Header values (including x-app-password) are never logged.
"""

import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

logger = logging.getLogger("invoicer.access")


class ServerTimingMiddleware(BaseHTTPMiddleware):
    """Time each request and report the duration in headers and logs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time_ms = (time.perf_counter() - start_time) * 1000

        # Format: metric;dur=duration;desc="description"
        response.headers["Server-Timing"] = f"app;dur={process_time_ms:.1f};desc=\"Invoice API\""
        response.headers["X-Response-Time"] = f"{process_time_ms:.1f}ms"

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            process_time_ms,
        )
        return response
