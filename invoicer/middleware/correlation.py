"""
Correlation ID middleware for request tracing.

Reads or mints a correlation ID and a request ID for every request and keeps
them in context variables, so log records and problem+json error bodies can
name the request they belong to.

Headers:
- X-Correlation-ID: client session ID, echoed back unchanged
- X-Request-ID: per-request ID, echoed back unchanged

Usage:
    from invoicer.middleware.correlation import get_request_id

    trace_id = get_request_id()
"""

import re
import uuid
import logging
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

# Client supplied IDs end up in log lines, so only accept short plain tokens
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def generate_id() -> str:
    """Generate a short unique ID suitable for logging."""
    return str(uuid.uuid4())[:12]


def _accept_or_generate(value: str | None) -> str:
    if value and _VALID_ID.match(value):
        return value
    return generate_id()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Bind correlation and request IDs to the current request context.

    The context variables are reset once the response is produced so IDs
    never leak into work done outside the request.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        correlation_id = _accept_or_generate(request.headers.get("X-Correlation-ID"))
        request_id = _accept_or_generate(request.headers.get("X-Request-ID"))

        correlation_token = correlation_id_ctx.set(correlation_id)
        request_token = request_id_ctx.set(request_id)
        request.state.correlation_id = correlation_id
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        finally:
            correlation_id_ctx.reset(correlation_token)
            request_id_ctx.reset(request_token)

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Request-ID"] = request_id
        return response


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_ctx.get() or "unknown"


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_ctx.get() or "unknown"


class CorrelationLogFilter(logging.Filter):
    """
    Logging filter that stamps correlation IDs onto log records.

    Installed on the root handlers by ``invoicer.main.configure_logging``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.request_id = get_request_id()
        return True
