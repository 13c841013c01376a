"""
Middleware modules for the invoice API.

Provides request processing middleware for:
- Correlation ID tracking, injected into log records
- Server-Timing headers for performance debugging
"""

from .correlation import (
    CorrelationIdMiddleware,
    CorrelationLogFilter,
    correlation_id_ctx,
    request_id_ctx,
)
from .timing import ServerTimingMiddleware

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "correlation_id_ctx",
    "request_id_ctx",
    "ServerTimingMiddleware",
]
