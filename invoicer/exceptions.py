"""
RFC 7807 Problem Details exception handling.

Provides standardized error responses for the API following the
"Problem Details for HTTP APIs" specification.

Server faults never carry internal detail to the client: the raw error is
logged with its trace id and the response only says "Server error".

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel, Field
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import uuid
from datetime import datetime, timezone

from invoicer.middleware.correlation import get_request_id

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Server error"


def _get_trace_id() -> str:
    """Get trace ID from correlation context or generate a new one."""
    request_id = get_request_id()
    if request_id and request_id != "unknown":
        return request_id
    return str(uuid.uuid4())[:12]


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _problem_type(code: "ErrorCode") -> str:
    return f"/problems/{code.value.lower().replace('_', '-')}"


class ErrorCode(str, Enum):
    """Standardized error codes for the invoice API."""

    # Authentication
    UNAUTHORIZED = "AUTH_001"

    # Validation
    VALIDATION_ERROR = "VAL_001"

    # Resource
    NOT_FOUND = "RES_001"
    CONFLICT = "RES_003"

    # Business Logic
    BUSINESS_RULE_VIOLATION = "BIZ_001"

    # Storage
    DATABASE_ERROR = "EXT_004"

    # Server
    INTERNAL_ERROR = "SRV_001"


class ProblemDetail(BaseModel):
    """
    RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short, human-readable summary
        status: HTTP status code
        detail: Human-readable explanation specific to this occurrence
        instance: URI reference identifying this specific occurrence
        code: Machine-readable error code for client handling
        timestamp: ISO 8601 timestamp of when the error occurred
        trace_id: Unique identifier for tracing in logs
        errors: List of field-level validation errors (for 422)
    """

    type: str = Field(
        default="about:blank",
        description="URI reference identifying the problem type"
    )
    title: str = Field(
        description="Short, human-readable summary of the problem"
    )
    status: int = Field(
        description="HTTP status code"
    )
    detail: str = Field(
        description="Human-readable explanation specific to this occurrence"
    )
    instance: Optional[str] = Field(
        default=None,
        description="URI reference for this specific occurrence"
    )
    code: str = Field(
        description="Machine-readable error code"
    )
    timestamp: str = Field(
        description="ISO 8601 timestamp"
    )
    trace_id: str = Field(
        description="Unique trace ID for debugging"
    )
    errors: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Field-level validation errors"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "/problems/res-001",
                "title": "Not Found",
                "status": 404,
                "detail": "Invoice with ID 123 was not found",
                "instance": "/api/invoices/123",
                "code": "RES_001",
                "timestamp": "2026-01-29T10:30:00Z",
                "trace_id": "abc123def456"
            }
        }
    }


class InvoicerException(HTTPException):
    """
    Base exception for the invoice API with RFC 7807 support.

    Usage:
        raise InvoicerException(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Invoice not found",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        title: Optional[str] = None,
        instance: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.errors = errors
        self.trace_id = _get_trace_id()
        self.timestamp = _timestamp()

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title based on status code."""
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            404: "Not Found",
            409: "Conflict",
            422: "Validation Error",
            500: "Internal Server Error",
        }
        return titles.get(status_code, "Error")

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """Convert to RFC 7807 ProblemDetail."""
        return ProblemDetail(
            type=_problem_type(self.code),
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            instance=self.instance or instance,
            code=self.code.value,
            timestamp=self.timestamp,
            trace_id=self.trace_id,
            errors=self.errors,
        )


# Convenience exception classes

class NotFoundError(InvoicerException):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail=f"{resource} with ID {resource_id} was not found",
        )
        self.resource_id = resource_id


class UnauthorizedError(InvoicerException):
    """Missing or wrong shared secret (401).

    Missing and wrong values get the same detail.
    """

    def __init__(self):
        super().__init__(
            status_code=401,
            code=ErrorCode.UNAUTHORIZED,
            detail="Unauthorized",
        )


class ConflictError(InvoicerException):
    """Resource conflict (409)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=409,
            code=ErrorCode.CONFLICT,
            detail=detail,
        )


class BusinessRuleError(InvoicerException):
    """Business rule violation (400)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            code=ErrorCode.BUSINESS_RULE_VIOLATION,
            detail=detail,
        )


class StorageError(InvoicerException):
    """Backing store unreachable or write failed (500).

    The original database error is kept on ``__cause__`` for logging only.
    """

    def __init__(self, operation: str):
        super().__init__(
            status_code=500,
            code=ErrorCode.DATABASE_ERROR,
            detail=GENERIC_SERVER_ERROR,
        )
        self.operation = operation


# Exception handlers for FastAPI

def create_problem_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    request: Request,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create a RFC 7807 compliant JSON response."""
    problem = ProblemDetail(
        type=_problem_type(code),
        title=InvoicerException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=str(request.url.path),
        code=code.value,
        timestamp=_timestamp(),
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )

    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


async def invoicer_exception_handler(request: Request, exc: InvoicerException) -> JSONResponse:
    """Handle InvoicerException with RFC 7807 response."""
    if exc.status_code >= 500:
        cause = exc.__cause__
        logger.error(
            "%s during %s: %s",
            exc.code.value,
            getattr(exc, "operation", request.url.path),
            repr(cause) if cause else exc.detail,
            extra={"trace_id": exc.trace_id, "path": request.url.path},
        )
    else:
        logger.warning(
            f"InvoicerException: {exc.code.value} - {exc.detail}",
            extra={
                "trace_id": exc.trace_id,
                "status_code": exc.status_code,
                "path": request.url.path,
            }
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem_detail(instance=str(request.url.path)).model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTPException with RFC 7807 response."""
    code_map = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.UNAUTHORIZED,
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        409: ErrorCode.CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
    }
    code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    detail = GENERIC_SERVER_ERROR if exc.status_code >= 500 else str(exc.detail)

    return create_problem_response(
        status_code=exc.status_code,
        code=code,
        detail=detail,
        request=request,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with field-level details."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return create_problem_response(
        status_code=422,
        code=ErrorCode.VALIDATION_ERROR,
        detail="Request validation failed",
        request=request,
        errors=errors,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with RFC 7807 response."""
    trace_id = _get_trace_id()

    # Full traceback stays server side
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"trace_id": trace_id, "path": request.url.path, "method": request.method},
    )

    return create_problem_response(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        detail=GENERIC_SERVER_ERROR,
        request=request,
        trace_id=trace_id,
    )


def register_exception_handlers(app) -> None:
    """
    Install the RFC 7807 handlers on a FastAPI app.

    Usage in main.py:
        register_exception_handlers(app)
    """
    app.add_exception_handler(InvoicerException, invoicer_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
