"""RFC 7807 Problem Details exception handlers.

Every error leaving the application is a Problem Details document:

    {"type": ".../errors/invalid_token", "title": "Invalid Token",
     "status": 401, "detail": "Invalid token", "instance": "/api/v1/auth/me",
     "reason": "invalid_token", "trace_id": "..."}

Authentication and authorization failures add ``reason`` (one of the
``DenyReason`` values) and 401s carry ``WWW-Authenticate: Bearer``.
Store failures add ``retryable: true``.

See: https://tools.ietf.org/html/rfc7807
"""

from typing import TYPE_CHECKING, Any, cast

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from keystone.core.errors.exceptions import (
    AppException,
    ForbiddenError,
    UnauthorizedError,
)


if TYPE_CHECKING:
    from starlette.types import ExceptionHandler


logger = structlog.get_logger()

DEFAULT_DOCS_BASE_URL = "https://api.example.com"


class FieldError(BaseModel):
    """Represents a single field validation error."""

    field: str
    message: str
    type: str | None = None


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short human-readable summary
        status: HTTP status code
        detail: Human-readable explanation specific to this occurrence
        instance: Request path the problem occurred on
        errors: Field-level errors (validation only)
        reason: Deny kind for authentication/authorization failures
        retryable: Set when the caller may retry with backoff
        trace_id: Request ID for correlating with logs
    """

    type: str
    title: str
    status: int
    detail: str
    instance: str | None = None
    errors: list[FieldError] | None = None
    reason: str | None = None
    retryable: bool | None = None
    trace_id: str | None = None

    model_config = {"extra": "allow"}


def _problem(
    request: Request,
    *,
    status_code: int,
    code: str,
    detail: str,
    title: str | None = None,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    settings = getattr(request.app.state, "settings", None)
    base_url = settings.api_docs_base_url if settings else DEFAULT_DOCS_BASE_URL
    problem = ProblemDetail(
        type=f"{base_url}/errors/{code}",
        title=title or code.replace("_", " ").title(),
        status=status_code,
        detail=detail,
        instance=request.url.path,
        trace_id=getattr(request.state, "trace_id", None),
        **extra,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an ``AppException`` subclass.

    ``details`` entries become extension members unless they would
    shadow a standard member.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "app_exception",
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
    )

    extra = {
        key: value
        for key, value in exc.details.items()
        if key not in ProblemDetail.model_fields
    }
    if "errors" in exc.details:
        extra["errors"] = [FieldError(**error) for error in exc.details["errors"]]

    headers: dict[str, str] | None = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    if isinstance(exc, UnauthorizedError | ForbiddenError):
        extra["reason"] = exc.reason.value
    if exc.retryable:
        extra["retryable"] = True

    return _problem(
        request,
        status_code=exc.status_code,
        code=exc.error_code,
        detail=exc.message,
        headers=headers,
        **extra,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures with one entry per field."""
    errors = [
        FieldError(
            # "body"/"query" prefixes say nothing to the client
            field=".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query"))
            or "unknown",
            message=error.get("msg", "Invalid value"),
            type=error.get("type"),
        )
        for error in exc.errors()
    ]

    logger.warning("validation_error", path=request.url.path, error_count=len(errors))

    return _problem(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        title="Validation Error",
        detail="Request validation failed",
        errors=errors,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the exception, answer with an opaque 500."""
    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return _problem(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="internal_error",
        title="Internal Server Error",
        detail="An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Call this function during app initialization:

        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(
        AppException, cast("ExceptionHandler", app_exception_handler)
    )
    app.add_exception_handler(
        RequestValidationError, cast("ExceptionHandler", validation_exception_handler)
    )
    app.add_exception_handler(Exception, generic_exception_handler)
