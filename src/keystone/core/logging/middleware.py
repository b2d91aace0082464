"""Request correlation and access logging.

``RequestIdMiddleware`` gives each request an id (taken from
``X-Request-ID`` when the client sends one) and binds it to the structlog
context. ``RequestLoggingMiddleware`` writes one ``request_started`` and
one ``request_completed`` event per request. Headers and bodies are never
logged.
"""

import time
import uuid
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint


logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = ("/health/live", "/health/ready", "/docs", "/redoc", "/openapi.json")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation id to the request, its logs and its response.

    The id is stored as ``request.state.trace_id`` and echoed in problem
    responses.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        trace_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.trace_id = trace_id

        with structlog.contextvars.bound_contextvars(request_id=trace_id):
            try:
                response = await call_next(request)
            finally:
                structlog.contextvars.unbind_contextvars("principal_id")

        response.headers[REQUEST_ID_HEADER] = trace_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every non-quiet request."""

    def __init__(self, app: Any, quiet_paths: tuple[str, ...] = QUIET_PATHS) -> None:
        super().__init__(app)
        self.quiet_paths = quiet_paths

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path.startswith(self.quiet_paths):
            return await call_next(request)

        fields: dict[str, Any] = {"method": request.method, "path": request.url.path}
        logger.info("request_started", client_ip=client_ip(request), **fields)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_failed",
                duration_ms=_elapsed_ms(started),
                error_type=type(exc).__name__,
                **fields,
            )
            raise

        fields["status_code"] = response.status_code
        fields["duration_ms"] = _elapsed_ms(started)
        principal_id = getattr(request.state, "principal_id", None)
        if principal_id:
            fields["principal_id"] = principal_id

        if response.status_code >= 500:
            logger.error("request_completed", **fields)
        elif response.status_code >= 400:
            logger.warning("request_completed", **fields)
        else:
            logger.info("request_completed", **fields)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def client_ip(request: Request) -> str | None:
    """Best-effort client address, honouring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else None)
