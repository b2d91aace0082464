"""Principal log context.

Tags the structlog context with the id of the caller when the request
carries a valid bearer access token, so every log line emitted while
serving it can be attributed. Authorization is not decided here.
"""

from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from keystone.core.auth.schemas import TokenKind
from keystone.core.errors import UnauthorizedError


if TYPE_CHECKING:
    from starlette.types import ASGIApp


ANONYMOUS_PATHS = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/refresh",
)


def bearer_token(request: Request) -> str | None:
    """Return the raw bearer token of ``request``, if any."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class PrincipalContextMiddleware(BaseHTTPMiddleware):
    """Bind ``principal_id`` for requests with a valid access token.

    A missing or rejected token leaves the context untouched; the request
    gate produces the actual denial further down the stack.
    """

    def __init__(self, app: "ASGIApp", skip: tuple[str, ...] = ANONYMOUS_PATHS) -> None:
        super().__init__(app)
        self.skip = skip

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        token = None if request.url.path.startswith(self.skip) else bearer_token(request)
        if token is not None:
            try:
                claims = request.app.state.tokens.verify(token, TokenKind.ACCESS)
            except UnauthorizedError:
                claims = None
            if claims is not None:
                request.state.principal_id = str(claims.id)
                structlog.contextvars.bind_contextvars(principal_id=request.state.principal_id)
        return await call_next(request)
