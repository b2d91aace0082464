"""FastAPI dependencies for authentication.

This module provides FastAPI dependency injection functions for:
- Reading the bearer token and the X-API-Key header
- Running the request gate and exposing the authenticated principal
"""

from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from keystone.api.dependencies import Gate
from keystone.core.auth.schemas import AuthContext
from keystone.core.errors import UnauthorizedError


API_KEY_HEADER = "X-API-Key"

# Both schemes report absence instead of failing so the gate decides
bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def _bind_principal(request: Request, principal: AuthContext) -> None:
    request.state.principal_id = str(principal.principal_id)
    structlog.contextvars.bind_contextvars(principal_id=request.state.principal_id)


async def get_current_principal(
    request: Request,
    gate: Gate,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    api_key: Annotated[str | None, Depends(api_key_scheme)],
) -> AuthContext:
    """Authenticate with a bearer token, or failing that an API key.

    Raises:
        UnauthorizedError: If no credential is present or it is rejected
    """
    principal = await gate.authenticate(
        credentials.credentials if credentials else None,
        api_key,
    )
    _bind_principal(request, principal)
    return principal


async def get_api_key_principal(
    request: Request,
    gate: Gate,
    api_key: Annotated[str | None, Depends(api_key_scheme)],
) -> AuthContext:
    """Authenticate with the X-API-Key header only."""
    if not api_key:
        raise UnauthorizedError("API key is required")
    principal = await gate.authenticate_api_key(api_key)
    _bind_principal(request, principal)
    return principal


CurrentPrincipal = Annotated[AuthContext, Depends(get_current_principal)]
ApiKeyPrincipal = Annotated[AuthContext, Depends(get_api_key_principal)]
