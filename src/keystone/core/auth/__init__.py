"""Authentication: credentials, tokens, API keys and the request gate.

Routers and FastAPI dependencies live in ``routes`` and ``dependencies``
and are imported from there directly.
"""

from keystone.core.auth.backend import CredentialVerifier, TokenService, hash_api_key
from keystone.core.auth.middleware import PrincipalContextMiddleware
from keystone.core.auth.models import ApiKey
from keystone.core.auth.schemas import (
    AuthContext,
    AuthMethod,
    TokenClaims,
    TokenKind,
    TokenPair,
    TokenPayload,
)


__all__ = [
    "ApiKey",
    "AuthContext",
    "AuthMethod",
    "CredentialVerifier",
    "PrincipalContextMiddleware",
    "TokenClaims",
    "TokenKind",
    "TokenPair",
    "TokenPayload",
    "TokenService",
    "hash_api_key",
]
