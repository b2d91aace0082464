"""Request gate: turns request credentials into an authenticated principal.

A bearer token wins over an API key when both are sent; an invalid bearer
token is rejected outright and never falls back to the key. Every failure
surfaces as one of the four deny kinds (see ``DenyReason``); the precise
internal cause is only logged.
"""

from datetime import UTC, datetime

import structlog

from keystone.core.auth.backend import TokenService, hash_api_key
from keystone.core.auth.models import ApiKey
from keystone.core.auth.repos import ApiKeyRepository
from keystone.core.auth.schemas import AuthContext, AuthMethod, TokenKind
from keystone.core.errors import InvalidTokenError, UnauthorizedError
from keystone.core.permissions.resolver import PermissionResolver
from keystone.modules.users.repos import UserRepository


logger = structlog.get_logger()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (some drivers drop the offset)."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def api_key_usable(key: ApiKey, now: datetime | None = None) -> bool:
    """Active, not soft-deleted, and not past its expiry."""
    now = now or datetime.now(UTC)
    if not key.is_active or key.deleted_at is not None:
        return False
    return key.expires_at is None or as_utc(key.expires_at) > now


class RequestGate:
    """Authenticates a request from its raw credential header values."""

    def __init__(
        self,
        tokens: TokenService,
        users: UserRepository,
        api_keys: ApiKeyRepository,
        resolver: PermissionResolver,
        *,
        default_role: str,
        api_key_hashing: bool = False,
    ) -> None:
        self.tokens = tokens
        self.users = users
        self.api_keys = api_keys
        self.resolver = resolver
        self.default_role = default_role
        self.api_key_hashing = api_key_hashing

    async def authenticate(
        self, bearer_token: str | None, api_key: str | None
    ) -> AuthContext:
        """Authenticate with whichever credential is present.

        Raises:
            UnauthorizedError: No credential supplied
            InvalidTokenError: Bad token, unknown/unusable API key, or a
                principal that can no longer authenticate
            ExpiredTokenError: Access token past its expiry
        """
        if bearer_token:
            return await self.authenticate_bearer(bearer_token)
        if api_key:
            return await self.authenticate_api_key(api_key)
        logger.info("authentication_missing")
        raise UnauthorizedError("Authentication required (Bearer token or API key)")

    async def authenticate_bearer(self, token: str) -> AuthContext:
        payload = self.tokens.verify(token, TokenKind.ACCESS)
        user = await self.users.find_authenticatable(payload.id)
        if user is None:
            logger.info("bearer_rejected", reason="principal_unavailable")
            raise InvalidTokenError()
        return AuthContext(
            principal_id=user.id,
            email=user.email,
            role=payload.role,
            method=AuthMethod.BEARER,
        )

    async def authenticate_api_key(self, raw_key: str) -> AuthContext:
        stored = hash_api_key(raw_key) if self.api_key_hashing else raw_key
        key = await self.api_keys.find_by_key(stored)
        if key is None or not api_key_usable(key):
            logger.info(
                "api_key_rejected",
                reason="unknown" if key is None else "unusable",
                api_key_id=str(key.id) if key else None,
            )
            raise InvalidTokenError("Invalid or expired API key")

        user = await self.users.find_authenticatable(key.user_id)
        if user is None:
            logger.info(
                "api_key_rejected", reason="owner_unavailable", api_key_id=str(key.id)
            )
            raise InvalidTokenError("Invalid or expired API key")

        await self.api_keys.touch_last_used(key.id)
        role = await self.resolver.primary_role_of(user.id, self.default_role)
        return AuthContext(
            principal_id=user.id,
            email=user.email,
            role=role,
            method=AuthMethod.API_KEY,
            api_key_id=key.id,
        )
