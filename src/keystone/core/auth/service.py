"""Authentication service for registration, login, tokens and API keys."""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog
from starlette.concurrency import run_in_threadpool

from keystone.core.auth.backend import CredentialVerifier, TokenService, hash_api_key
from keystone.core.auth.models import ApiKey
from keystone.core.auth.repos import ApiKeyRepository
from keystone.core.auth.schemas import TokenClaims, TokenKind, TokenPair
from keystone.core.constants import API_KEY_RANDOM_LENGTH
from keystone.core.database import Database
from keystone.core.errors import (
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from keystone.core.permissions.repos import RoleRepository
from keystone.core.permissions.resolver import PermissionResolver
from keystone.core.utils.text import random_alphanumeric
from keystone.modules.users.models import User
from keystone.modules.users.repos import UserRepository
from keystone.modules.users.schemas import ApiKeyCreated, ProfileResponse, UserResponse


logger = structlog.get_logger()

_INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Service for authentication operations.

    Handles registration, login, token refresh, profile lookup, password
    changes and API key issuance. Password hashing runs in the thread pool
    so bcrypt never blocks the event loop.
    """

    def __init__(
        self,
        database: Database,
        users: UserRepository,
        roles: RoleRepository,
        api_keys: ApiKeyRepository,
        resolver: PermissionResolver,
        verifier: CredentialVerifier,
        tokens: TokenService,
        *,
        default_role: str,
        api_key_prefix: str,
        api_key_hashing: bool = False,
    ) -> None:
        self.database = database
        self.users = users
        self.roles = roles
        self.api_keys = api_keys
        self.resolver = resolver
        self.verifier = verifier
        self.tokens = tokens
        self.default_role = default_role
        self.api_key_prefix = api_key_prefix
        self.api_key_hashing = api_key_hashing

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        phone: str | None = None,
    ) -> tuple[User, TokenPair]:
        """Register a new user with the default role.

        User creation, role assignment and token issue happen in one
        transaction: if any step fails nothing is persisted.

        Returns:
            Tuple of (user, token_pair)

        Raises:
            ConflictError: If the email is already registered (including a
                concurrent registration that won the race)
        """
        password_hash = await run_in_threadpool(self.verifier.hash, password)

        async with self.database.transaction():
            if await self.users.exists({"email": email}):
                raise ConflictError("Email already registered", error_code="email_exists")

            user = await self.users.create(
                {
                    "email": email,
                    "password_hash": password_hash,
                    "name": name,
                    "phone": phone,
                }
            )
            await self.roles.assign_role(user.id, self.default_role)
            tokens = self.tokens.issue_pair(
                TokenClaims(id=user.id, email=user.email, role=self.default_role)
            )

        logger.info("principal_registered", principal_id=str(user.id))
        return user, tokens

    async def login(self, email: str, password: str) -> tuple[User, TokenPair]:
        """Authenticate a user with email and password.

        Unknown email, wrong password and a deactivated account all get the
        same error so the response does not reveal which one it was.

        Raises:
            UnauthorizedError: If credentials are invalid
        """
        user = await self.users.find_by_email(email)
        if user is None:
            logger.info("login_failed", reason="unknown_email")
            raise UnauthorizedError(_INVALID_CREDENTIALS, error_code="invalid_credentials")

        if not await run_in_threadpool(self.verifier.verify, password, user.password_hash):
            logger.info("login_failed", reason="bad_password", principal_id=str(user.id))
            raise UnauthorizedError(_INVALID_CREDENTIALS, error_code="invalid_credentials")

        if not user.is_active:
            logger.info("login_failed", reason="inactive", principal_id=str(user.id))
            raise UnauthorizedError(_INVALID_CREDENTIALS, error_code="invalid_credentials")

        await self.users.stamp_last_login(user.id)
        tokens = await self._issue_for(user)
        logger.info("principal_logged_in", principal_id=str(user.id))
        return user, tokens

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair.

        The user is re-read so a deactivated or deleted account cannot keep
        refreshing, and the new tokens carry the current primary role.

        Raises:
            InvalidTokenError: Bad refresh token or unusable account
            ExpiredTokenError: Refresh token past its expiry
        """
        payload = self.tokens.verify(refresh_token, TokenKind.REFRESH)
        user = await self.users.find_authenticatable(payload.id)
        if user is None:
            logger.info("refresh_rejected", reason="principal_unavailable")
            raise InvalidTokenError()
        return await self._issue_for(user)

    async def get_profile(self, user_id: UUID) -> ProfileResponse:
        """The user's own record with resolved roles and permissions.

        Raises:
            NotFoundError: If the user does not exist or was deleted
        """
        user = await self.users.find_by_id(user_id, exclude_deleted=True)
        if user is None:
            raise NotFoundError("User not found", resource="user", resource_id=str(user_id))
        roles = await self.roles.role_slugs_of_user(user_id)
        permissions = await self.resolver.permissions_of(user_id)
        return ProfileResponse(
            **UserResponse.model_validate(user).model_dump(),
            roles=roles,
            permissions=sorted(permissions),
        )

    async def change_password(
        self, user_id: UUID, current_password: str, new_password: str
    ) -> None:
        """Re-hash path for ``password_hash``.

        Raises:
            NotFoundError: If the user does not exist or was deleted
            ValidationError: If the current password is wrong
        """
        user = await self.users.find_by_id(user_id, exclude_deleted=True)
        if user is None:
            raise NotFoundError("User not found", resource="user", resource_id=str(user_id))

        if not await run_in_threadpool(
            self.verifier.verify, current_password, user.password_hash
        ):
            raise ValidationError(
                "Current password is incorrect",
                errors=[{"field": "current_password", "message": "Incorrect password"}],
            )

        new_hash = await run_in_threadpool(self.verifier.hash, new_password)
        await self.users.set_password_hash(user_id, new_hash)
        logger.info("password_changed", principal_id=str(user_id))

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def _stored_key(self, raw_key: str) -> str:
        return hash_api_key(raw_key) if self.api_key_hashing else raw_key

    async def generate_api_key(
        self, user_id: UUID, name: str, expires_in_days: int | None = None
    ) -> ApiKeyCreated:
        """Issue a new API key. The raw key is only ever returned here."""
        raw_key = f"{self.api_key_prefix}{random_alphanumeric(API_KEY_RANDOM_LENGTH)}"
        expires_at = (
            datetime.now(UTC) + timedelta(days=expires_in_days)
            if expires_in_days
            else None
        )
        key = await self.api_keys.create(
            {
                "user_id": user_id,
                "name": name,
                "key": self._stored_key(raw_key),
                "expires_at": expires_at,
            }
        )
        logger.info("api_key_issued", principal_id=str(user_id), api_key_id=str(key.id))
        return ApiKeyCreated(id=key.id, key=raw_key, name=key.name, expires_at=expires_at)

    async def list_api_keys(self, user_id: UUID) -> list[ApiKey]:
        return await self.api_keys.list_for_user(user_id)

    async def deactivate_api_key(self, user_id: UUID, key_id: UUID) -> ApiKey:
        """Switch off one of the caller's own keys.

        Raises:
            NotFoundError: If the key does not exist or belongs to someone else
        """
        key = await self.api_keys.find_by_id(key_id, exclude_deleted=True)
        if key is None or key.user_id != user_id:
            raise NotFoundError(
                "API key not found", resource="api_key", resource_id=str(key_id)
            )
        updated = await self.api_keys.deactivate(key_id)
        logger.info("api_key_deactivated", principal_id=str(user_id), api_key_id=str(key_id))
        return updated or key

    async def _issue_for(self, user: User) -> TokenPair:
        role = await self.resolver.primary_role_of(user.id, self.default_role)
        return self.tokens.issue_pair(TokenClaims(id=user.id, email=user.email, role=role))
