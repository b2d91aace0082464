"""Credential verification and signed-token handling.

This module provides the two pure building blocks of authentication:
- ``CredentialVerifier``: bcrypt password hashing and verification
- ``TokenService``: issue/verify access and refresh JWTs, each kind with
  its own signing secret and TTL
"""

import hashlib
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from keystone.config import Settings
from keystone.core.auth.schemas import TokenClaims, TokenKind, TokenPair, TokenPayload
from keystone.core.constants import DEFAULT_BCRYPT_ROUNDS
from keystone.core.errors import (
    CorruptedCredentialError,
    ExpiredTokenError,
    InvalidTokenError,
)


logger = structlog.get_logger()


# ============================================================
# Password Utilities
# ============================================================


class CredentialVerifier:
    """Bcrypt password hashing with a tunable work factor.

    Each hash carries its own random salt, so hashing the same password
    twice gives different strings that both verify.
    """

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Bcrypt hash of the password
        """
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash.

        Args:
            password: Plain text password to verify
            password_hash: Stored bcrypt hash

        Returns:
            True if password matches, False otherwise

        Raises:
            CorruptedCredentialError: If the stored hash is not a readable bcrypt hash
        """
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError) as exc:
            logger.error("password_hash_unreadable")
            raise CorruptedCredentialError() from exc

    def needs_rehash(self, password_hash: str) -> bool:
        """Whether a hash was made with a different work factor."""
        return self._context.needs_update(password_hash)


def hash_api_key(key: str) -> str:
    """SHA-256 hex digest used for hashed-at-rest API keys."""
    return hashlib.sha256(key.encode()).hexdigest()


# ============================================================
# JWT Token Utilities
# ============================================================


class TokenService:
    """Issues and verifies stateless access and refresh tokens.

    Tokens are never stored. A token signed for one kind never verifies as
    the other because the two kinds use different secrets and carry a
    ``type`` claim.
    """

    def __init__(self, settings: Settings) -> None:
        self.algorithm = settings.jwt_algorithm
        self._secrets = {
            TokenKind.ACCESS: settings.jwt_access_secret,
            TokenKind.REFRESH: settings.jwt_refresh_secret,
        }
        self._ttls = {
            TokenKind.ACCESS: timedelta(minutes=settings.access_token_expire_minutes),
            TokenKind.REFRESH: timedelta(days=settings.refresh_token_expire_days),
        }

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._ttls[TokenKind.ACCESS].total_seconds())

    def issue(
        self,
        claims: TokenClaims,
        kind: TokenKind,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a signed token.

        Args:
            claims: Principal id, email and role to embed
            kind: Selects the signing secret and default TTL
            expires_delta: Optional custom lifetime

        Returns:
            Encoded JWT
        """
        now = datetime.now(UTC)
        to_encode: dict[str, Any] = {
            "sub": str(claims.id),
            "id": str(claims.id),
            "email": claims.email,
            "role": claims.role,
            "type": kind.value,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self._ttls[kind]),
        }
        return jwt.encode(to_encode, self._secrets[kind], algorithm=self.algorithm)

    def verify(self, token: str, kind: TokenKind) -> TokenPayload:
        """Decode and validate a token of the given kind.

        The signature is checked before expiry, so a token signed with the
        other kind's secret is invalid even when it has also expired.

        Raises:
            InvalidTokenError: Bad signature, wrong kind or malformed token
            ExpiredTokenError: Correctly signed but past its expiry
        """
        try:
            raw = jwt.decode(token, self._secrets[kind], algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            logger.info("token_rejected", kind=kind.value, reason="expired_token")
            raise ExpiredTokenError() from exc
        except JWTError as exc:
            logger.info("token_rejected", kind=kind.value, reason="invalid_token")
            raise InvalidTokenError() from exc

        if raw.get("type") != kind.value:
            logger.info("token_rejected", kind=kind.value, reason="wrong_kind")
            raise InvalidTokenError()

        try:
            return TokenPayload.model_validate(raw)
        except PydanticValidationError as exc:
            logger.info("token_rejected", kind=kind.value, reason="malformed_claims")
            raise InvalidTokenError() from exc

    def issue_pair(self, claims: TokenClaims) -> TokenPair:
        """Issue an access token and a refresh token for the same claims."""
        return TokenPair(
            access_token=self.issue(claims, TokenKind.ACCESS),
            refresh_token=self.issue(claims, TokenKind.REFRESH),
            expires_in=self.access_ttl_seconds,
        )
