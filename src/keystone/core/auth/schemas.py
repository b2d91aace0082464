"""Authentication schemas for token handling."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TokenKind(StrEnum):
    """The two token classes; each is signed with its own secret."""

    ACCESS = "access"
    REFRESH = "refresh"


class AuthMethod(StrEnum):
    """How a request authenticated."""

    BEARER = "bearer"
    API_KEY = "api_key"


class TokenClaims(BaseModel):
    """What a caller asks to embed in a token."""

    id: UUID
    email: str
    role: str


class TokenPayload(TokenClaims):
    """Data extracted from a verified JWT.

    Attributes:
        id: The user's UUID
        email: The user's email at issue time
        role: Primary role slug at issue time
        iat: Issue time
        exp: Expiry time
        type: Token kind the token was issued as
    """

    iat: datetime
    exp: datetime
    type: TokenKind

    def claims(self) -> TokenClaims:
        """The issued claims without the timestamp fields."""
        return TokenClaims(id=self.id, email=self.email, role=self.role)


class TokenPair(BaseModel):
    """A pair of access and refresh tokens.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT for getting a new pair
        token_type: Always "bearer"
        expires_in: Access token expiration in seconds
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthContext(BaseModel):
    """The authenticated principal attached to a request.

    ``role`` is the role embedded in the token for bearer requests, or the
    owner's primary role for API-key requests; authorization checks always
    go back to the store instead of trusting it.
    """

    model_config = ConfigDict(frozen=True)

    principal_id: UUID
    email: str
    role: str
    method: AuthMethod
    api_key_id: UUID | None = Field(default=None)
