"""Small helpers shared by test modules."""

from keystone.core.auth.schemas import TokenPair


TEST_PASSWORD = "Str0ng!Pass"


def bearer(tokens: TokenPair | str) -> dict[str, str]:
    """Authorization header for a token pair or a raw access token."""
    token = tokens if isinstance(tokens, str) else tokens.access_token
    return {"Authorization": f"Bearer {token}"}


def api_key_header(key: str) -> dict[str, str]:
    return {"X-API-Key": key}
