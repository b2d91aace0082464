"""User-facing schema factories for tests."""

from uuid import uuid4

from polyfactory.factories.pydantic_factory import ModelFactory

from keystone.modules.users.schemas import ApiKeyCreate, RegisterRequest
from tests.helpers import TEST_PASSWORD


class RegisterRequestFactory(ModelFactory[RegisterRequest]):
    """Factory for registration payloads that pass validation."""

    __model__ = RegisterRequest

    @classmethod
    def email(cls) -> str:
        """Generate a unique email."""
        return f"user-{uuid4().hex[:8]}@example.com"

    @classmethod
    def password(cls) -> str:
        return TEST_PASSWORD

    @classmethod
    def name(cls) -> str:
        return f"Test User {uuid4().hex[:4]}"

    @classmethod
    def phone(cls) -> str:
        return "+15555550123"


class ApiKeyCreateFactory(ModelFactory[ApiKeyCreate]):
    """Factory for API key requests."""

    __model__ = ApiKeyCreate

    @classmethod
    def name(cls) -> str:
        return f"key-{uuid4().hex[:6]}"

    @classmethod
    def expires_in_days(cls) -> int:
        return 30
