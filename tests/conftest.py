"""Pytest configuration and shared fixtures.

Each test gets its own database: a temporary SQLite file through
aiosqlite, or the database named by ``TEST_DATABASE_URL`` (for example a
PostgreSQL instance) with the schema dropped and rebuilt around the test.
"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import NullPool

from keystone.config import Settings
from keystone.core.auth.schemas import TokenPair
from keystone.core.database import Base, Database
from keystone.core.permissions.catalogue import seed_catalogue
from keystone.core.permissions.registry import RoleSlug
from keystone.core.permissions.repos import PermissionRepository, RoleRepository
from keystone.main import create_app
from keystone.modules.users.models import User
from tests.helpers import TEST_PASSWORD

RegisterUser = Callable[..., Awaitable[tuple[User, TokenPair]]]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings for tests: throwaway database, fast bcrypt, distinct secrets."""
    return Settings(
        database_url=os.environ.get(
            "TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'keystone.db'}"
        ),
        environment="testing",
        jwt_access_secret="test-access-secret-" + "a" * 32,
        jwt_refresh_secret="test-refresh-secret-" + "b" * 32,
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Empty schema, torn down after the test."""
    db = Database(
        settings.async_database_url,
        timeout=settings.database_timeout_seconds,
        poolclass=NullPool,
    )
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield db

    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db.dispose()


@pytest.fixture
def roles(database: Database) -> RoleRepository:
    return RoleRepository(database)


@pytest.fixture
def permissions(database: Database) -> PermissionRepository:
    return PermissionRepository(database)


@pytest.fixture
async def seeded(
    database: Database, roles: RoleRepository, permissions: PermissionRepository
) -> Database:
    """Database with the role/permission catalogue in place."""
    await seed_catalogue(roles, permissions)
    return database


@pytest.fixture
def app(settings: Settings, seeded: Database) -> FastAPI:
    return create_app(settings, database=seeded)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client driving the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register_user(app: FastAPI) -> RegisterUser:
    """Register a user through the auth service, optionally granting a role.

    Returns the user and a token pair minted after the role was granted.
    """

    async def _register(
        role: RoleSlug | None = None,
        email: str | None = None,
        password: str = TEST_PASSWORD,
    ) -> tuple[User, TokenPair]:
        service = app.state.auth_service
        email = email or f"user-{uuid4().hex[:8]}@example.com"
        user, tokens = await service.register(email, password)
        if role is not None and role is not RoleSlug.USER:
            await app.state.roles.remove_role(user.id, RoleSlug.USER)
            await app.state.roles.assign_role(user.id, role)
            _user, tokens = await service.login(email, password)
        return user, tokens

    return _register
