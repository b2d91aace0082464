"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keystone import __version__
from keystone.api.router import build_api_router
from keystone.config import Settings, get_settings
from keystone.core.auth.backend import CredentialVerifier, TokenService
from keystone.core.auth.gate import RequestGate
from keystone.core.auth.middleware import PrincipalContextMiddleware
from keystone.core.auth.repos import ApiKeyRepository
from keystone.core.auth.service import AuthService
from keystone.core.database import Database, Repository
from keystone.core.errors import register_exception_handlers
from keystone.core.logging import (
    RequestIdMiddleware,
    RequestLoggingMiddleware,
    configure_logging,
)
from keystone.core.permissions.catalogue import verify_catalogue
from keystone.core.permissions.repos import PermissionRepository, RoleRepository
from keystone.core.permissions.resolver import PermissionResolver
from keystone.modules.products.models import (
    PRODUCT_SEARCH_COLUMNS,
    PRODUCT_SORT_COLUMNS,
    Product,
)
from keystone.modules.users.repos import UserRepository
from keystone.modules.users.services import UserService


logger = structlog.get_logger()


def build_services(app: FastAPI, settings: Settings, database: Database) -> None:
    """Construct every repository and service once and attach them to ``app.state``."""
    users = UserRepository(database)
    roles = RoleRepository(database)
    permissions = PermissionRepository(database)
    api_keys = ApiKeyRepository(database)
    products = Repository(
        database,
        Product,
        search_columns=PRODUCT_SEARCH_COLUMNS,
        sort_columns=PRODUCT_SORT_COLUMNS,
    )

    verifier = CredentialVerifier(settings.bcrypt_rounds)
    tokens = TokenService(settings)
    resolver = PermissionResolver(roles)

    app.state.settings = settings
    app.state.database = database
    app.state.users = users
    app.state.roles = roles
    app.state.permissions = permissions
    app.state.api_keys = api_keys
    app.state.products = products
    app.state.verifier = verifier
    app.state.tokens = tokens
    app.state.resolver = resolver
    app.state.gate = RequestGate(
        tokens,
        users,
        api_keys,
        resolver,
        default_role=settings.default_role,
        api_key_hashing=settings.api_key_hashing,
    )
    app.state.auth_service = AuthService(
        database,
        users,
        roles,
        api_keys,
        resolver,
        verifier,
        tokens,
        default_role=settings.default_role,
        api_key_prefix=settings.api_key_prefix,
        api_key_hashing=settings.api_key_hashing,
    )
    app.state.user_service = UserService(users)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Verifies the role/permission registry against the store on startup
    and closes the connection pool on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        environment=settings.environment,
    )

    if settings.validate_rbac_on_startup:
        await verify_catalogue(app.state.roles, app.state.permissions)

    yield

    logger.info("application_shutdown")
    await app.state.database.dispose()
    logger.info("database_pool_closed")


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings
        database: Pre-built database handle (tests); built from settings otherwise

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, json=settings.is_production)

    database = database or Database(
        settings.async_database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        timeout=settings.database_timeout_seconds,
    )

    app = FastAPI(
        title=settings.app_name,
        description="Authenticated, role-gated CRUD service",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
        # Disable docs in production
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )

    build_services(app, settings, database)

    cors_origins = settings.cors_origins
    if settings.is_development and not cors_origins:
        cors_origins = ["http://localhost:3000", "http://localhost:5173"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-API-Key"],
    )

    # Last added runs first: request id, then principal context, then logging
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(PrincipalContextMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(build_api_router())

    return app
