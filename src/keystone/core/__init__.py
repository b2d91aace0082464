"""Core services and cross-cutting concerns."""

from keystone.core.database import Base, Database, Repository
from keystone.core.errors import (
    AppException,
    ConflictError,
    ForbiddenError,
    InfrastructureError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    register_exception_handlers,
)


__all__ = [
    # Errors
    "AppException",
    # Database
    "Base",
    "ConflictError",
    "Database",
    "ForbiddenError",
    "InfrastructureError",
    "NotFoundError",
    "Repository",
    "UnauthorizedError",
    "ValidationError",
    "register_exception_handlers",
]
