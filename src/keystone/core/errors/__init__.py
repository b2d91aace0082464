"""Error handling module with RFC 7807 Problem Details."""

from keystone.core.errors.exceptions import (
    AppException,
    ConflictError,
    CorruptedCredentialError,
    DenyReason,
    ExpiredTokenError,
    ForbiddenError,
    InfrastructureError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from keystone.core.errors.handlers import (
    FieldError,
    ProblemDetail,
    register_exception_handlers,
)


__all__ = [
    # Exceptions
    "AppException",
    "ConflictError",
    "CorruptedCredentialError",
    "DenyReason",
    "ExpiredTokenError",
    # Handlers
    "FieldError",
    "ForbiddenError",
    "InfrastructureError",
    "InvalidTokenError",
    "NotFoundError",
    "ProblemDetail",
    "UnauthorizedError",
    "ValidationError",
    "register_exception_handlers",
]
