"""Domain exceptions.

Each class fixes the HTTP status and the machine-readable code clients see;
``handlers`` turns them into Problem Details responses. Services raise
these and never build HTTP responses themselves.
"""

from enum import StrEnum
from typing import Any


class DenyReason(StrEnum):
    """The only failure kinds a caller can observe from the request gate.

    Whatever check actually failed internally, the response names exactly
    one of these.
    """

    AUTHENTICATION_REQUIRED = "authentication_required"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    FORBIDDEN = "forbidden"


class AppException(Exception):
    """Root of the application's error tree.

    Subclasses override the class attributes; instances may override
    ``message`` and ``error_code`` and attach extension members through
    ``details``.
    """

    status_code: int = 500
    error_code: str = "internal_error"
    message: str = "An unexpected error occurred"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if message is not None:
            self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_code!r}, {self.message!r})"


class NotFoundError(AppException):
    """The addressed record does not exist or is soft-deleted."""

    status_code = 404
    error_code = "not_found"
    message = "Resource not found"

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if resource:
            self.details["resource"] = resource
        if resource_id:
            self.details["resource_id"] = resource_id


class ConflictError(AppException):
    """A uniqueness rule would be broken (duplicate email, role grant, ...)."""

    status_code = 409
    error_code = "conflict"
    message = "Resource conflict"


class ValidationError(AppException):
    """Input rejected by a service or repository after schema validation.

    ``errors`` is a list of ``{"field": ..., "message": ...}`` mappings,
    rendered like request validation failures.
    """

    status_code = 422
    error_code = "validation_error"
    message = "Validation error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if errors:
            self.details["errors"] = errors


class UnauthorizedError(AppException):
    """No usable identity could be established for the request."""

    status_code = 401
    reason: DenyReason = DenyReason.AUTHENTICATION_REQUIRED
    error_code = reason.value
    message = "Authentication required"


class InvalidTokenError(UnauthorizedError):
    """Bad signature, wrong token kind, missing claims or garbage input."""

    reason = DenyReason.INVALID_TOKEN
    error_code = reason.value
    message = "Invalid token"


class ExpiredTokenError(UnauthorizedError):
    """Correctly signed token of the right kind, past its expiry."""

    reason = DenyReason.EXPIRED_TOKEN
    error_code = reason.value
    message = "Token has expired"


class ForbiddenError(AppException):
    """Authenticated, but not allowed. Never says which check failed."""

    status_code = 403
    reason: DenyReason = DenyReason.FORBIDDEN
    error_code = reason.value
    message = "Access forbidden"


class InfrastructureError(AppException):
    """The backing store failed or timed out; safe to retry with backoff."""

    status_code = 503
    error_code = "infrastructure_error"
    message = "Service temporarily unavailable"
    retryable = True


class CorruptedCredentialError(AppException):
    """A stored password hash could not be parsed."""

    status_code = 500
    error_code = "corrupted_credential"
    message = "Stored credential is unreadable"
