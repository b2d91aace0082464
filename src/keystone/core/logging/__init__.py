"""Structured logging setup, request correlation and request logging."""

from keystone.core.logging.middleware import RequestIdMiddleware, RequestLoggingMiddleware
from keystone.core.logging.setup import configure_logging


__all__ = [
    "RequestIdMiddleware",
    "RequestLoggingMiddleware",
    "configure_logging",
]
