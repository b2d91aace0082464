"""Database layer - engine handle, base models, mixins and the generic repository."""

from keystone.core.database.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin
from keystone.core.database.repository import Page, Repository, SortOrder
from keystone.core.database.session import Database


__all__ = [
    "Base",
    "Database",
    "Page",
    "Repository",
    "SoftDeleteMixin",
    "SortOrder",
    "TimestampMixin",
    "UUIDMixin",
]
