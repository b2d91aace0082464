"""API key database model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, true
from sqlalchemy.orm import Mapped, mapped_column

from keystone.core.constants import MAX_API_KEY_LENGTH, MAX_NAME_LENGTH
from keystone.core.database.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin


class ApiKey(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Long-lived credential owned by a user.

    Issued once and never edited afterwards except for deactivation and
    ``last_used_at`` bookkeeping; rotation means issuing a new key and
    deactivating the old one.

    Attributes:
        user_id: Owner of the key
        name: Human label
        key: The secret, verbatim, or its SHA-256 hex digest when
            hashed-at-rest storage is enabled
        is_active: Deactivated keys never authenticate
        expires_at: Optional expiry; past expiry the key never authenticates
        last_used_at: Time of the last successful authentication
    """

    __tablename__ = "api_keys"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(MAX_NAME_LENGTH),
        nullable=False,
    )
    key: Mapped[str] = mapped_column(
        String(MAX_API_KEY_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=true(),
        nullable=False,
        index=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, user_id={self.user_id}, active={self.is_active})>"
