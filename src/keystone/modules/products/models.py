"""Product database model."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from keystone.core.constants import MAX_NAME_LENGTH
from keystone.core.database.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin


class Product(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """A catalogue item."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name})>"


PRODUCT_SEARCH_COLUMNS = ("name", "description")
PRODUCT_SORT_COLUMNS = ("created_at", "updated_at", "name")
