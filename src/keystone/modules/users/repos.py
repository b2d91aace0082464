"""User repository for database operations."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import update

from keystone.core.database.repository import Repository, SortOrder
from keystone.modules.users.models import User


class UserRepository(Repository[User]):
    """Repository for User rows.

    Listing searches ``email`` and ``name``; soft-deleted users are only
    hidden when a caller passes ``exclude_deleted=True``.
    """

    model = User
    search_columns = ("email", "name")
    sort_columns = ("created_at", "updated_at", "email", "name", "last_login_at")
    default_sort = "created_at"
    default_order = SortOrder.DESC

    async def find_by_email(self, email: str, exclude_deleted: bool = True) -> User | None:
        """Get a user by email address.

        Args:
            email: The user's email
            exclude_deleted: Hide soft-deleted users (default)

        Returns:
            User if found, None otherwise
        """
        return await self.find_one({"email": email}, exclude_deleted=exclude_deleted)

    async def find_authenticatable(self, user_id: UUID) -> User | None:
        """A user that may still authenticate: present, live and active."""
        user = await self.find_by_id(user_id, exclude_deleted=True)
        if user is None or not user.is_active:
            return None
        return user

    async def stamp_last_login(self, user_id: UUID) -> None:
        """Record a successful password login."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(last_login_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        async with self.session("stamp_last_login") as session:
            await session.execute(stmt)

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> User | None:
        """The only write path for ``password_hash``."""
        return await self.update_by_id(user_id, {"password_hash": password_hash})
