"""API key repository."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import update

from keystone.core.auth.models import ApiKey
from keystone.core.database.repository import Repository, SortOrder


class ApiKeyRepository(Repository[ApiKey]):
    """Repository for ApiKey rows.

    Keys are never edited after issue; the only writes besides create are
    deactivation, soft delete and ``last_used_at`` bookkeeping.
    """

    model = ApiKey
    search_columns = ("name",)
    sort_columns = ("created_at", "name", "last_used_at", "expires_at")
    default_sort = "created_at"
    default_order = SortOrder.DESC

    async def find_by_key(self, stored_key: str) -> ApiKey | None:
        """Exact lookup by the stored key value (verbatim or digest)."""
        return await self.find_one({"key": stored_key})

    async def list_for_user(self, user_id: UUID) -> list[ApiKey]:
        """Live (not soft-deleted) keys owned by a user, newest first."""
        return await self.find_all({"user_id": user_id}, exclude_deleted=True)

    async def deactivate(self, key_id: UUID) -> ApiKey | None:
        """Switch a key off. Returns None when no such key exists."""
        return await self.update_by_id(key_id, {"is_active": False})

    async def touch_last_used(self, key_id: UUID) -> None:
        """Stamp ``last_used_at`` without counting as an edit of the key."""
        stmt = (
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(last_used_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        async with self.session("touch_last_used") as session:
            await session.execute(stmt)
