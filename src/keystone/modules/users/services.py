"""User service for administrative business logic."""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog

from keystone.core.database import Page, SortOrder
from keystone.core.errors import NotFoundError
from keystone.modules.users.models import User
from keystone.modules.users.repos import UserRepository
from keystone.modules.users.schemas import UserUpdate


logger = structlog.get_logger()


class UserService:
    """Service for user management operations.

    Every read here hides soft-deleted users through the repository's
    active-record predicate.
    """

    def __init__(self, repo: UserRepository) -> None:
        self.repo = repo

    async def list_users(
        self,
        page: int,
        limit: int,
        filters: Mapping[str, Any] | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: SortOrder | str | None = None,
    ) -> Page[User]:
        """One page of live users.

        Args:
            page: 1-indexed page number
            limit: Page size
            filters: Exact-match filters (``is_active``, ``email_verified``)
            search: Matched against email and name
            sort_by: Sort column; unknown values fall back to created_at
            sort_order: "asc" or "desc"
        """
        return await self.repo.paginate(
            page,
            limit,
            criteria=filters,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            exclude_deleted=True,
        )

    async def get_user(self, user_id: UUID) -> User:
        """Get a live user by ID.

        Raises:
            NotFoundError: If user not found or soft-deleted
        """
        user = await self.repo.find_by_id(user_id, exclude_deleted=True)
        if user is None:
            raise NotFoundError(
                "User not found",
                resource="user",
                resource_id=str(user_id),
            )
        return user

    async def update_user(self, user_id: UUID, data: UserUpdate) -> User:
        """Apply a partial update to a live user.

        Raises:
            NotFoundError: If user not found or soft-deleted
        """
        await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        updated = await self.repo.update_by_id(user_id, changes)
        if updated is None:
            raise NotFoundError("User not found", resource="user", resource_id=str(user_id))
        logger.info("user_updated", user_id=str(user_id))
        return updated

    async def delete_user(self, user_id: UUID) -> None:
        """Soft-delete a user. The row and its audit trail stay.

        Raises:
            NotFoundError: If user not found or already deleted
        """
        if not await self.repo.soft_delete_by_id(user_id):
            raise NotFoundError("User not found", resource="user", resource_id=str(user_id))
        logger.info("user_soft_deleted", user_id=str(user_id))
