"""Role and permission repositories.

Both sit on the generic repository for CRUD and add the two-hop graph
queries (user -> role -> permission) used by the resolver.
"""

from collections.abc import Collection
from typing import Any
from uuid import UUID

from sqlalchemy import delete, exists, select

from keystone.core.database.repository import Repository, SortOrder
from keystone.core.errors import NotFoundError
from keystone.core.permissions.models import (
    Permission,
    Role,
    RoleAssignment,
    RolePermission,
)
from keystone.modules.users.models import User


def _live_assignment(user_id: UUID) -> Any:
    """Assignments of a user who still exists and has not been soft-deleted."""
    return (
        (RoleAssignment.user_id == user_id)
        & (User.id == RoleAssignment.user_id)
        & User.deleted_at.is_(None)
    )


class PermissionRepository(Repository[Permission]):
    """Repository for Permission rows."""

    model = Permission
    search_columns = ("slug", "resource", "action", "description")
    sort_columns = ("created_at", "slug", "resource")
    default_sort = "slug"
    default_order = SortOrder.ASC

    async def find_by_slug(self, slug: str) -> Permission | None:
        return await self.find_one({"slug": str(slug)})

    async def find_by_resource(self, resource: str) -> list[Permission]:
        return await self.find_all({"resource": resource})

    async def find_by_action(self, action: str) -> list[Permission]:
        return await self.find_all({"action": action})

    async def find_by_resource_and_action(
        self, resource: str, action: str
    ) -> Permission | None:
        return await self.find_one({"resource": resource, "action": action})

    async def all_slugs(self) -> set[str]:
        async with self.session("all_slugs") as session:
            result = await session.execute(select(Permission.slug))
            return set(result.scalars().all())


class RoleRepository(Repository[Role]):
    """Repository for Role rows and the role graph edges."""

    model = Role
    search_columns = ("name", "slug", "description")
    sort_columns = ("created_at", "name", "slug")
    default_sort = "slug"
    default_order = SortOrder.ASC

    async def find_by_slug(self, slug: str) -> Role | None:
        return await self.find_one({"slug": str(slug)})

    async def get_by_slug(self, slug: str) -> Role:
        """Like ``find_by_slug`` but raises NotFoundError when absent."""
        role = await self.find_by_slug(slug)
        if role is None:
            raise NotFoundError("Role not found", resource="role", resource_id=slug)
        return role

    async def all_slugs(self) -> set[str]:
        async with self.session("all_slugs") as session:
            result = await session.execute(select(Role.slug))
            return set(result.scalars().all())

    # ------------------------------------------------------------------
    # User -> Role edges
    # ------------------------------------------------------------------

    async def assign_role(self, user_id: UUID, role_slug: str) -> RoleAssignment:
        """Give a user a role.

        Raises:
            NotFoundError: If the role slug is unknown
            ConflictError: If the user already holds the role
        """
        role = await self.get_by_slug(role_slug)
        assignment = RoleAssignment(user_id=user_id, role_id=role.id)
        async with self.session("assign_role") as session:
            session.add(assignment)
            await session.flush()
        return assignment

    async def remove_role(self, user_id: UUID, role_slug: str) -> bool:
        """Take a role away from a user. Returns False if it was not held."""
        role = await self.get_by_slug(role_slug)
        stmt = delete(RoleAssignment).where(
            RoleAssignment.user_id == user_id,
            RoleAssignment.role_id == role.id,
        ).execution_options(synchronize_session=False)
        async with self.session("remove_role") as session:
            result = await session.execute(stmt)
            return bool(result.rowcount)

    async def role_slugs_of_user(self, user_id: UUID) -> list[str]:
        """Role slugs held by a user, oldest assignment first."""
        stmt = (
            select(Role.slug)
            .join(RoleAssignment, RoleAssignment.role_id == Role.id)
            .join(User, User.id == RoleAssignment.user_id)
            .where(_live_assignment(user_id))
            .order_by(RoleAssignment.created_at.asc(), Role.slug.asc())
        )
        async with self.session("role_slugs_of_user") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def permission_slugs_of_user(self, user_id: UUID) -> set[str]:
        """Distinct permission slugs reachable through a user's roles."""
        stmt = (
            select(Permission.slug)
            .distinct()
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(RoleAssignment, RoleAssignment.role_id == RolePermission.role_id)
            .join(User, User.id == RoleAssignment.user_id)
            .where(_live_assignment(user_id))
        )
        async with self.session("permission_slugs_of_user") as session:
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def user_has_any_role(self, user_id: UUID, role_slugs: Collection[str]) -> bool:
        """Single EXISTS probe: does the user hold at least one of the roles?"""
        if not role_slugs:
            return False
        probe = exists().where(
            _live_assignment(user_id),
            Role.id == RoleAssignment.role_id,
            Role.slug.in_(list(role_slugs)),
        )
        async with self.session("user_has_any_role") as session:
            result = await session.execute(select(probe))
            return bool(result.scalar())

    async def user_has_any_permission(
        self, user_id: UUID, permission_slugs: Collection[str]
    ) -> bool:
        """Single EXISTS probe over the two-hop join."""
        if not permission_slugs:
            return False
        probe = exists().where(
            _live_assignment(user_id),
            RolePermission.role_id == RoleAssignment.role_id,
            Permission.id == RolePermission.permission_id,
            Permission.slug.in_(list(permission_slugs)),
        )
        async with self.session("user_has_any_permission") as session:
            result = await session.execute(select(probe))
            return bool(result.scalar())

    # ------------------------------------------------------------------
    # Role -> Permission edges
    # ------------------------------------------------------------------

    async def assign_permission(
        self, role_slug: str, permission_slug: str, permissions: PermissionRepository
    ) -> RolePermission:
        """Grant a permission to a role.

        Raises:
            NotFoundError: If either slug is unknown
            ConflictError: If the role already has the permission
        """
        role = await self.get_by_slug(role_slug)
        permission = await permissions.find_by_slug(permission_slug)
        if permission is None:
            raise NotFoundError(
                "Permission not found",
                resource="permission",
                resource_id=permission_slug,
            )
        edge = RolePermission(role_id=role.id, permission_id=permission.id)
        async with self.session("assign_permission") as session:
            session.add(edge)
            await session.flush()
        return edge

    async def remove_permission(self, role_slug: str, permission_slug: str) -> bool:
        """Revoke a permission from a role. Returns False if it was not granted."""
        role = await self.get_by_slug(role_slug)
        permission_ids = select(Permission.id).where(Permission.slug == permission_slug)
        stmt = delete(RolePermission).where(
            RolePermission.role_id == role.id,
            RolePermission.permission_id.in_(permission_ids),
        ).execution_options(synchronize_session=False)
        async with self.session("remove_permission") as session:
            result = await session.execute(stmt)
            return bool(result.rowcount)

    async def permission_slugs_of_role(self, role_slug: str) -> set[str]:
        """Permission slugs granted directly to a role."""
        role = await self.get_by_slug(role_slug)
        stmt = (
            select(Permission.slug)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role.id)
        )
        async with self.session("permission_slugs_of_role") as session:
            result = await session.execute(stmt)
            return set(result.scalars().all())
