"""Permission graph resolution.

This module answers "which roles / permissions does this user hold" and
the membership checks used by request gating. Multi-value checks use
any-of semantics. An unknown user, a soft-deleted user and a user without
roles are indistinguishable: they hold nothing.
"""

from collections.abc import Iterable
from uuid import UUID

import structlog

from keystone.core.errors import ForbiddenError
from keystone.core.permissions.registry import PermissionSlug, RoleSlug
from keystone.core.permissions.repos import RoleRepository


logger = structlog.get_logger()


class PermissionResolver:
    """Resolves a user's roles and permissions through role assignments.

    Single checks issue one EXISTS probe and never materialize the full
    permission set. Store failures propagate as InfrastructureError; they
    are never turned into a denial.
    """

    def __init__(self, roles: RoleRepository) -> None:
        self.roles = roles

    async def roles_of(self, user_id: UUID) -> frozenset[str]:
        """Get all role slugs held by a user.

        Args:
            user_id: The user's UUID

        Returns:
            Set of role slugs (empty for unknown users)
        """
        return frozenset(await self.roles.role_slugs_of_user(user_id))

    async def primary_role_of(self, user_id: UUID, default: str) -> str:
        """The earliest-assigned role slug, or ``default`` when none."""
        slugs = await self.roles.role_slugs_of_user(user_id)
        return slugs[0] if slugs else default

    async def permissions_of(self, user_id: UUID) -> frozenset[str]:
        """Get all permission slugs reachable through a user's roles.

        A permission granted by two roles appears once.

        Args:
            user_id: The user's UUID

        Returns:
            Set of permission slugs
        """
        return frozenset(await self.roles.permission_slugs_of_user(user_id))

    async def has_role(self, user_id: UUID, role: RoleSlug | str) -> bool:
        """Check if a user holds a specific role."""
        return await self.roles.user_has_any_role(user_id, [str(role)])

    async def has_permission(self, user_id: UUID, permission: PermissionSlug | str) -> bool:
        """Check if a user has a specific permission.

        Args:
            user_id: The user's UUID
            permission: Permission slug (e.g. "users.view")

        Returns:
            True if any of the user's roles grants the permission
        """
        return await self.roles.user_has_any_permission(user_id, [str(permission)])

    async def has_any_role(self, user_id: UUID, roles: Iterable[RoleSlug | str]) -> bool:
        """Check if a user holds at least one of the roles."""
        return await self.roles.user_has_any_role(user_id, [str(r) for r in roles])

    async def has_any_permission(
        self, user_id: UUID, permissions: Iterable[PermissionSlug | str]
    ) -> bool:
        """Check if a user has at least one of the permissions."""
        return await self.roles.user_has_any_permission(
            user_id, [str(p) for p in permissions]
        )

    async def has_all_permissions(
        self, user_id: UUID, permissions: Iterable[PermissionSlug | str]
    ) -> bool:
        """Check if a user has every one of the permissions."""
        wanted = {str(p) for p in permissions}
        if not wanted:
            return False
        return wanted <= await self.permissions_of(user_id)

    async def require_any_role(
        self, user_id: UUID, roles: Iterable[RoleSlug | str]
    ) -> None:
        """Raise ForbiddenError unless the user holds one of the roles."""
        wanted = [str(r) for r in roles]
        if not await self.has_any_role(user_id, wanted):
            logger.info("role_check_denied", user_id=str(user_id), required_roles=wanted)
            raise ForbiddenError()

    async def require_any_permission(
        self, user_id: UUID, permissions: Iterable[PermissionSlug | str]
    ) -> None:
        """Raise ForbiddenError unless the user has one of the permissions."""
        wanted = [str(p) for p in permissions]
        if not await self.has_any_permission(user_id, wanted):
            logger.info(
                "permission_check_denied",
                user_id=str(user_id),
                required_permissions=wanted,
            )
            raise ForbiddenError()
