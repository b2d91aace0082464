"""Integration tests for the permission graph resolver."""

from uuid import uuid4

import pytest

from keystone.core.database import Database
from keystone.core.errors import ConflictError, ForbiddenError, InfrastructureError
from keystone.core.permissions import PermissionResolver, PermissionSlug, RoleSlug
from keystone.core.permissions.repos import PermissionRepository, RoleRepository
from keystone.modules.users.models import User
from keystone.modules.users.repos import UserRepository


pytestmark = pytest.mark.integration


@pytest.fixture
def resolver(seeded: Database, roles: RoleRepository) -> PermissionResolver:
    return PermissionResolver(roles)


@pytest.fixture
def users(seeded: Database) -> UserRepository:
    return UserRepository(seeded)


@pytest.fixture
async def make_user(users: UserRepository, roles: RoleRepository):
    async def _make(*role_slugs: RoleSlug) -> User:
        user = await users.create(
            {"email": f"{uuid4().hex[:8]}@example.com", "password_hash": "x"}
        )
        for slug in role_slugs:
            await roles.assign_role(user.id, slug)
        return user

    return _make


class TestRoleGrants:
    async def test_admin_grants(self, resolver: PermissionResolver, make_user):
        """Admin holds users.delete but not roles.edit."""
        user = await make_user(RoleSlug.ADMIN)

        assert await resolver.has_permission(user.id, "users.delete") is True
        assert await resolver.has_permission(user.id, "roles.edit") is False
        assert await resolver.has_role(user.id, RoleSlug.ADMIN) is True
        assert await resolver.has_role(user.id, RoleSlug.SUPER_ADMIN) is False

    async def test_permissions_union_is_deduplicated(
        self, resolver: PermissionResolver, make_user
    ):
        user = await make_user(RoleSlug.USER, RoleSlug.MANAGER)

        permissions = await resolver.permissions_of(user.id)

        assert permissions == {
            "users.view",
            "profile.view",
            "profile.edit",
            "api-keys.view",
            "api-keys.create",
            "api-keys.delete",
        }
        assert await resolver.roles_of(user.id) == {"user", "manager"}

    async def test_any_of(self, resolver: PermissionResolver, make_user):
        user = await make_user(RoleSlug.MANAGER)

        assert await resolver.has_any_role(user.id, ["admin", "manager"]) is True
        assert await resolver.has_any_role(user.id, ["admin", "super-admin"]) is False
        assert await resolver.has_any_permission(
            user.id, ["roles.edit", PermissionSlug.USERS_VIEW]
        ) is True
        assert await resolver.has_any_permission(user.id, []) is False

    async def test_has_all_permissions(self, resolver: PermissionResolver, make_user):
        user = await make_user(RoleSlug.MANAGER)

        assert await resolver.has_all_permissions(user.id, ["users.view", "profile.view"])
        assert not await resolver.has_all_permissions(user.id, ["users.view", "users.edit"])
        assert not await resolver.has_all_permissions(user.id, [])

    async def test_primary_role_is_earliest_assignment(
        self, resolver: PermissionResolver, make_user
    ):
        user = await make_user(RoleSlug.MANAGER)

        assert await resolver.primary_role_of(user.id, "user") == "manager"

    async def test_primary_role_default(self, resolver: PermissionResolver, make_user):
        user = await make_user()

        assert await resolver.primary_role_of(user.id, "user") == "user"


class TestNobody:
    """Unknown, deleted and role-less users all hold nothing."""

    async def test_unknown_user(self, resolver: PermissionResolver):
        ghost = uuid4()

        assert await resolver.roles_of(ghost) == frozenset()
        assert await resolver.permissions_of(ghost) == frozenset()
        assert await resolver.has_permission(ghost, "profile.view") is False

    async def test_soft_deleted_user(
        self, resolver: PermissionResolver, users: UserRepository, make_user
    ):
        user = await make_user(RoleSlug.SUPER_ADMIN)
        await users.soft_delete_by_id(user.id)

        assert await resolver.roles_of(user.id) == frozenset()
        assert await resolver.has_permission(user.id, "users.view") is False
        assert await resolver.has_role(user.id, RoleSlug.SUPER_ADMIN) is False

    async def test_removed_role(
        self, resolver: PermissionResolver, roles: RoleRepository, make_user
    ):
        user = await make_user(RoleSlug.ADMIN)

        assert await roles.remove_role(user.id, RoleSlug.ADMIN) is True
        assert await roles.remove_role(user.id, RoleSlug.ADMIN) is False
        assert await resolver.has_permission(user.id, "users.delete") is False


class TestRequire:
    async def test_require_any_role_passes(self, resolver: PermissionResolver, make_user):
        user = await make_user(RoleSlug.ADMIN)

        await resolver.require_any_role(user.id, [RoleSlug.ADMIN, RoleSlug.SUPER_ADMIN])

    async def test_require_any_role_denied(self, resolver: PermissionResolver, make_user):
        user = await make_user(RoleSlug.USER)

        with pytest.raises(ForbiddenError) as exc_info:
            await resolver.require_any_role(user.id, [RoleSlug.ADMIN])
        assert exc_info.value.message == "Access forbidden"

    async def test_require_any_permission_denied(
        self, resolver: PermissionResolver, make_user
    ):
        user = await make_user(RoleSlug.USER)

        with pytest.raises(ForbiddenError):
            await resolver.require_any_permission(user.id, ["users.view"])

    async def test_store_failure_is_not_a_denial(
        self, monkeypatch: pytest.MonkeyPatch, resolver: PermissionResolver
    ):
        async def unavailable(*args, **kwargs):
            raise InfrastructureError()

        monkeypatch.setattr(resolver.roles, "user_has_any_permission", unavailable)

        with pytest.raises(InfrastructureError):
            await resolver.require_any_permission(uuid4(), ["users.view"])


class TestGraphEdges:
    async def test_duplicate_role_assignment(self, roles: RoleRepository, make_user):
        user = await make_user(RoleSlug.USER)

        with pytest.raises(ConflictError):
            await roles.assign_role(user.id, RoleSlug.USER)

    async def test_grant_and_revoke_permission(
        self,
        resolver: PermissionResolver,
        roles: RoleRepository,
        permissions: PermissionRepository,
        make_user,
    ):
        user = await make_user(RoleSlug.USER)

        await roles.assign_permission("user", "users.view", permissions)
        assert await resolver.has_permission(user.id, "users.view") is True

        assert await roles.remove_permission("user", "users.view") is True
        assert await resolver.has_permission(user.id, "users.view") is False
