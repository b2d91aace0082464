"""Integration tests for catalogue seeding and verification."""

import pytest
from sqlalchemy import delete

from keystone.core.database import Database
from keystone.core.errors import ConflictError, NotFoundError
from keystone.core.permissions.catalogue import (
    GRANTS,
    PERMISSIONS,
    ROLES,
    seed_catalogue,
    verify_catalogue,
)
from keystone.core.permissions.models import Permission
from keystone.core.permissions.repos import PermissionRepository, RoleRepository


pytestmark = pytest.mark.integration


async def test_seed_is_idempotent(
    seeded: Database, roles: RoleRepository, permissions: PermissionRepository
):
    await seed_catalogue(roles, permissions)

    assert await roles.count() == len(ROLES)
    assert await permissions.count() == len(PERMISSIONS)
    for role_slug, granted in GRANTS.items():
        assert await roles.permission_slugs_of_role(role_slug) == {g.value for g in granted}


async def test_seeded_rows_carry_resource_and_action(
    seeded: Database, permissions: PermissionRepository
):
    permission = await permissions.find_by_slug("api-keys.create")

    assert permission is not None
    assert (permission.resource, permission.action) == ("api-keys", "create")
    assert len(await permissions.find_by_resource("users")) == 4


async def test_verify_passes_after_seeding(
    seeded: Database, roles: RoleRepository, permissions: PermissionRepository
):
    drift = await verify_catalogue(roles, permissions)

    assert drift.ok


async def test_verify_refuses_on_drift(
    seeded: Database, roles: RoleRepository, permissions: PermissionRepository
):
    async with seeded.transaction() as session:
        await session.execute(delete(Permission).where(Permission.slug == "users.delete"))

    with pytest.raises(RuntimeError, match="registry does not match"):
        await verify_catalogue(roles, permissions)


async def test_verify_refuses_empty_store(
    database: Database, roles: RoleRepository, permissions: PermissionRepository
):
    with pytest.raises(RuntimeError):
        await verify_catalogue(roles, permissions)


async def test_duplicate_grant_is_conflict(
    seeded: Database, roles: RoleRepository, permissions: PermissionRepository
):
    with pytest.raises(ConflictError):
        await roles.assign_permission("admin", "users.view", permissions)


async def test_unknown_slugs_are_not_found(
    seeded: Database, roles: RoleRepository, permissions: PermissionRepository
):
    with pytest.raises(NotFoundError):
        await roles.assign_permission("auditor", "users.view", permissions)
    with pytest.raises(NotFoundError):
        await roles.assign_permission("admin", "reports.view", permissions)
