"""Seed catalogue of roles, permissions and grants.

``seed_catalogue`` is idempotent: it only inserts what is missing, so it
can run on every deploy. ``verify_catalogue`` is the startup check that
every registry slug exists in the store.
"""

import structlog

from keystone.core.permissions.registry import (
    CatalogueDrift,
    PermissionSlug,
    RoleSlug,
    compare_catalogue,
)
from keystone.core.permissions.repos import PermissionRepository, RoleRepository


logger = structlog.get_logger()

P = PermissionSlug

ROLES: dict[RoleSlug, tuple[str, str]] = {
    RoleSlug.SUPER_ADMIN: ("Super Admin", "Full access to everything"),
    RoleSlug.ADMIN: ("Admin", "Manages users and API keys"),
    RoleSlug.MANAGER: ("Manager", "Views users and manages own API keys"),
    RoleSlug.USER: ("User", "Default role for registered users"),
}

PERMISSIONS: dict[PermissionSlug, tuple[str, str, str]] = {
    P.USERS_VIEW: ("users", "view", "View users"),
    P.USERS_CREATE: ("users", "create", "Create users"),
    P.USERS_EDIT: ("users", "edit", "Edit users"),
    P.USERS_DELETE: ("users", "delete", "Delete users"),
    P.ROLES_VIEW: ("roles", "view", "View roles"),
    P.ROLES_CREATE: ("roles", "create", "Create roles"),
    P.ROLES_EDIT: ("roles", "edit", "Edit roles"),
    P.ROLES_DELETE: ("roles", "delete", "Delete roles"),
    P.PERMISSIONS_VIEW: ("permissions", "view", "View permissions"),
    P.PERMISSIONS_ASSIGN: ("permissions", "assign", "Assign permissions to roles"),
    P.API_KEYS_VIEW: ("api-keys", "view", "View API keys"),
    P.API_KEYS_CREATE: ("api-keys", "create", "Create API keys"),
    P.API_KEYS_DELETE: ("api-keys", "delete", "Delete API keys"),
    P.PROFILE_VIEW: ("profile", "view", "View own profile"),
    P.PROFILE_EDIT: ("profile", "edit", "Edit own profile"),
}

_PROFILE = (P.PROFILE_VIEW, P.PROFILE_EDIT)
_API_KEYS = (P.API_KEYS_VIEW, P.API_KEYS_CREATE, P.API_KEYS_DELETE)

GRANTS: dict[RoleSlug, tuple[PermissionSlug, ...]] = {
    RoleSlug.SUPER_ADMIN: tuple(PermissionSlug),
    RoleSlug.ADMIN: tuple(
        slug
        for slug, (resource, _, _) in PERMISSIONS.items()
        if resource not in ("roles", "permissions")
    ),
    RoleSlug.MANAGER: (P.USERS_VIEW, *_PROFILE, *_API_KEYS),
    RoleSlug.USER: _PROFILE,
}


async def seed_catalogue(roles: RoleRepository, permissions: PermissionRepository) -> None:
    """Insert any missing role, permission or grant."""
    async with roles.transaction():
        for slug, (resource, action, description) in PERMISSIONS.items():
            if await permissions.find_by_slug(slug) is None:
                await permissions.create(
                    {
                        "slug": slug.value,
                        "resource": resource,
                        "action": action,
                        "description": description,
                    }
                )
                logger.info("permission_seeded", slug=slug.value)

        for slug, (name, description) in ROLES.items():
            if await roles.find_by_slug(slug) is None:
                await roles.create(
                    {"slug": slug.value, "name": name, "description": description}
                )
                logger.info("role_seeded", slug=slug.value)

        for role_slug, granted in GRANTS.items():
            existing = await roles.permission_slugs_of_role(role_slug)
            for permission_slug in granted:
                if permission_slug.value not in existing:
                    await roles.assign_permission(role_slug, permission_slug, permissions)


async def verify_catalogue(
    roles: RoleRepository, permissions: PermissionRepository
) -> CatalogueDrift:
    """Check the slug registry against the store.

    Raises:
        RuntimeError: If any registered slug is missing from the store
    """
    drift = compare_catalogue(await roles.all_slugs(), await permissions.all_slugs())
    if not drift.ok:
        logger.error(
            "rbac_catalogue_drift",
            missing_roles=sorted(drift.missing_roles),
            missing_permissions=sorted(drift.missing_permissions),
        )
        raise RuntimeError(
            "Role/permission registry does not match the database; "
            "run scripts/seed.py or fix the gate declarations"
        )
    logger.info("rbac_catalogue_verified")
    return drift
