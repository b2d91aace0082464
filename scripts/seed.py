#!/usr/bin/env python
"""
Seed the role/permission catalogue, and optionally a super-admin user.

Safe to run repeatedly: only missing rows are inserted.
"""

import argparse
import asyncio

import structlog

from keystone.config import get_settings
from keystone.core.auth.backend import CredentialVerifier
from keystone.core.database import Database
from keystone.core.logging import configure_logging
from keystone.core.permissions.catalogue import seed_catalogue
from keystone.core.permissions.registry import RoleSlug
from keystone.core.permissions.repos import PermissionRepository, RoleRepository
from keystone.modules.users.repos import UserRepository


logger = structlog.get_logger()


async def seed(admin_email: str | None, admin_password: str | None) -> None:
    """Seed the catalogue and the optional initial super-admin."""
    settings = get_settings()
    database = Database(settings.async_database_url, timeout=settings.database_timeout_seconds)
    roles = RoleRepository(database)
    permissions = PermissionRepository(database)
    users = UserRepository(database)

    try:
        await seed_catalogue(roles, permissions)
        logger.info("catalogue_seeded")

        if admin_email and admin_password:
            if await users.find_by_email(admin_email, exclude_deleted=False):
                logger.info("super_admin_exists", email=admin_email)
                return
            verifier = CredentialVerifier(settings.bcrypt_rounds)
            async with database.transaction():
                user = await users.create(
                    {
                        "email": admin_email,
                        "password_hash": verifier.hash(admin_password),
                        "name": "Super Admin",
                        "email_verified": True,
                    }
                )
                await roles.assign_role(user.id, RoleSlug.SUPER_ADMIN)
            logger.info("super_admin_created", principal_id=str(user.id))
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed roles, permissions and a super-admin")
    parser.add_argument("--admin-email", help="Create a super-admin with this email")
    parser.add_argument("--admin-password", help="Password for the super-admin")
    args = parser.parse_args()

    if bool(args.admin_email) != bool(args.admin_password):
        parser.error("--admin-email and --admin-password go together")

    configure_logging(get_settings().log_level)
    asyncio.run(seed(args.admin_email, args.admin_password))
