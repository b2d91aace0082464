"""Static registry of role and permission slugs.

Gate declarations accept only members of ``RoleSlug`` / ``PermissionSlug``,
so a misspelled slug fails when the route module is imported instead of
silently denying every request. ``verify_catalogue`` compares the registry
against the persisted roles and permissions at startup.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar


class RoleSlug(StrEnum):
    """Every role the application knows about."""

    SUPER_ADMIN = "super-admin"
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class PermissionSlug(StrEnum):
    """Every permission the application knows about."""

    USERS_VIEW = "users.view"
    USERS_CREATE = "users.create"
    USERS_EDIT = "users.edit"
    USERS_DELETE = "users.delete"
    ROLES_VIEW = "roles.view"
    ROLES_CREATE = "roles.create"
    ROLES_EDIT = "roles.edit"
    ROLES_DELETE = "roles.delete"
    PERMISSIONS_VIEW = "permissions.view"
    PERMISSIONS_ASSIGN = "permissions.assign"
    API_KEYS_VIEW = "api-keys.view"
    API_KEYS_CREATE = "api-keys.create"
    API_KEYS_DELETE = "api-keys.delete"
    PROFILE_VIEW = "profile.view"
    PROFILE_EDIT = "profile.edit"


SlugT = TypeVar("SlugT", RoleSlug, PermissionSlug)


def coerce_slugs(enum: type[SlugT], values: Iterable[str]) -> tuple[SlugT, ...]:
    """Convert raw strings into registry members.

    Raises:
        ValueError: If any value is not a registered slug, or none are given
    """
    slugs: list[SlugT] = []
    for value in values:
        try:
            slugs.append(enum(value))
        except ValueError:
            raise ValueError(f"Unknown {enum.__name__} {value!r}") from None
    if not slugs:
        raise ValueError(f"At least one {enum.__name__} is required")
    return tuple(slugs)


@dataclass(frozen=True)
class CatalogueDrift:
    """Registry slugs missing from the persisted catalogue."""

    missing_roles: frozenset[str]
    missing_permissions: frozenset[str]

    @property
    def ok(self) -> bool:
        return not self.missing_roles and not self.missing_permissions


def compare_catalogue(
    persisted_roles: Iterable[str], persisted_permissions: Iterable[str]
) -> CatalogueDrift:
    """Find registry slugs absent from the store."""
    return CatalogueDrift(
        missing_roles=frozenset(s.value for s in RoleSlug) - set(persisted_roles),
        missing_permissions=frozenset(s.value for s in PermissionSlug)
        - set(persisted_permissions),
    )
