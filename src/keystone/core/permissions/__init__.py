"""Role-based access control: models, slug registry, graph resolution."""

from keystone.core.permissions.models import (
    Permission,
    Role,
    RoleAssignment,
    RolePermission,
)
from keystone.core.permissions.registry import PermissionSlug, RoleSlug
from keystone.core.permissions.repos import PermissionRepository, RoleRepository
from keystone.core.permissions.resolver import PermissionResolver


__all__ = [
    "Permission",
    "PermissionRepository",
    "PermissionResolver",
    "PermissionSlug",
    "Role",
    "RoleAssignment",
    "RolePermission",
    "RoleRepository",
    "RoleSlug",
]
