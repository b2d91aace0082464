"""Permission system database models.

This module defines the RBAC (Role-Based Access Control) models:
- Role: A named bundle of permissions, addressed by its slug
- Permission: An action that can be performed on a resource
- RoleAssignment: Edge linking users to roles
- RolePermission: Edge linking roles to permissions

A user's effective permissions are exactly the union of the permissions
reachable through their role assignments; there are no direct grants.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from keystone.core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_PERMISSION_ACTION_LENGTH,
    MAX_PERMISSION_RESOURCE_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    MAX_SLUG_FIELD_LENGTH,
)
from keystone.core.database.base import Base, TimestampMixin, UUIDMixin


class Permission(Base, UUIDMixin, TimestampMixin):
    """Permission model representing an action on a resource.

    Attributes:
        slug: Stable external key, conventionally "resource.action"
        resource: The resource being protected (e.g., "users")
        action: The action being performed (e.g., "view", "delete")
        description: Human-readable description of the permission

    The "resource.action" shape of ``slug`` is a naming convention only;
    code must not parse it.
    """

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permission_resource_action"),
    )

    slug: Mapped[str] = mapped_column(
        String(MAX_SLUG_FIELD_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    resource: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_RESOURCE_LENGTH),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_ACTION_LENGTH),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Permission({self.slug})>"


class Role(Base, UUIDMixin, TimestampMixin):
    """Role model representing a named set of permissions.

    Attributes:
        name: Display name (e.g., "Super Admin")
        slug: Stable external key used by authorization checks
        description: Human-readable description of the role
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(MAX_SLUG_FIELD_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, slug={self.slug})>"


class RoleAssignment(Base, TimestampMixin):
    """Edge linking a user to a role. The pair is unique."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RoleAssignment(user_id={self.user_id}, role_id={self.role_id})>"


class RolePermission(Base, TimestampMixin):
    """Edge linking a role to a permission. The pair is unique."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    permission_id: Mapped[UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<RolePermission(role_id={self.role_id}, permission_id={self.permission_id})>"
        )
