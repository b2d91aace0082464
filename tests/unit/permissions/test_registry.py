"""Unit tests for the slug registry and gate declarations."""

import pytest

from keystone.core.permissions.catalogue import GRANTS, PERMISSIONS, ROLES
from keystone.core.permissions.guards import require_permission, require_role
from keystone.core.permissions.registry import (
    PermissionSlug,
    RoleSlug,
    coerce_slugs,
    compare_catalogue,
)


pytestmark = pytest.mark.unit


class TestCoerceSlugs:
    def test_accepts_members_and_strings(self):
        result = coerce_slugs(RoleSlug, [RoleSlug.ADMIN, "super-admin"])

        assert result == (RoleSlug.ADMIN, RoleSlug.SUPER_ADMIN)

    def test_unknown_slug_rejected(self):
        with pytest.raises(ValueError, match="Unknown PermissionSlug 'users.veiw'"):
            coerce_slugs(PermissionSlug, ["users.veiw"])

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="At least one RoleSlug"):
            coerce_slugs(RoleSlug, [])


class TestGateDeclaration:
    """A misspelled gate fails when the route module is imported."""

    def test_require_permission_typo(self):
        with pytest.raises(ValueError):
            require_permission("users.veiw")

    def test_require_role_typo(self):
        with pytest.raises(ValueError):
            require_role("superadmin")

    def test_require_without_slugs(self):
        with pytest.raises(ValueError):
            require_role()

    def test_valid_declaration_returns_dependency(self):
        gate = require_permission(PermissionSlug.USERS_VIEW, "users.edit")

        assert callable(gate)


class TestCompareCatalogue:
    def test_complete_catalogue_has_no_drift(self):
        drift = compare_catalogue(
            [s.value for s in RoleSlug], [s.value for s in PermissionSlug]
        )

        assert drift.ok

    def test_missing_entries_reported(self):
        drift = compare_catalogue(
            ["admin", "user", "manager"],
            [s.value for s in PermissionSlug if s is not PermissionSlug.USERS_DELETE],
        )

        assert not drift.ok
        assert drift.missing_roles == {"super-admin"}
        assert drift.missing_permissions == {"users.delete"}

    def test_extra_persisted_rows_are_not_drift(self):
        drift = compare_catalogue(
            [*(s.value for s in RoleSlug), "auditor"],
            [*(s.value for s in PermissionSlug), "reports.view"],
        )

        assert drift.ok


class TestCatalogueData:
    """The seed data covers exactly the registry."""

    def test_every_registered_slug_is_seeded(self):
        assert set(ROLES) == {s.value for s in RoleSlug}
        assert set(PERMISSIONS) == {s.value for s in PermissionSlug}

    def test_grants_reference_known_slugs(self):
        for role, granted in GRANTS.items():
            assert role in ROLES
            assert set(granted) <= set(PERMISSIONS)

    def test_super_admin_holds_everything(self):
        assert set(GRANTS[RoleSlug.SUPER_ADMIN]) == set(PERMISSIONS)

    def test_admin_cannot_manage_roles(self):
        assert PermissionSlug.ROLES_EDIT not in GRANTS[RoleSlug.ADMIN]
        assert PermissionSlug.USERS_DELETE in GRANTS[RoleSlug.ADMIN]
