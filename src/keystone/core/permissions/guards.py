"""Route gates built on the permission resolver.

Gates are FastAPI dependencies. Slugs are checked against the static
registry when the gate is declared, so a typo breaks the import of the
route module rather than denying every request:

    @router.get("/users", dependencies=[Depends(require_permission("users.view"))])

    @router.post("/products")
    async def create(
        principal: Annotated[AuthContext, Depends(require_role("admin", "super-admin"))],
    ):
        ...

Multiple slugs use any-of semantics.
"""

from collections.abc import Awaitable, Callable

from keystone.api.dependencies import Resolver
from keystone.core.auth.dependencies import CurrentPrincipal
from keystone.core.auth.schemas import AuthContext
from keystone.core.permissions.registry import PermissionSlug, RoleSlug, coerce_slugs


def require_permission(
    *permissions: PermissionSlug | str,
) -> Callable[..., Awaitable[AuthContext]]:
    """Gate that passes when the principal has any of the permissions.

    Raises:
        ValueError: At declaration time, for an unknown or missing slug
    """
    slugs = coerce_slugs(PermissionSlug, permissions)

    async def permission_gate(
        principal: CurrentPrincipal, resolver: Resolver
    ) -> AuthContext:
        await resolver.require_any_permission(principal.principal_id, slugs)
        return principal

    return permission_gate


def require_role(*roles: RoleSlug | str) -> Callable[..., Awaitable[AuthContext]]:
    """Gate that passes when the principal holds any of the roles.

    Raises:
        ValueError: At declaration time, for an unknown or missing slug
    """
    slugs = coerce_slugs(RoleSlug, roles)

    async def role_gate(principal: CurrentPrincipal, resolver: Resolver) -> AuthContext:
        await resolver.require_any_role(principal.principal_id, slugs)
        return principal

    return role_gate
