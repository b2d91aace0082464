"""Example gated routes.

One endpoint per gate style: any credential, API key only, role any-of,
and a single permission.
"""

from fastapi import APIRouter, Depends

from keystone.core.auth.dependencies import ApiKeyPrincipal, CurrentPrincipal
from keystone.core.permissions.guards import require_permission, require_role
from keystone.core.permissions.registry import PermissionSlug, RoleSlug


router = APIRouter(prefix="/examples", tags=["examples"])


@router.get("/protected")
async def protected(principal: CurrentPrincipal) -> dict[str, str]:
    return {"message": "You are authenticated!", "principal_id": str(principal.principal_id)}


@router.get("/api-key")
async def api_key_only(principal: ApiKeyPrincipal) -> dict[str, str]:
    return {"message": "API key is valid!", "principal_id": str(principal.principal_id)}


@router.get(
    "/admin-only",
    dependencies=[Depends(require_role(RoleSlug.ADMIN, RoleSlug.SUPER_ADMIN))],
)
async def admin_only() -> dict[str, str]:
    return {"message": "Welcome, admin!"}


@router.get(
    "/permission-check",
    dependencies=[Depends(require_permission(PermissionSlug.USERS_VIEW))],
)
async def permission_check() -> dict[str, str]:
    return {"message": "You have the users.view permission!"}
