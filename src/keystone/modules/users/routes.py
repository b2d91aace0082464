"""User administration API routes."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from keystone.api.dependencies import UserSvc
from keystone.core.pagination import PageParams, PageResponse, page_meta
from keystone.core.permissions.guards import require_permission
from keystone.core.permissions.registry import PermissionSlug
from keystone.modules.users.schemas import UserResponse, UserUpdate


router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "",
    response_model=PageResponse[UserResponse],
    dependencies=[Depends(require_permission(PermissionSlug.USERS_VIEW))],
    summary="List users",
)
async def list_users(
    params: PageParams,
    service: UserSvc,
    active: Annotated[bool | None, Query()] = None,
    email_verified: Annotated[bool | None, Query()] = None,
) -> PageResponse[UserResponse]:
    """Paginated, searchable, sortable user listing."""
    filters: dict[str, Any] = {}
    if active is not None:
        filters["is_active"] = active
    if email_verified is not None:
        filters["email_verified"] = email_verified

    page = await service.list_users(
        params.page,
        params.limit,
        filters=filters,
        search=params.search,
        sort_by=params.sort_by,
        sort_order=params.sort_order,
    )
    return PageResponse[UserResponse](
        data=[UserResponse.model_validate(user) for user in page.data],
        meta=page_meta(page),
    )


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(require_permission(PermissionSlug.USERS_VIEW))],
)
async def get_user(user_id: UUID, service: UserSvc) -> UserResponse:
    return UserResponse.model_validate(await service.get_user(user_id))


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(require_permission(PermissionSlug.USERS_EDIT))],
)
async def update_user(user_id: UUID, data: UserUpdate, service: UserSvc) -> UserResponse:
    return UserResponse.model_validate(await service.update_user(user_id, data))


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(PermissionSlug.USERS_DELETE))],
)
async def delete_user(user_id: UUID, service: UserSvc) -> None:
    """Soft-delete a user."""
    await service.delete_user(user_id)
