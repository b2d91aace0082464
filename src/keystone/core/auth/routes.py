"""Authentication API routes.

Provides endpoints for:
- Registration, login and token refresh
- The caller's profile and password change
- API key issue, listing and deactivation
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from keystone.api.dependencies import AuthSvc
from keystone.core.auth.dependencies import CurrentPrincipal
from keystone.core.auth.schemas import AuthContext
from keystone.core.permissions.guards import require_permission
from keystone.core.permissions.registry import PermissionSlug
from keystone.modules.users.schemas import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyResponse,
    LoginRequest,
    ProfileResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserPasswordUpdate,
    UserResponse,
)


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
    description="Creates a user with the default role and returns a token pair.",
)
async def register(data: RegisterRequest, service: AuthSvc) -> RegisterResponse:
    """Register a new user."""
    user, tokens = await service.register(
        email=data.email,
        password=data.password,
        name=data.name,
        phone=data.phone,
    )
    return RegisterResponse(
        user=UserResponse.model_validate(user),
        **tokens.model_dump(),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
)
async def login(data: LoginRequest, service: AuthSvc) -> TokenResponse:
    """Login with email and password."""
    _user, tokens = await service.login(email=data.email, password=data.password)
    return TokenResponse(**tokens.model_dump())


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh token pair",
    description="Exchange a refresh token for a new access/refresh pair.",
)
async def refresh_token(data: RefreshTokenRequest, service: AuthSvc) -> TokenResponse:
    """Refresh the token pair."""
    tokens = await service.refresh(data.refresh_token)
    return TokenResponse(**tokens.model_dump())


@router.get("/me", response_model=ProfileResponse, summary="Current user profile")
async def me(principal: CurrentPrincipal, service: AuthSvc) -> ProfileResponse:
    """The caller's account with roles and permissions."""
    return await service.get_profile(principal.principal_id)


@router.post(
    "/change-password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change own password",
)
async def change_password(
    data: UserPasswordUpdate, principal: CurrentPrincipal, service: AuthSvc
) -> None:
    """Verify the current password and store a new hash."""
    await service.change_password(
        principal.principal_id, data.current_password, data.new_password
    )


@router.post(
    "/api-keys",
    response_model=ApiKeyCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an API key",
    description="The key is shown once, in this response.",
)
async def create_api_key(
    data: ApiKeyCreate,
    principal: Annotated[
        AuthContext, Depends(require_permission(PermissionSlug.API_KEYS_CREATE))
    ],
    service: AuthSvc,
) -> ApiKeyCreated:
    """Issue a new API key for the caller."""
    return await service.generate_api_key(
        principal.principal_id, data.name, data.expires_in_days
    )


@router.get(
    "/api-keys",
    response_model=list[ApiKeyResponse],
    summary="List own API keys",
)
async def list_api_keys(
    principal: Annotated[
        AuthContext, Depends(require_permission(PermissionSlug.API_KEYS_VIEW))
    ],
    service: AuthSvc,
) -> list[ApiKeyResponse]:
    """List the caller's keys (without their secrets)."""
    keys = await service.list_api_keys(principal.principal_id)
    return [ApiKeyResponse.model_validate(key) for key in keys]


@router.delete(
    "/api-keys/{key_id}",
    response_model=ApiKeyResponse,
    summary="Deactivate an API key",
)
async def deactivate_api_key(
    key_id: UUID,
    principal: Annotated[
        AuthContext, Depends(require_permission(PermissionSlug.API_KEYS_DELETE))
    ],
    service: AuthSvc,
) -> ApiKeyResponse:
    """Deactivate one of the caller's keys."""
    key = await service.deactivate_api_key(principal.principal_id, key_id)
    return ApiKeyResponse.model_validate(key)
