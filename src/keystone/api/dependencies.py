"""Shared API dependencies.

Everything here reads the single instances built by ``create_app`` from
``app.state``; nothing is constructed per request.
"""

from typing import Annotated

from fastapi import Depends, Request

from keystone.config import Settings
from keystone.core.auth.gate import RequestGate
from keystone.core.auth.service import AuthService
from keystone.core.database import Database, Repository
from keystone.core.permissions.resolver import PermissionResolver
from keystone.modules.users.services import UserService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_gate(request: Request) -> RequestGate:
    return request.app.state.gate


def get_resolver(request: Request) -> PermissionResolver:
    return request.app.state.resolver


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_product_repository(request: Request) -> Repository:
    return request.app.state.products


AppSettings = Annotated[Settings, Depends(get_app_settings)]
DB = Annotated[Database, Depends(get_database)]
Gate = Annotated[RequestGate, Depends(get_gate)]
Resolver = Annotated[PermissionResolver, Depends(get_resolver)]
AuthSvc = Annotated[AuthService, Depends(get_auth_service)]
UserSvc = Annotated[UserService, Depends(get_user_service)]
ProductRepo = Annotated[Repository, Depends(get_product_repository)]
