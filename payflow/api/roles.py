# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter

from payflow.api.deps import AuthDep
from payflow.schemas.role import PermissionCatalogResponse, RoleListResponse, RoleResponse
from payflow.services import roles as role_service

roles_router = APIRouter(tags=["roles"])


@roles_router.get("/roles", response_model=RoleListResponse)
async def list_roles(auth: AuthDep) -> RoleListResponse:
    """Configured roles with their resolved permissions."""
    return role_service.list_roles(auth)


@roles_router.get("/roles/{name}", response_model=RoleResponse)
async def get_role(name: str, auth: AuthDep) -> RoleResponse:
    return role_service.get_role(auth, name)


@roles_router.get("/me/permissions", response_model=RoleResponse)
async def my_permissions(auth: AuthDep) -> RoleResponse:
    return role_service.my_permissions(auth)


@roles_router.get("/permissions", response_model=PermissionCatalogResponse)
async def permission_catalog(auth: AuthDep) -> PermissionCatalogResponse:
    return role_service.permission_catalog()
