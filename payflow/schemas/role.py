from __future__ import annotations

from pydantic import BaseModel


class RoleResponse(BaseModel):
    """A role with its direct parents and resolved permissions."""

    name: str
    parents: list[str]
    own_permissions: list[str]
    permissions: list[str]


class RoleListResponse(BaseModel):
    items: list[RoleResponse]


class PermissionCatalogResponse(BaseModel):
    """Permission tokens grouped by resource."""

    categories: dict[str, list[str]]
