from __future__ import annotations

from typing import TYPE_CHECKING

from payflow.authz.permissions import PERMISSION_CATEGORIES, Permission
from payflow.authz.roles import get_role_graph
from payflow.exceptions import NotFoundError
from payflow.schemas.role import PermissionCatalogResponse, RoleListResponse, RoleResponse
from payflow.services.access import require_permission

if TYPE_CHECKING:
    from payflow.authz.roles import RoleGraph
    from payflow.schemas.auth import AuthContext


def _build_role_response(graph: RoleGraph, role: str) -> RoleResponse:
    return RoleResponse(
        name=role,
        parents=list(graph.parents_of(role)),
        own_permissions=sorted(p.value for p in graph.own_permissions(role)),
        permissions=sorted(p.value for p in graph.resolve_permissions(role)),
    )


def list_roles(auth: AuthContext) -> RoleListResponse:
    """Every configured role with its resolved permission set."""
    require_permission(auth, Permission.ROLES_READ_ALL)
    graph = get_role_graph()
    return RoleListResponse(items=[_build_role_response(graph, role) for role in graph.roles])


def get_role(auth: AuthContext, name: str) -> RoleResponse:
    require_permission(auth, Permission.ROLES_READ_ALL)
    graph = get_role_graph()
    if name not in graph.roles:
        raise NotFoundError(f"Role {name!r} not found", reason="role_not_found")
    return _build_role_response(graph, name)


def my_permissions(auth: AuthContext) -> RoleResponse:
    """The acting user's own role; needs no permission."""
    graph = get_role_graph()
    return _build_role_response(graph, auth.role)


def permission_catalog() -> PermissionCatalogResponse:
    return PermissionCatalogResponse(
        categories={category: [p.value for p in perms] for category, perms in PERMISSION_CATEGORIES.items()}
    )
