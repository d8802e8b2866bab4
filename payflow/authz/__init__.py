from payflow.authz.permissions import PERMISSION_CATEGORIES, Permission
from payflow.authz.roles import Role, RoleGraph, get_role_graph, load_role_graph, set_role_graph

__all__ = [
    "PERMISSION_CATEGORIES",
    "Permission",
    "Role",
    "RoleGraph",
    "get_role_graph",
    "load_role_graph",
    "set_role_graph",
]
