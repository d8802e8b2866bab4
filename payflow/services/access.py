from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from payflow.authz.roles import get_role_graph
from payflow.exceptions import UnauthorizedError

if TYPE_CHECKING:
    from payflow.authz.permissions import Permission
    from payflow.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


def has_permission(auth: AuthContext, permission: Permission) -> bool:
    """True when the actor's role resolves to ``permission``."""
    return get_role_graph().has_permission(auth.role, permission)


def require_permission(auth: AuthContext, permission: Permission | None) -> None:
    """Raise UnauthorizedError unless the actor's role grants ``permission``."""
    if permission is None:
        return
    if not has_permission(auth, permission):
        logger.warning("User %s with role %s denied %s", auth.user_id, auth.role, permission.value)
        raise UnauthorizedError(f"Missing permission {permission.value}", reason="missing_permission")


def require_any_permission(auth: AuthContext, *permissions: Permission) -> None:
    """Raise UnauthorizedError unless the actor's role grants at least one of ``permissions``."""
    if not get_role_graph().has_any(auth.role, permissions):
        logger.warning(
            "User %s with role %s denied; needs any of %s",
            auth.user_id,
            auth.role,
            ", ".join(p.value for p in permissions),
        )
        raise UnauthorizedError("Insufficient permissions", reason="missing_permission")
