# ruff: noqa: B008, TC003
from __future__ import annotations

import logging
import uuid
from typing import Annotated

from fastapi import Depends, Header, status

from payflow.exceptions import AppError
from payflow.schemas.auth import AuthContext
from payflow.services.identity import IdentityService, get_identity_service

logger = logging.getLogger(__name__)


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    identity: IdentityService = Depends(get_identity_service),
) -> AuthContext:
    """Resolve the acting user's role and unit through the identity service."""
    user = await identity.get_user(x_user_id)
    if user is None or not user.is_active:
        logger.warning("Rejected request from unknown or inactive user %s", x_user_id)
        raise AppError("Unknown user", status_code=status.HTTP_401_UNAUTHORIZED, reason="unknown_user")
    return AuthContext(user_id=user.id, role=user.role, unit_id=user.unit_id)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
