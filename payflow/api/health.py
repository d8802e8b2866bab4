import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from payflow.authz.roles import get_role_graph
from payflow.config import get_settings
from payflow.db import SessionDep
from payflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Readiness of the approval engine.

    ``degraded`` means the database is unreachable; ``error`` means the role
    graph cannot be loaded, so no request could be authorized.
    """

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    database: bool
    roles: int
    role_source: str
    top_approval_level: int


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Check the database and the role graph, and report the routing top level."""
    settings = get_settings()
    status: Literal["ok", "degraded", "error"] = "ok"
    database = True

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        database = False
        status = "degraded"

    try:
        roles = len(get_role_graph().roles)
    except ConfigurationError:
        logger.exception("Health check: role configuration cannot be loaded")
        roles = 0
        status = "error"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        roles=roles,
        role_source=settings.role_config_path or "builtin",
        top_approval_level=settings.top_approval_level,
    )
