# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from payflow.authz.permissions import Permission
from payflow.db import atomic
from payflow.exceptions import AlreadyExistsError, InvalidStateError, NotFoundError
from payflow.models.organization import Approver, OrganizationalUnit
from payflow.schemas.organization import (
    ApproverListResponse,
    ApproverResponse,
    UnitListResponse,
    UnitResponse,
)
from payflow.services.access import require_permission
from payflow.services.routing import build_approver_response, get_unit_or_404, is_routable_binding

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from payflow.schemas.auth import AuthContext
    from payflow.schemas.organization import ApproverCreate, UnitCreate

logger = logging.getLogger(__name__)


def _build_unit_response(unit: OrganizationalUnit) -> UnitResponse:
    return UnitResponse(
        id=unit.id,
        code=unit.code,
        name=unit.name,
        parent_id=unit.parent_id,
        is_active=unit.is_active,
        created_at=unit.created_at,
    )


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


async def create_unit(session: AsyncSession, auth: AuthContext, payload: UnitCreate) -> UnitResponse:
    """Create a business unit, or a department when ``parent_id`` is given."""
    require_permission(auth, Permission.UNITS_MANAGE_ALL)

    async with atomic(session):
        if payload.parent_id is not None:
            parent = await get_unit_or_404(session, payload.parent_id)
            # Routing only looks one level up, so the tree is two levels deep.
            if parent.parent_id is not None:
                raise InvalidStateError("A department cannot have departments", reason="unit_too_deep")

        unit = OrganizationalUnit(code=payload.code, name=payload.name, parent_id=payload.parent_id)
        session.add(unit)
        try:
            await session.flush()
        except IntegrityError:
            msg = f"Unit code {payload.code!r} already exists"
            raise AlreadyExistsError(msg, reason="duplicate_unit_code") from None

    logger.info("Created unit %s (%s)", unit.code, unit.id)
    return _build_unit_response(unit)


async def get_unit(session: AsyncSession, auth: AuthContext, unit_id: uuid.UUID) -> UnitResponse:
    """Get a single unit."""
    require_permission(auth, Permission.UNITS_READ_ALL)
    return _build_unit_response(await get_unit_or_404(session, unit_id))


async def list_units(
    session: AsyncSession,
    auth: AuthContext,
    parent_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> UnitListResponse:
    """List units ordered by code, optionally only the departments of one parent."""
    require_permission(auth, Permission.UNITS_READ_ALL)

    base = select(OrganizationalUnit)
    if parent_id is not None:
        base = base.where(col(OrganizationalUnit.parent_id) == parent_id)

    count_result = await session.execute(select(func.count()).select_from(base.subquery()))
    total = count_result.scalar_one()

    result = await session.execute(base.order_by(col(OrganizationalUnit.code)).offset(offset).limit(limit))
    return UnitListResponse(items=[_build_unit_response(u) for u in result.scalars().all()], total=total)


# ---------------------------------------------------------------------------
# Approvers
# ---------------------------------------------------------------------------


async def create_approver(session: AsyncSession, auth: AuthContext, payload: ApproverCreate) -> ApproverResponse:
    """Grant ``payload.user_id`` approval authority at one level."""
    require_permission(auth, Permission.APPROVERS_MANAGE_ALL)
    if not is_routable_binding(payload.unit_id, payload.approval_level):
        scope = "organization-wide" if payload.unit_id is None else "unit"
        raise InvalidStateError(
            f"A {scope} approver cannot act at level {payload.approval_level}; the top level takes "
            "organization-wide approvers only, every other level unit approvers only",
            reason="invalid_routing_binding",
        )

    async with atomic(session):
        if payload.unit_id is not None:
            await get_unit_or_404(session, payload.unit_id)

        approver = Approver(
            user_id=payload.user_id,
            unit_id=payload.unit_id,
            approval_level=payload.approval_level,
            approval_ceiling=payload.approval_ceiling,
            priority=payload.priority,
        )
        session.add(approver)
        await session.flush()

    logger.info(
        "Granted user %s approval level %d on unit %s",
        approver.user_id,
        approver.approval_level,
        approver.unit_id or "(organization-wide)",
    )
    return build_approver_response(approver)


async def list_approvers(
    session: AsyncSession,
    auth: AuthContext,
    unit_id: uuid.UUID | None = None,
    level: int | None = None,
    include_inactive: bool = False,
) -> ApproverListResponse:
    """List approvers bound directly to a unit (or all of them), ordered by level and precedence."""
    require_permission(auth, Permission.APPROVERS_READ_ALL)

    query = select(Approver)
    if unit_id is not None:
        query = query.where(col(Approver.unit_id) == unit_id)
    if level is not None:
        query = query.where(col(Approver.approval_level) == level)
    if not include_inactive:
        query = query.where(col(Approver.is_active).is_(True))

    result = await session.execute(
        query.order_by(
            col(Approver.approval_level),
            col(Approver.priority),
            col(Approver.created_at),
            col(Approver.id),
        )
    )
    items = [build_approver_response(a) for a in result.scalars().all()]
    return ApproverListResponse(items=items, total=len(items))


async def deactivate_approver(session: AsyncSession, auth: AuthContext, approver_id: uuid.UUID) -> ApproverResponse:
    """Revoke an approver. Entities already submitted keep the level count captured at submission."""
    require_permission(auth, Permission.APPROVERS_MANAGE_ALL)

    async with atomic(session):
        approver = await session.get(Approver, approver_id)
        if approver is None:
            raise NotFoundError("Approver not found", reason="approver_not_found")
        approver.is_active = False
        await session.flush()

    logger.info("Deactivated approver %s (user %s)", approver.id, approver.user_id)
    return build_approver_response(approver)
