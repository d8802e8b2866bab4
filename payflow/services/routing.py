# ruff: noqa: TC003
"""Approval routing: who may act at each level of a unit's chain, and how many levels it has.

Candidate precedence at one level is deterministic:

1. approvers bound to the exact unit before those bound to its parent unit,
2. lower ``priority`` first,
3. older ``created_at`` first,
4. ``id`` as the final tie-breaker.

At the top level (``Settings.top_approval_level``) only organization-wide
approvers, those without a unit, are candidates.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import func, select
from sqlmodel import col

from payflow.config import get_settings
from payflow.exceptions import NotFoundError
from payflow.models.organization import Approver, OrganizationalUnit
from payflow.schemas.organization import ApproverResponse, RoutingLevel, RoutingResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_approver_response(approver: Approver) -> ApproverResponse:
    """Map an approver model to its response schema."""
    return ApproverResponse(
        id=approver.id,
        user_id=approver.user_id,
        unit_id=approver.unit_id,
        approval_level=approver.approval_level,
        approval_ceiling=approver.approval_ceiling,
        priority=approver.priority,
        is_active=approver.is_active,
        created_at=approver.created_at,
    )


def _routing_unit_ids(unit: OrganizationalUnit) -> list[uuid.UUID]:
    """The unit itself and, for a department, its business unit."""
    ids = [unit.id]
    if unit.parent_id is not None:
        ids.append(unit.parent_id)
    return ids


def is_routable_binding(unit_id: uuid.UUID | None, level: int) -> bool:
    """True when an approver bound this way can ever be a candidate.

    The top level is served by organization-wide approvers only, every other
    level by unit approvers only.
    """
    is_top = level == get_settings().top_approval_level
    return (unit_id is None) == is_top


def _within_ceiling(approver: Approver, amount: Decimal | None) -> bool:
    if approver.approval_ceiling is None or amount is None:
        return True
    return amount <= approver.approval_ceiling


async def get_unit_or_404(session: AsyncSession, unit_id: uuid.UUID) -> OrganizationalUnit:
    """Fetch a unit by ID. Raises NotFoundError if absent."""
    unit = await session.get(OrganizationalUnit, unit_id)
    if unit is None:
        raise NotFoundError("Organizational unit not found", reason="unit_not_found")
    return unit


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def find_approvers(
    session: AsyncSession,
    unit: OrganizationalUnit,
    level: int,
    user_id: uuid.UUID | None = None,
) -> list[Approver]:
    """Return every active approver for ``unit`` at ``level``, best match first."""
    top_level = get_settings().top_approval_level
    query = select(Approver).where(
        col(Approver.is_active).is_(True),
        col(Approver.approval_level) == level,
    )
    if level == top_level:
        query = query.where(col(Approver.unit_id).is_(None))
    else:
        query = query.where(col(Approver.unit_id).in_(_routing_unit_ids(unit)))
    if user_id is not None:
        query = query.where(col(Approver.user_id) == user_id)

    query = query.order_by(
        sa.case((col(Approver.unit_id) == unit.id, 0), else_=1),
        col(Approver.priority),
        col(Approver.created_at),
        col(Approver.id),
    )
    result = await session.execute(query)
    return list(result.scalars().all())


async def find_approver(session: AsyncSession, unit: OrganizationalUnit, level: int) -> Approver | None:
    """Return the approver who should act for ``unit`` at ``level``, or None."""
    candidates = await find_approvers(session, unit, level)
    return candidates[0] if candidates else None


async def max_level(session: AsyncSession, unit_id: uuid.UUID) -> int:
    """Return how many sequential approvals an entity of ``unit_id`` needs.

    The highest level among active approvers that can act for the unit: unit
    or parent approvers below the top level, organization-wide approvers at
    it. 1 when nothing is configured.
    """
    unit = await get_unit_or_404(session, unit_id)
    top_level = get_settings().top_approval_level
    result = await session.execute(
        select(func.max(col(Approver.approval_level))).where(
            col(Approver.is_active).is_(True),
            sa.or_(
                sa.and_(
                    col(Approver.unit_id).in_(_routing_unit_ids(unit)),
                    col(Approver.approval_level) != top_level,
                ),
                sa.and_(col(Approver.unit_id).is_(None), col(Approver.approval_level) == top_level),
            ),
        )
    )
    highest = result.scalar_one_or_none()
    return highest if highest is not None else 1


async def resolve_actor_authority(
    session: AsyncSession,
    unit: OrganizationalUnit,
    level: int,
    actor_id: uuid.UUID,
    amount: Decimal | None = None,
) -> Approver | None:
    """Return the approver row that lets ``actor_id`` act at ``level``, or None.

    Organization-wide top-level approvers may act at any level.
    """
    for approver in await find_approvers(session, unit, level, user_id=actor_id):
        if _within_ceiling(approver, amount):
            return approver

    top_level = get_settings().top_approval_level
    if level != top_level:
        for approver in await find_approvers(session, unit, top_level, user_id=actor_id):
            if _within_ceiling(approver, amount):
                return approver
    return None


async def actor_approval_levels(
    session: AsyncSession,
    unit: OrganizationalUnit,
    actor_id: uuid.UUID,
) -> list[int]:
    """Levels at which ``actor_id`` is a unit approver for ``unit``, ascending."""
    result = await session.execute(
        select(col(Approver.approval_level))
        .where(
            col(Approver.is_active).is_(True),
            col(Approver.user_id) == actor_id,
            col(Approver.unit_id).in_(_routing_unit_ids(unit)),
        )
        .distinct()
        .order_by(col(Approver.approval_level))
    )
    return list(result.scalars().all())


async def get_routing(session: AsyncSession, unit_id: uuid.UUID) -> RoutingResponse:
    """Resolve the full approval chain for a unit."""
    unit = await get_unit_or_404(session, unit_id)
    highest = await max_level(session, unit.id)

    levels: list[RoutingLevel] = []
    for level in range(1, highest + 1):
        candidates = await find_approvers(session, unit, level)
        levels.append(
            RoutingLevel(
                level=level,
                approver=build_approver_response(candidates[0]) if candidates else None,
                candidates=[build_approver_response(a) for a in candidates],
            )
        )
        if not candidates:
            logger.warning("Unit %s has no approver at level %d", unit.code, level)

    return RoutingResponse(unit_id=unit.id, max_level=highest, levels=levels)
