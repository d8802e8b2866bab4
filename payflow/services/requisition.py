# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from fastapi import status
from sqlalchemy import delete, func, select
from sqlmodel import col

from payflow.authz.permissions import Permission
from payflow.db import atomic
from payflow.exceptions import AppError, ForbiddenError, InvalidStateError
from payflow.models.enums import RequisitionStatus
from payflow.models.requisition import Requisition, RequisitionItem
from payflow.schemas.ledger import LedgerOrder
from payflow.schemas.requisition import (
    RequisitionItemResponse,
    RequisitionListResponse,
    RequisitionResponse,
)
from payflow.services import ledger as ledger_service
from payflow.services import workflow as engine
from payflow.services.access import has_permission, require_any_permission, require_permission
from payflow.services.routing import get_unit_or_404
from payflow.workflow import REQUISITION_KIND, new_sequence_number

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from payflow.schemas.auth import AuthContext
    from payflow.schemas.ledger import LedgerResponse
    from payflow.schemas.requisition import RequisitionCreate, RequisitionItemPayload, RequisitionUpdate

logger = logging.getLogger(__name__)

KIND = REQUISITION_KIND

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _load_items(session: AsyncSession, requisition_id: uuid.UUID) -> list[RequisitionItem]:
    result = await session.execute(
        select(RequisitionItem)
        .where(col(RequisitionItem.requisition_id) == requisition_id)
        .order_by(col(RequisitionItem.line_no))
    )
    return list(result.scalars().all())


async def _build_requisition_response(session: AsyncSession, requisition: Requisition) -> RequisitionResponse:
    """Map a requisition and its lines to the response schema."""
    items = await _load_items(session, requisition.id)
    return RequisitionResponse(
        id=requisition.id,
        sequence_number=requisition.sequence_number,
        status=requisition.status,
        current_approval_level=requisition.current_approval_level,
        required_levels=requisition.required_levels,
        unit_id=requisition.unit_id,
        requester_id=requisition.requester_id,
        version=requisition.version,
        submitted_at=requisition.submitted_at,
        decided_at=requisition.decided_at,
        created_at=requisition.created_at,
        purpose=requisition.purpose,
        date_needed=requisition.date_needed,
        currency=requisition.currency,
        total_amount=requisition.total_amount,
        items=[
            RequisitionItemResponse(
                id=item.id,
                line_no=item.line_no,
                quantity=item.quantity,
                unit=item.unit,
                particulars=item.particulars,
                specification=item.specification,
                unit_cost=item.unit_cost,
                subtotal=item.subtotal,
            )
            for item in items
        ],
    )


def _replace_items(
    session: AsyncSession, requisition: Requisition, payloads: list[RequisitionItemPayload]
) -> Decimal:
    """Add line items for ``requisition`` and return their total."""
    total = Decimal("0")
    for line_no, payload in enumerate(payloads, start=1):
        subtotal = (payload.quantity * payload.unit_cost).quantize(Decimal("0.01"))
        session.add(
            RequisitionItem(
                requisition_id=requisition.id,
                line_no=line_no,
                quantity=payload.quantity,
                unit=payload.unit,
                particulars=payload.particulars,
                specification=payload.specification,
                unit_cost=payload.unit_cost,
                subtotal=subtotal,
            )
        )
        total += subtotal
    return total


async def resolve_unit_id(session: AsyncSession, auth: AuthContext, unit_id: uuid.UUID | None) -> uuid.UUID:
    """The explicit unit, else the actor's own; the unit must exist."""
    resolved = unit_id or auth.unit_id
    if resolved is None:
        raise AppError(
            "An organizational unit is required", status_code=status.HTTP_400_BAD_REQUEST, reason="unit_required"
        )
    await get_unit_or_404(session, resolved)
    return resolved


def _ensure_can_edit(auth: AuthContext, requisition: Requisition, own: Permission, any_: Permission | None) -> None:
    if requisition.requester_id == auth.user_id:
        require_permission(auth, own)
        return
    if any_ is not None and has_permission(auth, any_):
        return
    raise ForbiddenError("Only the requester can modify this requisition", reason="not_requester")


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


async def create_requisition(
    session: AsyncSession, auth: AuthContext, payload: RequisitionCreate
) -> RequisitionResponse:
    """Create a draft requisition owned by the acting user."""
    require_permission(auth, Permission.REQUISITIONS_CREATE_OWN)

    async with atomic(session):
        unit_id = await resolve_unit_id(session, auth, payload.unit_id)
        requisition = Requisition(
            sequence_number=new_sequence_number(KIND),
            status=RequisitionStatus.DRAFT.value,
            unit_id=unit_id,
            requester_id=auth.user_id,
            purpose=payload.purpose,
            date_needed=payload.date_needed,
            currency=payload.currency,
        )
        session.add(requisition)
        await session.flush()
        requisition.total_amount = _replace_items(session, requisition, payload.items)
        await session.flush()

    logger.info("Requisition %s created by %s", requisition.sequence_number, auth.user_id)
    return await _build_requisition_response(session, requisition)


async def update_requisition(
    session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID, payload: RequisitionUpdate
) -> RequisitionResponse:
    """Edit a draft. Lines are replaced wholesale when ``payload.items`` is given."""
    async with atomic(session):
        requisition = await engine.get_entity_for_update(session, KIND, requisition_id)
        _ensure_can_edit(auth, requisition, Permission.REQUISITIONS_UPDATE_OWN, Permission.REQUISITIONS_UPDATE_ALL)
        if requisition.status != RequisitionStatus.DRAFT:
            raise InvalidStateError("Only draft requisitions can be edited", reason="not_draft")

        updates = payload.model_dump(exclude_unset=True, exclude={"items"})
        for field, value in updates.items():
            setattr(requisition, field, value)
        if payload.items is not None:
            await session.execute(delete(RequisitionItem).where(col(RequisitionItem.requisition_id) == requisition.id))
            requisition.total_amount = _replace_items(session, requisition, payload.items)
        requisition.version += 1
        await session.flush()

    logger.info("Requisition %s updated by %s", requisition.sequence_number, auth.user_id)
    return await _build_requisition_response(session, requisition)


async def delete_requisition(session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID) -> None:
    """Hard-delete a draft that never entered the approval chain."""
    async with atomic(session):
        requisition = await engine.get_entity_for_update(session, KIND, requisition_id)
        _ensure_can_edit(auth, requisition, Permission.REQUISITIONS_DELETE_OWN, None)
        if requisition.status != RequisitionStatus.DRAFT:
            raise InvalidStateError("Only draft requisitions can be deleted", reason="not_draft")
        if await ledger_service.has_history(session, KIND.entity_type, requisition.id):
            raise InvalidStateError("Requisitions with approval history cannot be deleted", reason="has_history")

        await session.execute(delete(RequisitionItem).where(col(RequisitionItem.requisition_id) == requisition.id))
        await session.delete(requisition)

    logger.info("Requisition %s deleted by %s", requisition.sequence_number, auth.user_id)


async def get_requisition(session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID) -> RequisitionResponse:
    """Get a single requisition the actor may see."""
    requisition = await engine.get_entity(session, KIND, requisition_id)
    engine.ensure_can_read(auth, KIND, requisition)
    return await _build_requisition_response(session, requisition)


async def list_requisitions(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: str | None = None,
    unit_id: uuid.UUID | None = None,
    requester_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequisitionListResponse:
    """List visible requisitions, newest first."""
    require_any_permission(
        auth,
        Permission.REQUISITIONS_READ_ALL,
        Permission.REQUISITIONS_READ_UNIT,
        Permission.REQUISITIONS_READ_OWN,
    )
    base = select(Requisition)
    visible = engine.visibility_clause(auth, KIND)
    if visible is not None:
        base = base.where(visible)
    if status_filter is not None:
        base = base.where(col(Requisition.status) == status_filter)
    if unit_id is not None:
        base = base.where(col(Requisition.unit_id) == unit_id)
    if requester_id is not None:
        base = base.where(col(Requisition.requester_id) == requester_id)

    count_result = await session.execute(select(func.count()).select_from(base.subquery()))
    total = count_result.scalar_one()

    result = await session.execute(
        base.order_by(col(Requisition.created_at).desc(), col(Requisition.id)).offset(offset).limit(limit)
    )
    items = [await _build_requisition_response(session, r) for r in result.scalars().all()]
    return RequisitionListResponse(items=items, total=total)


# ---------------------------------------------------------------------------
# Workflow verbs
# ---------------------------------------------------------------------------


async def submit_requisition(
    session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID
) -> RequisitionResponse:
    requisition = await engine.submit(session, KIND, requisition_id, auth)
    return await _build_requisition_response(session, requisition)


async def approve_requisition(
    session: AsyncSession,
    auth: AuthContext,
    requisition_id: uuid.UUID,
    comment: str | None = None,
    expected_level: int | None = None,
) -> RequisitionResponse:
    requisition = await engine.approve(session, KIND, requisition_id, auth, comment, expected_level)
    return await _build_requisition_response(session, requisition)


async def reject_requisition(
    session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID, reason: str | None = None
) -> RequisitionResponse:
    requisition = await engine.reject(session, KIND, requisition_id, auth, reason)
    return await _build_requisition_response(session, requisition)


async def cancel_requisition(
    session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID, reason: str | None = None
) -> RequisitionResponse:
    requisition = await engine.cancel(session, KIND, requisition_id, auth, reason)
    return await _build_requisition_response(session, requisition)


async def reopen_requisition(
    session: AsyncSession, auth: AuthContext, requisition_id: uuid.UUID
) -> RequisitionResponse:
    requisition = await engine.reopen(session, KIND, requisition_id, auth)
    return await _build_requisition_response(session, requisition)


async def get_requisition_ledger(
    session: AsyncSession,
    auth: AuthContext,
    requisition_id: uuid.UUID,
    order: LedgerOrder = LedgerOrder.LEVEL,
) -> LedgerResponse:
    return await engine.get_entity_ledger(session, KIND, requisition_id, auth, order)
