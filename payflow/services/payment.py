# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from payflow.authz.permissions import Permission
from payflow.db import atomic
from payflow.exceptions import ForbiddenError, InvalidStateError
from payflow.models.enums import PaymentRequestStatus
from payflow.models.payment import PaymentRequest, PaymentVoucher
from payflow.schemas.ledger import LedgerOrder
from payflow.schemas.payment import PaymentRequestListResponse, PaymentRequestResponse
from payflow.services import ledger as ledger_service
from payflow.services import workflow as engine
from payflow.services.access import has_permission, require_any_permission, require_permission
from payflow.services.requisition import resolve_unit_id
from payflow.workflow import PAYMENT_REQUEST_KIND, new_sequence_number

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from payflow.schemas.auth import AuthContext
    from payflow.schemas.ledger import LedgerResponse
    from payflow.schemas.payment import PaymentRequestCreate, PaymentRequestUpdate

logger = logging.getLogger(__name__)

KIND = PAYMENT_REQUEST_KIND


def build_payment_request_response(payment: PaymentRequest) -> PaymentRequestResponse:
    """Map a payment request model to its response schema."""
    return PaymentRequestResponse(
        id=payment.id,
        sequence_number=payment.sequence_number,
        status=payment.status,
        current_approval_level=payment.current_approval_level,
        required_levels=payment.required_levels,
        unit_id=payment.unit_id,
        requester_id=payment.requester_id,
        version=payment.version,
        submitted_at=payment.submitted_at,
        decided_at=payment.decided_at,
        created_at=payment.created_at,
        payee=payment.payee,
        particulars=payment.particulars,
        amount=payment.amount,
        currency=payment.currency,
        date_needed=payment.date_needed,
        requisition_id=payment.requisition_id,
    )


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


async def create_payment_request(
    session: AsyncSession, auth: AuthContext, payload: PaymentRequestCreate
) -> PaymentRequestResponse:
    """Create a standalone draft payment request."""
    require_permission(auth, Permission.PAYMENTS_CREATE_OWN)

    async with atomic(session):
        unit_id = await resolve_unit_id(session, auth, payload.unit_id)
        payment = PaymentRequest(
            sequence_number=new_sequence_number(KIND),
            status=PaymentRequestStatus.DRAFT.value,
            unit_id=unit_id,
            requester_id=auth.user_id,
            payee=payload.payee,
            particulars=payload.particulars,
            amount=payload.amount,
            currency=payload.currency,
            date_needed=payload.date_needed,
        )
        session.add(payment)
        await session.flush()

    logger.info("Payment request %s created by %s", payment.sequence_number, auth.user_id)
    return build_payment_request_response(payment)


async def update_payment_request(
    session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID, payload: PaymentRequestUpdate
) -> PaymentRequestResponse:
    """Edit a draft payment request."""
    async with atomic(session):
        payment = await engine.get_entity_for_update(session, KIND, payment_id)
        if payment.requester_id == auth.user_id:
            require_permission(auth, Permission.PAYMENTS_UPDATE_OWN)
        elif not has_permission(auth, Permission.PAYMENTS_UPDATE_ALL):
            raise ForbiddenError("Only the requester can modify this payment request", reason="not_requester")
        if payment.status != PaymentRequestStatus.DRAFT:
            raise InvalidStateError("Only draft payment requests can be edited", reason="not_draft")

        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(payment, field, value)
        payment.version += 1
        await session.flush()

    logger.info("Payment request %s updated by %s", payment.sequence_number, auth.user_id)
    return build_payment_request_response(payment)


async def delete_payment_request(session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID) -> None:
    """Hard-delete a standalone draft that never entered the approval chain."""
    async with atomic(session):
        payment = await engine.get_entity_for_update(session, KIND, payment_id)
        if payment.requester_id != auth.user_id:
            raise ForbiddenError("Only the requester can delete this payment request", reason="not_requester")
        require_permission(auth, Permission.PAYMENTS_DELETE_OWN)
        if payment.status != PaymentRequestStatus.DRAFT:
            raise InvalidStateError("Only draft payment requests can be deleted", reason="not_draft")
        if await ledger_service.has_history(session, KIND.entity_type, payment.id):
            raise InvalidStateError("Payment requests with approval history cannot be deleted", reason="has_history")
        await session.delete(payment)

    logger.info("Payment request %s deleted by %s", payment.sequence_number, auth.user_id)


async def get_payment_request(
    session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID
) -> PaymentRequestResponse:
    """Get a single payment request the actor may see."""
    payment = await engine.get_entity(session, KIND, payment_id)
    engine.ensure_can_read(auth, KIND, payment)
    return build_payment_request_response(payment)


async def list_payment_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: str | None = None,
    unit_id: uuid.UUID | None = None,
    requester_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> PaymentRequestListResponse:
    """List visible payment requests, newest first."""
    require_any_permission(
        auth,
        Permission.PAYMENTS_READ_ALL,
        Permission.PAYMENTS_READ_UNIT,
        Permission.PAYMENTS_READ_OWN,
    )
    base = select(PaymentRequest)
    visible = engine.visibility_clause(auth, KIND)
    if visible is not None:
        base = base.where(visible)
    if status_filter is not None:
        base = base.where(col(PaymentRequest.status) == status_filter)
    if unit_id is not None:
        base = base.where(col(PaymentRequest.unit_id) == unit_id)
    if requester_id is not None:
        base = base.where(col(PaymentRequest.requester_id) == requester_id)

    count_result = await session.execute(select(func.count()).select_from(base.subquery()))
    total = count_result.scalar_one()

    result = await session.execute(
        base.order_by(col(PaymentRequest.created_at).desc(), col(PaymentRequest.id)).offset(offset).limit(limit)
    )
    return PaymentRequestListResponse(
        items=[build_payment_request_response(p) for p in result.scalars().all()],
        total=total,
    )


# ---------------------------------------------------------------------------
# Workflow verbs
# ---------------------------------------------------------------------------


async def submit_payment_request(
    session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID
) -> PaymentRequestResponse:
    return build_payment_request_response(await engine.submit(session, KIND, payment_id, auth))


async def approve_payment_request(
    session: AsyncSession,
    auth: AuthContext,
    payment_id: uuid.UUID,
    comment: str | None = None,
    expected_level: int | None = None,
) -> PaymentRequestResponse:
    payment = await engine.approve(session, KIND, payment_id, auth, comment, expected_level)
    return build_payment_request_response(payment)


async def reject_payment_request(
    session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID, reason: str | None = None
) -> PaymentRequestResponse:
    return build_payment_request_response(await engine.reject(session, KIND, payment_id, auth, reason))


async def cancel_payment_request(
    session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID, reason: str | None = None
) -> PaymentRequestResponse:
    return build_payment_request_response(await engine.cancel(session, KIND, payment_id, auth, reason))


async def reopen_payment_request(
    session: AsyncSession, auth: AuthContext, payment_id: uuid.UUID
) -> PaymentRequestResponse:
    """Return a rejected request to draft. Requests whose voucher was already generated stay closed."""
    result = await session.execute(
        select(col(PaymentVoucher.id)).where(col(PaymentVoucher.payment_request_id) == payment_id).limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise InvalidStateError("A voucher was already generated for this payment request", reason="has_voucher")
    return build_payment_request_response(await engine.reopen(session, KIND, payment_id, auth))


async def get_payment_request_ledger(
    session: AsyncSession,
    auth: AuthContext,
    payment_id: uuid.UUID,
    order: LedgerOrder = LedgerOrder.LEVEL,
) -> LedgerResponse:
    return await engine.get_entity_ledger(session, KIND, payment_id, auth, order)
