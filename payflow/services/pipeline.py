# ruff: noqa: TC003
"""Downstream derivations: requisition -> payment request -> voucher -> check.

Each derived row exists at most once per source. Existence is checked first so
a repeated derivation reports ``AlreadyExistsError`` even after the source has
moved on; the unique constraints back the check against concurrent writers.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from payflow.authz.permissions import Permission
from payflow.db import atomic
from payflow.exceptions import AlreadyExistsError, ForbiddenError, InvalidStateError
from payflow.models.base import now_utc
from payflow.models.enums import (
    SUBMISSION_LEVEL,
    InstrumentStatus,
    LedgerAction,
    PaymentRequestStatus,
    VoucherStatus,
)
from payflow.models.payment import DisbursementInstrument, PaymentRequest, PaymentVoucher
from payflow.schemas.ledger import LedgerOrder
from payflow.schemas.pipeline import InstrumentResponse, VoucherResponse
from payflow.services import bank_account as bank_account_service
from payflow.services import ledger as ledger_service
from payflow.services import workflow as engine
from payflow.services.access import require_permission
from payflow.services.payment import build_payment_request_response
from payflow.workflow import (
    INSTRUMENT_KIND,
    PAYMENT_REQUEST_KIND,
    REQUISITION_KIND,
    VOUCHER_KIND,
    Action,
    new_sequence_number,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from payflow.schemas.auth import AuthContext
    from payflow.schemas.ledger import LedgerResponse
    from payflow.schemas.payment import PaymentFromRequisitionPayload, PaymentRequestResponse
    from payflow.schemas.pipeline import (
        ClearInstrumentPayload,
        GenerateVoucherPayload,
        IssueInstrumentPayload,
        VoidInstrumentPayload,
    )

logger = logging.getLogger(__name__)

VOUCHER_LEVELS = 2  # verify, then approve
VOUCHER_VERIFY_LEVEL = 1
VOUCHER_APPROVE_LEVEL = 2
INSTRUMENT_RESOLUTION_LEVEL = 1

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_voucher_response(voucher: PaymentVoucher) -> VoucherResponse:
    return VoucherResponse(
        id=voucher.id,
        sequence_number=voucher.sequence_number,
        status=voucher.status,
        current_approval_level=voucher.current_approval_level,
        required_levels=voucher.required_levels,
        unit_id=voucher.unit_id,
        requester_id=voucher.requester_id,
        version=voucher.version,
        submitted_at=voucher.submitted_at,
        decided_at=voucher.decided_at,
        created_at=voucher.created_at,
        payment_request_id=voucher.payment_request_id,
        payee=voucher.payee,
        particulars=voucher.particulars,
        amount=voucher.amount,
        verified_by=voucher.verified_by,
        approved_by=voucher.approved_by,
    )


def _build_instrument_response(instrument: DisbursementInstrument) -> InstrumentResponse:
    return InstrumentResponse(
        id=instrument.id,
        sequence_number=instrument.sequence_number,
        status=instrument.status,
        current_approval_level=instrument.current_approval_level,
        required_levels=instrument.required_levels,
        unit_id=instrument.unit_id,
        requester_id=instrument.requester_id,
        version=instrument.version,
        submitted_at=instrument.submitted_at,
        decided_at=instrument.decided_at,
        created_at=instrument.created_at,
        voucher_id=instrument.voucher_id,
        check_number=instrument.check_number,
        bank_account_id=instrument.bank_account_id,
        payee=instrument.payee,
        amount=instrument.amount,
        issued_by=instrument.issued_by,
        cleared_by=instrument.cleared_by,
        received_by=instrument.received_by,
        cleared_at=instrument.cleared_at,
        voided_by=instrument.voided_by,
        void_reason=instrument.void_reason,
    )


async def _first(session: AsyncSession, query: Any) -> Any:
    result = await session.execute(query)
    return result.scalars().first()


async def _flush_derived(session: AsyncSession, entity: Any, message: str) -> None:
    """Insert a derived row; a unique violation means another writer derived it first."""
    session.add(entity)
    try:
        await session.flush()
    except IntegrityError:
        raise AlreadyExistsError(message, reason="already_derived") from None


# ---------------------------------------------------------------------------
# Requisition -> payment request
# ---------------------------------------------------------------------------


async def create_payment_request_from_requisition(
    session: AsyncSession,
    auth: AuthContext,
    requisition_id: uuid.UUID,
    payload: PaymentFromRequisitionPayload,
) -> PaymentRequestResponse:
    """Derive a draft payment request from an approved requisition and complete the requisition."""
    require_permission(auth, Permission.PAYMENTS_CREATE_OWN)

    async with atomic(session):
        requisition = await engine.get_entity_for_update(session, REQUISITION_KIND, requisition_id)
        existing = await _first(
            session, select(PaymentRequest).where(col(PaymentRequest.requisition_id) == requisition.id)
        )
        if existing is not None:
            raise AlreadyExistsError(
                f"Requisition {requisition.sequence_number} already has payment request {existing.sequence_number}",
                reason="already_derived",
            )
        if requisition.requester_id != auth.user_id:
            raise ForbiddenError("Only the requester can request payment for this requisition", reason="not_requester")
        if not REQUISITION_KIND.machine.can(requisition.status, Action.COMPLETE):
            raise InvalidStateError(
                f"Requisition must be approved (status {requisition.status})", reason="not_approved"
            )

        await engine.apply_transition(session, REQUISITION_KIND, requisition, Action.COMPLETE)
        payment = PaymentRequest(
            sequence_number=new_sequence_number(PAYMENT_REQUEST_KIND),
            status=PaymentRequestStatus.DRAFT.value,
            unit_id=requisition.unit_id,
            requester_id=requisition.requester_id,
            payee=payload.payee,
            particulars=payload.particulars or requisition.purpose,
            amount=requisition.total_amount,
            currency=requisition.currency,
            date_needed=requisition.date_needed,
            requisition_id=requisition.id,
        )
        await _flush_derived(session, payment, "Requisition already has a payment request")
        ledger_service.append_entry(
            session,
            PAYMENT_REQUEST_KIND.entity_type,
            payment.id,
            SUBMISSION_LEVEL,
            LedgerAction.GENERATED,
            submitted_by=auth.user_id,
            comment=f"Generated from requisition {requisition.sequence_number}",
        )

    logger.info(
        "Payment request %s derived from requisition %s by %s",
        payment.sequence_number,
        requisition.sequence_number,
        auth.user_id,
    )
    return build_payment_request_response(payment)


# ---------------------------------------------------------------------------
# Payment request -> voucher
# ---------------------------------------------------------------------------


async def generate_voucher(
    session: AsyncSession,
    auth: AuthContext,
    payment_id: uuid.UUID,
    payload: GenerateVoucherPayload | None = None,
) -> VoucherResponse:
    """Generate the single voucher of an approved payment request."""
    require_permission(auth, Permission.VOUCHERS_CREATE_ALL)

    async with atomic(session):
        payment = await engine.get_entity_for_update(session, PAYMENT_REQUEST_KIND, payment_id)
        existing = await _first(
            session, select(PaymentVoucher).where(col(PaymentVoucher.payment_request_id) == payment.id)
        )
        if existing is not None:
            raise AlreadyExistsError(
                f"Payment request {payment.sequence_number} already has voucher {existing.sequence_number}",
                reason="already_derived",
            )
        if not PAYMENT_REQUEST_KIND.machine.can(payment.status, Action.GENERATE_INSTRUMENT):
            raise InvalidStateError(
                f"Payment request must be approved (status {payment.status})", reason="not_approved"
            )

        await engine.apply_transition(session, PAYMENT_REQUEST_KIND, payment, Action.GENERATE_INSTRUMENT)
        voucher = PaymentVoucher(
            sequence_number=new_sequence_number(VOUCHER_KIND),
            status=VoucherStatus.DRAFT.value,
            required_levels=VOUCHER_LEVELS,
            unit_id=payment.unit_id,
            requester_id=payment.requester_id,
            payment_request_id=payment.id,
            payee=payment.payee,
            particulars=(payload.particulars if payload else None) or payment.particulars,
            amount=payment.amount,
        )
        await _flush_derived(session, voucher, "Payment request already has a voucher")
        ledger_service.append_entry(
            session,
            VOUCHER_KIND.entity_type,
            voucher.id,
            SUBMISSION_LEVEL,
            LedgerAction.GENERATED,
            submitted_by=auth.user_id,
            comment=f"Generated from payment request {payment.sequence_number}",
        )

    logger.info("Voucher %s generated for %s by %s", voucher.sequence_number, payment.sequence_number, auth.user_id)
    return _build_voucher_response(voucher)


async def verify_voucher(
    session: AsyncSession, auth: AuthContext, voucher_id: uuid.UUID, comment: str | None = None
) -> VoucherResponse:
    """First internal step: DRAFT -> VERIFIED."""
    require_permission(auth, Permission.VOUCHERS_VERIFY_ALL)

    async with atomic(session):
        voucher = await engine.get_entity_for_update(session, VOUCHER_KIND, voucher_id)
        await engine.apply_transition(
            session,
            VOUCHER_KIND,
            voucher,
            Action.VERIFY,
            current_approval_level=VOUCHER_VERIFY_LEVEL,
            verified_by=auth.user_id,
            submitted_at=now_utc(),
        )
        ledger_service.append_entry(
            session,
            VOUCHER_KIND.entity_type,
            voucher.id,
            VOUCHER_VERIFY_LEVEL,
            LedgerAction.VERIFIED,
            approved_by=auth.user_id,
            comment=comment or "Voucher verified",
        )

    logger.info("Voucher %s verified by %s", voucher.sequence_number, auth.user_id)
    return _build_voucher_response(voucher)


async def approve_voucher(
    session: AsyncSession, auth: AuthContext, voucher_id: uuid.UUID, comment: str | None = None
) -> VoucherResponse:
    """Second internal step: VERIFIED -> APPROVED."""
    require_permission(auth, VOUCHER_KIND.approve_permission)

    async with atomic(session):
        voucher = await engine.get_entity_for_update(session, VOUCHER_KIND, voucher_id)
        await engine.apply_transition(
            session,
            VOUCHER_KIND,
            voucher,
            Action.APPROVE,
            current_approval_level=VOUCHER_APPROVE_LEVEL,
            approved_by=auth.user_id,
            decided_at=now_utc(),
        )
        ledger_service.append_entry(
            session,
            VOUCHER_KIND.entity_type,
            voucher.id,
            VOUCHER_APPROVE_LEVEL,
            LedgerAction.APPROVED,
            approved_by=auth.user_id,
            comment=comment or "Voucher approved",
        )

    logger.info("Voucher %s approved by %s", voucher.sequence_number, auth.user_id)
    return _build_voucher_response(voucher)


async def reject_voucher(
    session: AsyncSession, auth: AuthContext, voucher_id: uuid.UUID, reason: str | None = None
) -> VoucherResponse:
    """Reject a voucher before approval. The payment request is left as it is."""
    require_permission(auth, VOUCHER_KIND.reject_permission)

    async with atomic(session):
        voucher = await engine.get_entity_for_update(session, VOUCHER_KIND, voucher_id)
        level = voucher.current_approval_level + 1
        await engine.apply_transition(session, VOUCHER_KIND, voucher, Action.REJECT, decided_at=now_utc())
        ledger_service.append_entry(
            session,
            VOUCHER_KIND.entity_type,
            voucher.id,
            level,
            LedgerAction.REJECTED,
            rejected_by=auth.user_id,
            comment=reason or f"Rejected at level {level}",
        )

    logger.info("Voucher %s rejected by %s", voucher.sequence_number, auth.user_id)
    return _build_voucher_response(voucher)


async def get_voucher(session: AsyncSession, auth: AuthContext, voucher_id: uuid.UUID) -> VoucherResponse:
    voucher = await engine.get_entity(session, VOUCHER_KIND, voucher_id)
    engine.ensure_can_read(auth, VOUCHER_KIND, voucher)
    return _build_voucher_response(voucher)


async def list_vouchers(
    session: AsyncSession, auth: AuthContext, status_filter: str | None = None
) -> list[VoucherResponse]:
    """List vouchers newest first."""
    require_permission(auth, VOUCHER_KIND.read_all_permission)
    query = select(PaymentVoucher)
    if status_filter is not None:
        query = query.where(col(PaymentVoucher.status) == status_filter)
    result = await session.execute(query.order_by(col(PaymentVoucher.created_at).desc()))
    return [_build_voucher_response(v) for v in result.scalars().all()]


# ---------------------------------------------------------------------------
# Voucher -> disbursement instrument
# ---------------------------------------------------------------------------


async def issue_instrument(
    session: AsyncSession, auth: AuthContext, voucher_id: uuid.UUID, payload: IssueInstrumentPayload
) -> InstrumentResponse:
    """Issue the single check of an approved voucher; voucher and payment request follow."""
    require_permission(auth, Permission.INSTRUMENTS_ISSUE_ALL)

    async with atomic(session):
        voucher = await engine.get_entity_for_update(session, VOUCHER_KIND, voucher_id)
        existing = await _first(
            session, select(DisbursementInstrument).where(col(DisbursementInstrument.voucher_id) == voucher.id)
        )
        if existing is not None:
            raise AlreadyExistsError(
                f"Voucher {voucher.sequence_number} already has check {existing.check_number}",
                reason="already_derived",
            )
        duplicate = await _first(
            session,
            select(DisbursementInstrument).where(col(DisbursementInstrument.check_number) == payload.check_number),
        )
        if duplicate is not None:
            raise AlreadyExistsError(
                f"Check number {payload.check_number} is already in use", reason="duplicate_check_number"
            )
        if not VOUCHER_KIND.machine.can(voucher.status, Action.ISSUE_INSTRUMENT):
            raise InvalidStateError(f"Voucher must be approved (status {voucher.status})", reason="not_approved")
        account = await bank_account_service.get_active_or_404(session, payload.bank_account_id)

        payment = await engine.get_entity_for_update(session, PAYMENT_REQUEST_KIND, voucher.payment_request_id)
        await engine.apply_transition(session, VOUCHER_KIND, voucher, Action.ISSUE_INSTRUMENT)
        await engine.apply_transition(session, PAYMENT_REQUEST_KIND, payment, Action.ISSUE_INSTRUMENT)

        now = now_utc()
        instrument = DisbursementInstrument(
            sequence_number=new_sequence_number(INSTRUMENT_KIND),
            status=InstrumentStatus.ISSUED.value,
            required_levels=INSTRUMENT_RESOLUTION_LEVEL,
            unit_id=voucher.unit_id,
            requester_id=voucher.requester_id,
            submitted_at=now,
            voucher_id=voucher.id,
            check_number=payload.check_number,
            bank_account_id=account.id,
            payee=voucher.payee,
            amount=voucher.amount,
            issued_by=auth.user_id,
        )
        await _flush_derived(session, instrument, "Voucher already has a check or the check number is in use")
        ledger_service.append_entry(
            session,
            INSTRUMENT_KIND.entity_type,
            instrument.id,
            SUBMISSION_LEVEL,
            LedgerAction.ISSUED,
            submitted_by=auth.user_id,
            comment=f"Check issued: {payload.check_number}",
        )

    logger.info("Check %s issued for voucher %s by %s", instrument.check_number, voucher.sequence_number, auth.user_id)
    return _build_instrument_response(instrument)


async def _load_source_payment(session: AsyncSession, instrument: DisbursementInstrument) -> PaymentRequest:
    voucher = await engine.get_entity(session, VOUCHER_KIND, instrument.voucher_id)
    return await engine.get_entity_for_update(session, PAYMENT_REQUEST_KIND, voucher.payment_request_id)


async def clear_instrument(
    session: AsyncSession, auth: AuthContext, instrument_id: uuid.UUID, payload: ClearInstrumentPayload | None = None
) -> InstrumentResponse:
    """Record the check as cleared and the originating payment request as disbursed."""
    require_permission(auth, Permission.INSTRUMENTS_DISBURSE_ALL)
    received_by = payload.received_by if payload else None
    comment = payload.comment if payload else None

    async with atomic(session):
        instrument = await engine.get_entity_for_update(session, INSTRUMENT_KIND, instrument_id)
        INSTRUMENT_KIND.machine.assert_can(instrument.status, Action.CLEAR)
        payment = await _load_source_payment(session, instrument)

        now = now_utc()
        await engine.apply_transition(
            session,
            INSTRUMENT_KIND,
            instrument,
            Action.CLEAR,
            current_approval_level=INSTRUMENT_RESOLUTION_LEVEL,
            cleared_by=auth.user_id,
            cleared_at=now,
            received_by=received_by,
            decided_at=now,
        )
        await engine.apply_transition(session, PAYMENT_REQUEST_KIND, payment, Action.CLEAR, decided_at=now)

        ledger_service.append_entry(
            session,
            INSTRUMENT_KIND.entity_type,
            instrument.id,
            INSTRUMENT_RESOLUTION_LEVEL,
            LedgerAction.CLEARED,
            approved_by=auth.user_id,
            comment=comment or "Check cleared",
        )
        ledger_service.append_entry(
            session,
            PAYMENT_REQUEST_KIND.entity_type,
            payment.id,
            SUBMISSION_LEVEL,
            LedgerAction.DISBURSED,
            approved_by=auth.user_id,
            comment=f"Check {instrument.check_number} cleared; payment complete",
        )

    logger.info("Check %s cleared; %s disbursed", instrument.check_number, payment.sequence_number)
    return _build_instrument_response(instrument)


async def void_instrument(
    session: AsyncSession, auth: AuthContext, instrument_id: uuid.UUID, payload: VoidInstrumentPayload
) -> InstrumentResponse:
    """Void an issued check; the originating payment request becomes rejected."""
    require_permission(auth, Permission.INSTRUMENTS_VOID_ALL)

    async with atomic(session):
        instrument = await engine.get_entity_for_update(session, INSTRUMENT_KIND, instrument_id)
        INSTRUMENT_KIND.machine.assert_can(instrument.status, Action.VOID)
        payment = await _load_source_payment(session, instrument)

        now = now_utc()
        await engine.apply_transition(
            session,
            INSTRUMENT_KIND,
            instrument,
            Action.VOID,
            current_approval_level=INSTRUMENT_RESOLUTION_LEVEL,
            voided_by=auth.user_id,
            void_reason=payload.reason,
            decided_at=now,
        )
        await engine.apply_transition(session, PAYMENT_REQUEST_KIND, payment, Action.VOID, decided_at=now)

        ledger_service.append_entry(
            session,
            INSTRUMENT_KIND.entity_type,
            instrument.id,
            INSTRUMENT_RESOLUTION_LEVEL,
            LedgerAction.VOIDED,
            rejected_by=auth.user_id,
            comment=f"Check voided: {payload.reason}",
        )
        ledger_service.append_entry(
            session,
            PAYMENT_REQUEST_KIND.entity_type,
            payment.id,
            SUBMISSION_LEVEL,
            LedgerAction.VOIDED,
            rejected_by=auth.user_id,
            comment=f"Payment rejected; check voided: {payload.reason}",
        )

    logger.info("Check %s voided by %s; %s rejected", instrument.check_number, auth.user_id, payment.sequence_number)
    return _build_instrument_response(instrument)


async def get_instrument(session: AsyncSession, auth: AuthContext, instrument_id: uuid.UUID) -> InstrumentResponse:
    instrument = await engine.get_entity(session, INSTRUMENT_KIND, instrument_id)
    engine.ensure_can_read(auth, INSTRUMENT_KIND, instrument)
    return _build_instrument_response(instrument)


async def list_instruments(
    session: AsyncSession, auth: AuthContext, status_filter: str | None = None
) -> list[InstrumentResponse]:
    """List checks newest first."""
    require_permission(auth, INSTRUMENT_KIND.read_all_permission)
    query = select(DisbursementInstrument)
    if status_filter is not None:
        query = query.where(col(DisbursementInstrument.status) == status_filter)
    result = await session.execute(query.order_by(col(DisbursementInstrument.created_at).desc()))
    return [_build_instrument_response(i) for i in result.scalars().all()]


async def get_voucher_ledger(
    session: AsyncSession, auth: AuthContext, voucher_id: uuid.UUID, order: LedgerOrder = LedgerOrder.LEVEL
) -> LedgerResponse:
    return await engine.get_entity_ledger(session, VOUCHER_KIND, voucher_id, auth, order)


async def get_instrument_ledger(
    session: AsyncSession, auth: AuthContext, instrument_id: uuid.UUID, order: LedgerOrder = LedgerOrder.LEVEL
) -> LedgerResponse:
    return await engine.get_entity_ledger(session, INSTRUMENT_KIND, instrument_id, auth, order)
