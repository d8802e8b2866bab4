# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, Response, status

from payflow.api.deps import AuthDep
from payflow.db import SessionDep
from payflow.schemas.ledger import LedgerOrder, LedgerResponse
from payflow.schemas.payment import (
    PaymentRequestCreate,
    PaymentRequestListResponse,
    PaymentRequestResponse,
    PaymentRequestUpdate,
)
from payflow.schemas.pipeline import GenerateVoucherPayload, VoucherResponse
from payflow.schemas.workflow import ApprovePayload, CancelPayload, RejectPayload
from payflow.services import payment as payment_service
from payflow.services import pipeline as pipeline_service

payments_router = APIRouter(prefix="/payment-requests", tags=["payment-requests"])


@payments_router.post("", response_model=PaymentRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_request(
    payload: PaymentRequestCreate,
    session: SessionDep,
    auth: AuthDep,
) -> PaymentRequestResponse:
    """Create a standalone draft payment request."""
    return await payment_service.create_payment_request(session, auth, payload)


@payments_router.get("", response_model=PaymentRequestListResponse)
async def list_payment_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
    unit_id: uuid.UUID | None = Query(default=None),
    requester_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> PaymentRequestListResponse:
    return await payment_service.list_payment_requests(
        session, auth, status_filter, unit_id, requester_id, offset, limit
    )


@payments_router.get("/{payment_id}", response_model=PaymentRequestResponse)
async def get_payment_request(payment_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> PaymentRequestResponse:
    return await payment_service.get_payment_request(session, auth, payment_id)


@payments_router.patch("/{payment_id}", response_model=PaymentRequestResponse)
async def update_payment_request(
    payment_id: uuid.UUID,
    payload: PaymentRequestUpdate,
    session: SessionDep,
    auth: AuthDep,
) -> PaymentRequestResponse:
    return await payment_service.update_payment_request(session, auth, payment_id, payload)


@payments_router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment_request(payment_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> Response:
    await payment_service.delete_payment_request(session, auth, payment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@payments_router.post("/{payment_id}/submit", response_model=PaymentRequestResponse)
async def submit_payment_request(
    payment_id: uuid.UUID, session: SessionDep, auth: AuthDep
) -> PaymentRequestResponse:
    return await payment_service.submit_payment_request(session, auth, payment_id)


@payments_router.post("/{payment_id}/approve", response_model=PaymentRequestResponse)
async def approve_payment_request(
    payment_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovePayload | None = None,
) -> PaymentRequestResponse:
    return await payment_service.approve_payment_request(
        session,
        auth,
        payment_id,
        payload.comment if payload else None,
        payload.expected_level if payload else None,
    )


@payments_router.post("/{payment_id}/reject", response_model=PaymentRequestResponse)
async def reject_payment_request(
    payment_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: RejectPayload | None = None,
) -> PaymentRequestResponse:
    return await payment_service.reject_payment_request(session, auth, payment_id, payload.reason if payload else None)


@payments_router.post("/{payment_id}/cancel", response_model=PaymentRequestResponse)
async def cancel_payment_request(
    payment_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: CancelPayload | None = None,
) -> PaymentRequestResponse:
    return await payment_service.cancel_payment_request(session, auth, payment_id, payload.reason if payload else None)


@payments_router.post("/{payment_id}/reopen", response_model=PaymentRequestResponse)
async def reopen_payment_request(
    payment_id: uuid.UUID, session: SessionDep, auth: AuthDep
) -> PaymentRequestResponse:
    return await payment_service.reopen_payment_request(session, auth, payment_id)


@payments_router.get("/{payment_id}/ledger", response_model=LedgerResponse)
async def get_payment_request_ledger(
    payment_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    order: LedgerOrder = Query(default=LedgerOrder.LEVEL),
) -> LedgerResponse:
    return await payment_service.get_payment_request_ledger(session, auth, payment_id, order)


@payments_router.post("/{payment_id}/voucher", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
async def generate_voucher(
    payment_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: GenerateVoucherPayload | None = None,
) -> VoucherResponse:
    """Generate the voucher of an approved payment request."""
    return await pipeline_service.generate_voucher(session, auth, payment_id, payload)
