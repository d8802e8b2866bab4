# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, Response, status

from payflow.api.deps import AuthDep
from payflow.db import SessionDep
from payflow.schemas.ledger import LedgerOrder, LedgerResponse
from payflow.schemas.payment import PaymentFromRequisitionPayload, PaymentRequestResponse
from payflow.schemas.requisition import (
    RequisitionCreate,
    RequisitionListResponse,
    RequisitionResponse,
    RequisitionUpdate,
)
from payflow.schemas.workflow import ApprovePayload, CancelPayload, RejectPayload
from payflow.services import pipeline as pipeline_service
from payflow.services import requisition as requisition_service

requisitions_router = APIRouter(prefix="/requisitions", tags=["requisitions"])


@requisitions_router.post("", response_model=RequisitionResponse, status_code=status.HTTP_201_CREATED)
async def create_requisition(
    payload: RequisitionCreate,
    session: SessionDep,
    auth: AuthDep,
) -> RequisitionResponse:
    """Create a draft requisition."""
    return await requisition_service.create_requisition(session, auth, payload)


@requisitions_router.get("", response_model=RequisitionListResponse)
async def list_requisitions(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
    unit_id: uuid.UUID | None = Query(default=None),
    requester_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequisitionListResponse:
    """List requisitions visible to the caller."""
    return await requisition_service.list_requisitions(
        session, auth, status_filter, unit_id, requester_id, offset, limit
    )


@requisitions_router.get("/{requisition_id}", response_model=RequisitionResponse)
async def get_requisition(requisition_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> RequisitionResponse:
    return await requisition_service.get_requisition(session, auth, requisition_id)


@requisitions_router.patch("/{requisition_id}", response_model=RequisitionResponse)
async def update_requisition(
    requisition_id: uuid.UUID,
    payload: RequisitionUpdate,
    session: SessionDep,
    auth: AuthDep,
) -> RequisitionResponse:
    """Edit a draft requisition."""
    return await requisition_service.update_requisition(session, auth, requisition_id, payload)


@requisitions_router.delete("/{requisition_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_requisition(requisition_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> Response:
    """Delete a draft that was never submitted."""
    await requisition_service.delete_requisition(session, auth, requisition_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@requisitions_router.post("/{requisition_id}/submit", response_model=RequisitionResponse)
async def submit_requisition(requisition_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> RequisitionResponse:
    return await requisition_service.submit_requisition(session, auth, requisition_id)


@requisitions_router.post("/{requisition_id}/approve", response_model=RequisitionResponse)
async def approve_requisition(
    requisition_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovePayload | None = None,
) -> RequisitionResponse:
    """Approve at the current level."""
    return await requisition_service.approve_requisition(
        session,
        auth,
        requisition_id,
        payload.comment if payload else None,
        payload.expected_level if payload else None,
    )


@requisitions_router.post("/{requisition_id}/reject", response_model=RequisitionResponse)
async def reject_requisition(
    requisition_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: RejectPayload | None = None,
) -> RequisitionResponse:
    return await requisition_service.reject_requisition(
        session, auth, requisition_id, payload.reason if payload else None
    )


@requisitions_router.post("/{requisition_id}/cancel", response_model=RequisitionResponse)
async def cancel_requisition(
    requisition_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: CancelPayload | None = None,
) -> RequisitionResponse:
    return await requisition_service.cancel_requisition(
        session, auth, requisition_id, payload.reason if payload else None
    )


@requisitions_router.post("/{requisition_id}/reopen", response_model=RequisitionResponse)
async def reopen_requisition(requisition_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> RequisitionResponse:
    """Return a rejected requisition to draft."""
    return await requisition_service.reopen_requisition(session, auth, requisition_id)


@requisitions_router.get("/{requisition_id}/ledger", response_model=LedgerResponse)
async def get_requisition_ledger(
    requisition_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    order: LedgerOrder = Query(default=LedgerOrder.LEVEL),
) -> LedgerResponse:
    """Approval history, by level or chronologically."""
    return await requisition_service.get_requisition_ledger(session, auth, requisition_id, order)


@requisitions_router.post(
    "/{requisition_id}/payment-request",
    response_model=PaymentRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment_request_from_requisition(
    requisition_id: uuid.UUID,
    payload: PaymentFromRequisitionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> PaymentRequestResponse:
    """Derive the payment request of an approved requisition."""
    return await pipeline_service.create_payment_request_from_requisition(session, auth, requisition_id, payload)
