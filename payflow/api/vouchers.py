# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from payflow.api.deps import AuthDep
from payflow.db import SessionDep
from payflow.schemas.ledger import LedgerOrder, LedgerResponse
from payflow.schemas.pipeline import (
    InstrumentResponse,
    IssueInstrumentPayload,
    VoucherDecisionPayload,
    VoucherRejectPayload,
    VoucherResponse,
)
from payflow.services import pipeline as pipeline_service

vouchers_router = APIRouter(prefix="/vouchers", tags=["vouchers"])


@vouchers_router.get("", response_model=list[VoucherResponse])
async def list_vouchers(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
) -> list[VoucherResponse]:
    return await pipeline_service.list_vouchers(session, auth, status_filter)


@vouchers_router.get("/{voucher_id}", response_model=VoucherResponse)
async def get_voucher(voucher_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> VoucherResponse:
    return await pipeline_service.get_voucher(session, auth, voucher_id)


@vouchers_router.post("/{voucher_id}/verify", response_model=VoucherResponse)
async def verify_voucher(
    voucher_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: VoucherDecisionPayload | None = None,
) -> VoucherResponse:
    return await pipeline_service.verify_voucher(session, auth, voucher_id, payload.comment if payload else None)


@vouchers_router.post("/{voucher_id}/approve", response_model=VoucherResponse)
async def approve_voucher(
    voucher_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: VoucherDecisionPayload | None = None,
) -> VoucherResponse:
    return await pipeline_service.approve_voucher(session, auth, voucher_id, payload.comment if payload else None)


@vouchers_router.post("/{voucher_id}/reject", response_model=VoucherResponse)
async def reject_voucher(
    voucher_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: VoucherRejectPayload | None = None,
) -> VoucherResponse:
    return await pipeline_service.reject_voucher(session, auth, voucher_id, payload.reason if payload else None)


@vouchers_router.post(
    "/{voucher_id}/instrument", response_model=InstrumentResponse, status_code=status.HTTP_201_CREATED
)
async def issue_instrument(
    voucher_id: uuid.UUID,
    payload: IssueInstrumentPayload,
    session: SessionDep,
    auth: AuthDep,
) -> InstrumentResponse:
    """Issue the check of an approved voucher."""
    return await pipeline_service.issue_instrument(session, auth, voucher_id, payload)


@vouchers_router.get("/{voucher_id}/ledger", response_model=LedgerResponse)
async def get_voucher_ledger(
    voucher_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    order: LedgerOrder = Query(default=LedgerOrder.LEVEL),
) -> LedgerResponse:
    return await pipeline_service.get_voucher_ledger(session, auth, voucher_id, order)
