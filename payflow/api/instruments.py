# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from payflow.api.deps import AuthDep
from payflow.db import SessionDep
from payflow.schemas.ledger import LedgerOrder, LedgerResponse
from payflow.schemas.pipeline import ClearInstrumentPayload, InstrumentResponse, VoidInstrumentPayload
from payflow.services import pipeline as pipeline_service

instruments_router = APIRouter(prefix="/instruments", tags=["instruments"])


@instruments_router.get("", response_model=list[InstrumentResponse])
async def list_instruments(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
) -> list[InstrumentResponse]:
    return await pipeline_service.list_instruments(session, auth, status_filter)


@instruments_router.get("/{instrument_id}", response_model=InstrumentResponse)
async def get_instrument(instrument_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> InstrumentResponse:
    return await pipeline_service.get_instrument(session, auth, instrument_id)


@instruments_router.post("/{instrument_id}/clear", response_model=InstrumentResponse)
async def clear_instrument(
    instrument_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ClearInstrumentPayload | None = None,
) -> InstrumentResponse:
    """Mark the check cleared; the payment request becomes disbursed."""
    return await pipeline_service.clear_instrument(session, auth, instrument_id, payload)


@instruments_router.post("/{instrument_id}/void", response_model=InstrumentResponse)
async def void_instrument(
    instrument_id: uuid.UUID,
    payload: VoidInstrumentPayload,
    session: SessionDep,
    auth: AuthDep,
) -> InstrumentResponse:
    """Void the check; the payment request becomes rejected."""
    return await pipeline_service.void_instrument(session, auth, instrument_id, payload)


@instruments_router.get("/{instrument_id}/ledger", response_model=LedgerResponse)
async def get_instrument_ledger(
    instrument_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    order: LedgerOrder = Query(default=LedgerOrder.LEVEL),
) -> LedgerResponse:
    return await pipeline_service.get_instrument_ledger(session, auth, instrument_id, order)
