# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from payflow.schemas.workflow import ApprovableResponse

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class GenerateVoucherPayload(BaseModel):
    """Request body for generating a voucher; particulars default to the payment request's."""

    particulars: str | None = None


class VoucherDecisionPayload(BaseModel):
    comment: str | None = Field(default=None, max_length=1000)


class VoucherRejectPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class IssueInstrumentPayload(BaseModel):
    """Request body for issuing a check against an approved voucher."""

    check_number: str = Field(min_length=1, max_length=50)
    bank_account_id: uuid.UUID


class ClearInstrumentPayload(BaseModel):
    received_by: str | None = Field(default=None, max_length=255)
    comment: str | None = Field(default=None, max_length=1000)


class VoidInstrumentPayload(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class VoucherResponse(ApprovableResponse):
    """Response schema for a payment voucher."""

    payment_request_id: uuid.UUID
    payee: str
    particulars: str
    amount: Decimal
    verified_by: uuid.UUID | None
    approved_by: uuid.UUID | None


class InstrumentResponse(ApprovableResponse):
    """Response schema for a disbursement instrument."""

    voucher_id: uuid.UUID
    check_number: str
    bank_account_id: uuid.UUID
    payee: str
    amount: Decimal
    issued_by: uuid.UUID
    cleared_by: uuid.UUID | None
    received_by: str | None
    cleared_at: datetime | None
    voided_by: uuid.UUID | None
    void_reason: str | None
