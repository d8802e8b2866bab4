# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from payflow.schemas.workflow import ApprovableResponse


class PaymentRequestCreate(BaseModel):
    """Request body for creating a draft payment request."""

    payee: str = Field(min_length=1, max_length=255)
    particulars: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    currency: str = Field(default="PHP", min_length=3, max_length=3)
    date_needed: date | None = None
    unit_id: uuid.UUID | None = None


class PaymentRequestUpdate(BaseModel):
    """Partial update of a draft payment request."""

    payee: str | None = Field(default=None, min_length=1, max_length=255)
    particulars: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    date_needed: date | None = None


class PaymentFromRequisitionPayload(BaseModel):
    """Request body for deriving a payment request from an approved requisition."""

    payee: str = Field(min_length=1, max_length=255)
    # Defaults to the requisition's purpose.
    particulars: str | None = None


class PaymentRequestResponse(ApprovableResponse):
    """Response schema for a payment request."""

    payee: str
    particulars: str
    amount: Decimal
    currency: str
    date_needed: date | None
    requisition_id: uuid.UUID | None


class PaymentRequestListResponse(BaseModel):
    """Paginated list of payment requests."""

    items: list[PaymentRequestResponse]
    total: int
