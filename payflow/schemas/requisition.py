# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from payflow.schemas.workflow import ApprovableResponse

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class RequisitionItemPayload(BaseModel):
    """One requisition line; the subtotal is computed server-side."""

    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    unit: str = Field(min_length=1, max_length=50)
    particulars: str = Field(min_length=1)
    specification: str | None = None
    unit_cost: Decimal = Field(ge=0, max_digits=14, decimal_places=2)


class RequisitionCreate(BaseModel):
    """Request body for creating a draft requisition."""

    purpose: str = Field(min_length=1)
    date_needed: date | None = None
    currency: str = Field(default="PHP", min_length=3, max_length=3)
    # Defaults to the requester's own unit.
    unit_id: uuid.UUID | None = None
    items: list[RequisitionItemPayload] = Field(default_factory=list)


class RequisitionUpdate(BaseModel):
    """Partial update of a draft requisition. ``items`` replaces every line when given."""

    purpose: str | None = Field(default=None, min_length=1)
    date_needed: date | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    items: list[RequisitionItemPayload] | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequisitionItemResponse(BaseModel):
    id: uuid.UUID
    line_no: int
    quantity: Decimal
    unit: str
    particulars: str
    specification: str | None
    unit_cost: Decimal
    subtotal: Decimal


class RequisitionResponse(ApprovableResponse):
    """Response schema for a requisition with its lines."""

    purpose: str
    date_needed: date | None
    currency: str
    total_amount: Decimal
    items: list[RequisitionItemResponse]


class RequisitionListResponse(BaseModel):
    """Paginated list of requisitions."""

    items: list[RequisitionResponse]
    total: int
