# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class UnitCreate(BaseModel):
    """Request body for creating an organizational unit."""

    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    parent_id: uuid.UUID | None = None


class ApproverCreate(BaseModel):
    """Request body for assigning approval authority.

    A null ``unit_id`` makes the approver organization-wide.
    """

    user_id: uuid.UUID
    unit_id: uuid.UUID | None = None
    approval_level: int = Field(ge=1)
    approval_ceiling: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    priority: int = Field(default=100, ge=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UnitResponse(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    parent_id: uuid.UUID | None
    is_active: bool
    created_at: datetime


class UnitListResponse(BaseModel):
    items: list[UnitResponse]
    total: int


class ApproverResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    unit_id: uuid.UUID | None
    approval_level: int
    approval_ceiling: Decimal | None
    priority: int
    is_active: bool
    created_at: datetime


class ApproverListResponse(BaseModel):
    items: list[ApproverResponse]
    total: int


class RoutingLevel(BaseModel):
    """Who acts at one level: the chosen approver first, then the fallbacks in order."""

    level: int
    approver: ApproverResponse | None
    candidates: list[ApproverResponse]


class RoutingResponse(BaseModel):
    """Resolved approval chain for a unit."""

    unit_id: uuid.UUID
    max_level: int
    levels: list[RoutingLevel]
