# ruff: noqa: TC003
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from pydantic import BaseModel


class LedgerOrder(enum.StrEnum):
    """Ordering of a ledger history."""

    LEVEL = "level"
    CHRONOLOGICAL = "chronological"


class LedgerEntryResponse(BaseModel):
    """Response schema for a single approval ledger entry."""

    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    approval_level: int
    action: str
    submitted_by: uuid.UUID | None
    approved_by: uuid.UUID | None
    rejected_by: uuid.UUID | None
    comment: str | None
    timestamp: datetime
    is_pending: bool


class LedgerResponse(BaseModel):
    """Full approval history of one entity."""

    entity_type: str
    entity_id: uuid.UUID
    order: LedgerOrder
    entries: list[LedgerEntryResponse]
