# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class ApprovePayload(BaseModel):
    """Request body for approving the current level."""

    comment: str | None = Field(default=None, max_length=1000)
    # When set, the approval only applies if the entity is still at this level.
    expected_level: int | None = Field(default=None, ge=1)


class RejectPayload(BaseModel):
    """Request body for rejecting at the current level."""

    reason: str | None = Field(default=None, max_length=1000)


class CancelPayload(BaseModel):
    """Request body for cancelling a draft or pending entity."""

    reason: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovableResponse(BaseModel):
    """Fields shared by every approvable entity response."""

    id: uuid.UUID
    sequence_number: str
    status: str
    current_approval_level: int
    required_levels: int | None
    unit_id: uuid.UUID
    requester_id: uuid.UUID
    version: int
    submitted_at: datetime | None
    decided_at: datetime | None
    created_at: datetime
