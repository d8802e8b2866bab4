# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import event, inspect
from sqlmodel import Field

from payflow.exceptions import InvalidStateError
from payflow.models.base import UUIDBase, now_utc
from payflow.models.enums import LedgerAction

_RESOLUTION_FIELDS = ("approved_by", "rejected_by")


class ApprovalLedgerEntry(UUIDBase, table=True):
    """Append-only record of one lifecycle event for one approvable entity.

    A row with ``approval_level >= 1`` and neither ``approved_by`` nor
    ``rejected_by`` set is pending; resolving it is the only update ever
    allowed. Rows are never deleted.
    """

    __tablename__ = "approval_ledger_entry"
    __table_args__ = (
        sa.Index("ix_ledger_entity", "entity_type", "entity_id", "approval_level"),
        sa.CheckConstraint(
            "approved_by IS NULL OR rejected_by IS NULL",
            name="ck_ledger_single_resolution",
        ),
    )

    entity_type: str = Field(max_length=50)
    entity_id: uuid.UUID
    approval_level: int
    action: str = Field(max_length=50)
    submitted_by: uuid.UUID | None = None
    approved_by: uuid.UUID | None = None
    rejected_by: uuid.UUID | None = None
    comment: str | None = None
    timestamp: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )

    @property
    def is_pending(self) -> bool:
        return self.action == LedgerAction.PENDING and self.approved_by is None and self.rejected_by is None


def _persisted_value(state: Any, name: str) -> Any:
    history = state.attrs[name].history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return None


@event.listens_for(ApprovalLedgerEntry, "before_update")
def _guard_ledger_update(_mapper: Any, _connection: Any, target: ApprovalLedgerEntry) -> None:
    """Only a pending entry may change, and only by being resolved once."""
    state = inspect(target)
    if _persisted_value(state, "action") != LedgerAction.PENDING:
        raise InvalidStateError("Resolved ledger entries are immutable", reason="ledger_immutable")
    for name in _RESOLUTION_FIELDS:
        if _persisted_value(state, name) is not None:
            raise InvalidStateError("Resolved ledger entries are immutable", reason="ledger_immutable")
    for name in ("entity_type", "entity_id", "approval_level", "submitted_by", "created_at"):
        if state.attrs[name].history.has_changes():
            raise InvalidStateError("Ledger entry identity fields are immutable", reason="ledger_immutable")


@event.listens_for(ApprovalLedgerEntry, "before_delete")
def _guard_ledger_delete(_mapper: Any, _connection: Any, _target: ApprovalLedgerEntry) -> None:
    raise InvalidStateError("Ledger entries cannot be deleted", reason="ledger_immutable")
