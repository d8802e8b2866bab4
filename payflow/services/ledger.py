# ruff: noqa: TC003
"""Append-only approval ledger.

Every lifecycle event of an approvable entity is one row. The only mutation
ever applied to an existing row is resolving a pending entry; the model's
flush listeners reject anything else.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from payflow.exceptions import InvalidStateError
from payflow.models.base import now_utc
from payflow.models.enums import EntityType, LedgerAction
from payflow.models.ledger import ApprovalLedgerEntry
from payflow.schemas.ledger import LedgerEntryResponse, LedgerOrder

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def build_entry_response(entry: ApprovalLedgerEntry) -> LedgerEntryResponse:
    """Map a ledger entry to its response schema."""
    return LedgerEntryResponse(
        id=entry.id,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        approval_level=entry.approval_level,
        action=entry.action,
        submitted_by=entry.submitted_by,
        approved_by=entry.approved_by,
        rejected_by=entry.rejected_by,
        comment=entry.comment,
        timestamp=entry.timestamp,
        is_pending=entry.is_pending,
    )


def append_entry(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    level: int,
    action: LedgerAction,
    *,
    submitted_by: uuid.UUID | None = None,
    approved_by: uuid.UUID | None = None,
    rejected_by: uuid.UUID | None = None,
    comment: str | None = None,
) -> ApprovalLedgerEntry:
    """Add a new entry to the session. The caller's transaction persists it."""
    if approved_by is not None and rejected_by is not None:
        msg = "A ledger entry cannot be both approved and rejected"
        raise ValueError(msg)
    entry = ApprovalLedgerEntry(
        entity_type=entity_type.value,
        entity_id=entity_id,
        approval_level=level,
        action=action.value,
        submitted_by=submitted_by,
        approved_by=approved_by,
        rejected_by=rejected_by,
        comment=comment,
    )
    session.add(entry)
    return entry


def _pending_clause() -> tuple[ColumnElement[bool], ...]:
    return (
        col(ApprovalLedgerEntry.action) == LedgerAction.PENDING.value,
        col(ApprovalLedgerEntry.approved_by).is_(None),
        col(ApprovalLedgerEntry.rejected_by).is_(None),
    )


async def find_pending_entry(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    level: int,
) -> ApprovalLedgerEntry | None:
    """Return the pending entry at ``level``, locked for update, or None."""
    result = await session.execute(
        select(ApprovalLedgerEntry)
        .where(
            col(ApprovalLedgerEntry.entity_type) == entity_type.value,
            col(ApprovalLedgerEntry.entity_id) == entity_id,
            col(ApprovalLedgerEntry.approval_level) == level,
            *_pending_clause(),
        )
        .order_by(col(ApprovalLedgerEntry.created_at), col(ApprovalLedgerEntry.id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def ensure_pending_entry(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    level: int,
    submitted_by: uuid.UUID | None,
) -> ApprovalLedgerEntry:
    """Return the pending entry at ``level``, appending one only if none exists.

    Keeps at most one pending entry per level per entity.
    """
    existing = await find_pending_entry(session, entity_type, entity_id, level)
    if existing is not None:
        return existing
    entry = append_entry(
        session,
        entity_type,
        entity_id,
        level,
        LedgerAction.PENDING,
        submitted_by=submitted_by,
        comment=f"Awaiting approval at level {level}",
    )
    await session.flush()
    return entry


def resolve_entry(
    entry: ApprovalLedgerEntry,
    *,
    approved_by: uuid.UUID | None = None,
    rejected_by: uuid.UUID | None = None,
    comment: str | None = None,
) -> ApprovalLedgerEntry:
    """Resolve a pending entry exactly once, as approved or as rejected."""
    if (approved_by is None) == (rejected_by is None):
        msg = "Exactly one of approved_by and rejected_by must be given"
        raise ValueError(msg)
    if not entry.is_pending:
        raise InvalidStateError("Ledger entry is already resolved", reason="ledger_immutable")

    if approved_by is not None:
        entry.action = LedgerAction.APPROVED.value
        entry.approved_by = approved_by
        entry.comment = comment or f"Approved at level {entry.approval_level}"
    else:
        entry.action = LedgerAction.REJECTED.value
        entry.rejected_by = rejected_by
        entry.comment = comment or f"Rejected at level {entry.approval_level}"
    entry.timestamp = now_utc()
    return entry


async def levels_approved_by(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    actor_id: uuid.UUID,
    since: datetime | None,
) -> list[int]:
    """Levels ``actor_id`` approved at or after ``since``, ascending.

    Pass the entity's ``submitted_at`` to look at the current submission only;
    approvals from before a reopen do not count.
    """
    query = select(col(ApprovalLedgerEntry.approval_level)).where(
        col(ApprovalLedgerEntry.entity_type) == entity_type.value,
        col(ApprovalLedgerEntry.entity_id) == entity_id,
        col(ApprovalLedgerEntry.approval_level) >= 1,
        col(ApprovalLedgerEntry.approved_by) == actor_id,
    )
    if since is not None:
        query = query.where(col(ApprovalLedgerEntry.timestamp) >= since)
    result = await session.execute(query.order_by(col(ApprovalLedgerEntry.approval_level)))
    return list(result.scalars().all())


async def assert_no_drift(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    current_level: int,
) -> None:
    """Fail when a level below ``current_level`` is still pending.

    The entity's level is a projection of its ledger; a pending entry below it
    means the two disagree and nothing may be decided on top of that.
    """
    result = await session.execute(
        select(col(ApprovalLedgerEntry.approval_level)).where(
            col(ApprovalLedgerEntry.entity_type) == entity_type.value,
            col(ApprovalLedgerEntry.entity_id) == entity_id,
            col(ApprovalLedgerEntry.approval_level) >= 1,
            col(ApprovalLedgerEntry.approval_level) < current_level,
            *_pending_clause(),
        )
    )
    stale = sorted(result.scalars().all())
    if stale:
        logger.error(
            "Ledger drift for %s %s: level %d current but levels %s still pending",
            entity_type.value,
            entity_id,
            current_level,
            stale,
        )
        raise InvalidStateError(
            f"Approval history is inconsistent: level {stale[0]} is still pending",
            reason="ledger_drift",
        )


async def list_entries(
    session: AsyncSession,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    order: LedgerOrder = LedgerOrder.LEVEL,
) -> list[ApprovalLedgerEntry]:
    """Return the entity's full history, by level or by timestamp."""
    query = select(ApprovalLedgerEntry).where(
        col(ApprovalLedgerEntry.entity_type) == entity_type.value,
        col(ApprovalLedgerEntry.entity_id) == entity_id,
    )
    if order == LedgerOrder.LEVEL:
        query = query.order_by(
            col(ApprovalLedgerEntry.approval_level),
            col(ApprovalLedgerEntry.created_at),
            col(ApprovalLedgerEntry.id),
        )
    else:
        query = query.order_by(
            col(ApprovalLedgerEntry.timestamp),
            col(ApprovalLedgerEntry.created_at),
            col(ApprovalLedgerEntry.id),
        )
    result = await session.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def has_history(session: AsyncSession, entity_type: EntityType, entity_id: uuid.UUID) -> bool:
    """True when any ledger entry exists for the entity."""
    result = await session.execute(
        select(col(ApprovalLedgerEntry.id))
        .where(
            col(ApprovalLedgerEntry.entity_type) == entity_type.value,
            col(ApprovalLedgerEntry.entity_id) == entity_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None
