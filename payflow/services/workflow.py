# ruff: noqa: TC003
"""Generic approval engine shared by every routed entity kind.

Each verb runs as one unit of work: lock the entity, check state and
authority, apply a version-guarded status update, then write the ledger.
The guarded update comes before any ledger write so that a writer holding a
stale version fails without leaving entries behind.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import select
from sqlmodel import col

from payflow.authz.permissions import Permission
from payflow.db import atomic
from payflow.exceptions import ForbiddenError, InvalidStateError, NotFoundError, UnauthorizedError
from payflow.models.base import now_utc
from payflow.models.enums import CANCELLATION_LEVEL, SUBMISSION_LEVEL, LedgerAction
from payflow.schemas.ledger import LedgerOrder, LedgerResponse
from payflow.services import ledger as ledger_service
from payflow.services import routing
from payflow.services.access import has_permission, require_permission
from payflow.workflow import Action, entity_amount

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from payflow.models.base import ApprovableMixin
    from payflow.schemas.auth import AuthContext
    from payflow.workflow import WorkflowKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Loading and guarded updates
# ---------------------------------------------------------------------------


async def get_entity(session: AsyncSession, kind: WorkflowKind, entity_id: uuid.UUID) -> Any:
    """Fetch an entity by ID with fresh column values. Raises NotFoundError if absent."""
    model: Any = kind.model
    result = await session.execute(
        select(model).where(col(model.id) == entity_id).execution_options(populate_existing=True)
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise NotFoundError(f"{kind.label.capitalize()} not found", reason="entity_not_found")
    return entity


async def get_entity_for_update(session: AsyncSession, kind: WorkflowKind, entity_id: uuid.UUID) -> Any:
    """Fetch and row-lock an entity (where the backend supports locking)."""
    model: Any = kind.model
    result = await session.execute(
        select(model)
        .where(col(model.id) == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise NotFoundError(f"{kind.label.capitalize()} not found", reason="entity_not_found")
    return entity


async def apply_transition(
    session: AsyncSession,
    kind: WorkflowKind,
    entity: ApprovableMixin,
    action: Action,
    **values: Any,
) -> str:
    """Move ``entity`` along ``action`` if nobody changed it since it was read.

    Issues ``UPDATE ... WHERE id = :id AND version = :seen`` and bumps the
    version. Zero matched rows means another transaction won the race.
    """
    target = kind.machine.next_status(entity.status, action)
    model: Any = kind.model
    seen = entity.version
    entity_id = entity.id  # ty: ignore[unresolved-attribute]

    result = await session.execute(
        sa.update(model)
        .where(col(model.id) == entity_id, col(model.version) == seen)
        .values(status=target, version=seen + 1, **values)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:  # ty: ignore[unresolved-attribute]
        logger.warning(
            "Lost update on %s %s: version %d is stale (action %s)", kind.label, entity_id, seen, action.value
        )
        raise InvalidStateError(
            f"{kind.label.capitalize()} was modified by another request",
            reason="concurrent_modification",
        )
    return target


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


def can_read(auth: AuthContext, kind: WorkflowKind, entity: ApprovableMixin) -> bool:
    """True when the actor may see ``entity`` under its all, unit or own read scope."""
    if kind.read_all_permission is not None and has_permission(auth, kind.read_all_permission):
        return True
    if (
        kind.read_unit_permission is not None
        and auth.unit_id is not None
        and entity.unit_id == auth.unit_id
        and has_permission(auth, kind.read_unit_permission)
    ):
        return True
    return (
        kind.read_own_permission is not None
        and entity.requester_id == auth.user_id
        and has_permission(auth, kind.read_own_permission)
    )


def ensure_can_read(auth: AuthContext, kind: WorkflowKind, entity: ApprovableMixin) -> None:
    if not can_read(auth, kind, entity):
        logger.warning("User %s with role %s denied read of %s", auth.user_id, auth.role, kind.label)
        raise UnauthorizedError(f"Not allowed to view this {kind.label}", reason="not_visible")


def visibility_clause(auth: AuthContext, kind: WorkflowKind) -> ColumnElement[bool] | None:
    """SQL filter restricting a listing to what the actor may see; None means everything."""
    model: Any = kind.model
    if kind.read_all_permission is not None and has_permission(auth, kind.read_all_permission):
        return None
    if kind.read_unit_permission is not None and auth.unit_id is not None and has_permission(
        auth, kind.read_unit_permission
    ):
        return col(model.unit_id) == auth.unit_id
    if kind.read_own_permission is not None and has_permission(auth, kind.read_own_permission):
        return col(model.requester_id) == auth.user_id
    logger.warning("User %s with role %s denied listing of %s", auth.user_id, auth.role, kind.label)
    raise UnauthorizedError(f"Not allowed to list {kind.label}s", reason="missing_permission")


# ---------------------------------------------------------------------------
# Authorization at the current level
# ---------------------------------------------------------------------------


async def _authorize_decision(
    session: AsyncSession,
    kind: WorkflowKind,
    entity: ApprovableMixin,
    auth: AuthContext,
) -> None:
    """Raise unless the actor holds routing authority at the entity's current level."""
    unit = await routing.get_unit_or_404(session, entity.unit_id)
    level = entity.current_approval_level
    authority = await routing.resolve_actor_authority(
        session, unit, level, auth.user_id, entity_amount(kind, entity)
    )
    if authority is not None:
        return

    levels = await routing.actor_approval_levels(session, unit, auth.user_id)
    if levels and max(levels) < level:
        raise InvalidStateError(
            f"{kind.label.capitalize()} has already advanced past level {max(levels)}",
            reason="level_already_advanced",
        )
    logger.warning(
        "User %s is not an approver for %s %s at level %d", auth.user_id, kind.label, entity.sequence_number, level
    )
    raise UnauthorizedError(f"Not an approver at level {level} for this unit", reason="not_an_approver")


async def _ensure_not_signed(
    session: AsyncSession,
    kind: WorkflowKind,
    entity: ApprovableMixin,
    auth: AuthContext,
) -> None:
    """One signature per actor per submission, whatever levels the actor is bound to."""
    signed = await ledger_service.levels_approved_by(
        session, kind.entity_type, entity.id, auth.user_id, entity.submitted_at  # ty: ignore[unresolved-attribute]
    )
    if signed:
        logger.warning(
            "User %s already approved %s %s at level %d", auth.user_id, kind.label, entity.sequence_number, signed[-1]
        )
        raise InvalidStateError(
            f"{kind.label.capitalize()} was already approved by this user at level {signed[-1]}",
            reason="level_already_advanced",
        )


def _ensure_pending(kind: WorkflowKind, entity: ApprovableMixin, action: Action, expected_level: int | None) -> None:
    if not kind.machine.can(entity.status, action):
        raise InvalidStateError(
            f"{kind.label.capitalize()} is not pending approval (status {entity.status})",
            reason="not_pending",
        )
    if expected_level is not None and entity.current_approval_level != expected_level:
        raise InvalidStateError(
            f"{kind.label.capitalize()} is at level {entity.current_approval_level}, not {expected_level}",
            reason="level_already_advanced"
            if entity.current_approval_level > expected_level
            else "level_mismatch",
        )


# ---------------------------------------------------------------------------
# Verbs
# ---------------------------------------------------------------------------


async def submit(session: AsyncSession, kind: WorkflowKind, entity_id: uuid.UUID, auth: AuthContext) -> Any:
    """Send a draft into its approval chain.

    1. Lock the entity; it must be a draft submitted by its requester.
    2. Capture the unit's level count.
    3. Move to pending at level 1.
    4. Write the level-0 submission entry and one pending entry per level.
    """
    async with atomic(session):
        entity = await get_entity_for_update(session, kind, entity_id)
        if not kind.machine.can(entity.status, Action.SUBMIT):
            raise InvalidStateError(
                f"Only draft {kind.label}s can be submitted (status {entity.status})", reason="not_draft"
            )
        if entity.requester_id != auth.user_id:
            raise ForbiddenError(f"Only the requester can submit this {kind.label}", reason="not_requester")
        require_permission(auth, kind.submit_permission)

        required = await routing.max_level(session, entity.unit_id)
        await apply_transition(
            session,
            kind,
            entity,
            Action.SUBMIT,
            current_approval_level=1,
            required_levels=required,
            submitted_at=now_utc(),
            decided_at=None,
        )

        ledger_service.append_entry(
            session,
            kind.entity_type,
            entity.id,
            SUBMISSION_LEVEL,
            LedgerAction.SUBMITTED,
            submitted_by=auth.user_id,
            comment="Submitted for approval",
        )
        for level in range(1, required + 1):
            await ledger_service.ensure_pending_entry(session, kind.entity_type, entity.id, level, auth.user_id)

    logger.info("%s %s submitted by %s; %d level(s)", kind.label, entity.sequence_number, auth.user_id, required)
    return entity


async def approve(
    session: AsyncSession,
    kind: WorkflowKind,
    entity_id: uuid.UUID,
    auth: AuthContext,
    comment: str | None = None,
    expected_level: int | None = None,
) -> Any:
    """Approve the entity at its current level.

    Advances one level, or finishes the chain when the current level is the
    last one captured at submission.
    """
    async with atomic(session):
        entity = await get_entity_for_update(session, kind, entity_id)
        _ensure_pending(kind, entity, Action.APPROVE, expected_level)
        require_permission(auth, kind.approve_permission)
        await _ensure_not_signed(session, kind, entity, auth)
        await _authorize_decision(session, kind, entity, auth)

        level = entity.current_approval_level
        await ledger_service.assert_no_drift(session, kind.entity_type, entity.id, level)
        required = entity.required_levels or await routing.max_level(session, entity.unit_id)
        is_final = level >= required

        if is_final:
            await apply_transition(session, kind, entity, Action.APPROVE, decided_at=now_utc())
        else:
            await apply_transition(session, kind, entity, Action.ADVANCE, current_approval_level=level + 1)

        pending = await ledger_service.find_pending_entry(session, kind.entity_type, entity.id, level)
        if pending is not None:
            ledger_service.resolve_entry(pending, approved_by=auth.user_id, comment=comment)
        else:
            logger.warning("No pending entry at level %d for %s %s", level, kind.label, entity.sequence_number)
            ledger_service.append_entry(
                session,
                kind.entity_type,
                entity.id,
                level,
                LedgerAction.APPROVED,
                approved_by=auth.user_id,
                comment=comment or f"Approved at level {level}",
            )
        if not is_final:
            await ledger_service.ensure_pending_entry(
                session, kind.entity_type, entity.id, level + 1, entity.requester_id
            )

    logger.info(
        "%s %s approved at level %d/%d by %s", kind.label, entity.sequence_number, level, required, auth.user_id
    )
    return entity


async def reject(
    session: AsyncSession,
    kind: WorkflowKind,
    entity_id: uuid.UUID,
    auth: AuthContext,
    reason: str | None = None,
) -> Any:
    """Reject the entity at its current level. The level does not change."""
    async with atomic(session):
        entity = await get_entity_for_update(session, kind, entity_id)
        _ensure_pending(kind, entity, Action.REJECT, None)
        require_permission(auth, kind.reject_permission)
        await _authorize_decision(session, kind, entity, auth)

        level = entity.current_approval_level
        await ledger_service.assert_no_drift(session, kind.entity_type, entity.id, level)
        await apply_transition(session, kind, entity, Action.REJECT, decided_at=now_utc())

        pending = await ledger_service.find_pending_entry(session, kind.entity_type, entity.id, level)
        if pending is not None:
            ledger_service.resolve_entry(pending, rejected_by=auth.user_id, comment=reason)
        else:
            ledger_service.append_entry(
                session,
                kind.entity_type,
                entity.id,
                level,
                LedgerAction.REJECTED,
                rejected_by=auth.user_id,
                comment=reason or f"Rejected at level {level}",
            )

    logger.info("%s %s rejected at level %d by %s", kind.label, entity.sequence_number, level, auth.user_id)
    return entity


async def cancel(
    session: AsyncSession,
    kind: WorkflowKind,
    entity_id: uuid.UUID,
    auth: AuthContext,
    reason: str | None = None,
) -> Any:
    """Withdraw a draft or pending entity. Requester only, unless the role holds the override."""
    async with atomic(session):
        entity = await get_entity_for_update(session, kind, entity_id)
        if not kind.machine.can(entity.status, Action.CANCEL):
            raise InvalidStateError(
                f"{kind.label.capitalize()} cannot be cancelled in {entity.status} status", reason="not_cancellable"
            )
        if entity.requester_id != auth.user_id:
            override = kind.cancel_override_permission
            if override is None or not has_permission(auth, override):
                logger.warning("User %s may not cancel %s %s", auth.user_id, kind.label, entity.sequence_number)
                raise ForbiddenError(f"Only the requester can cancel this {kind.label}", reason="not_requester")

        await apply_transition(session, kind, entity, Action.CANCEL, decided_at=now_utc())
        ledger_service.append_entry(
            session,
            kind.entity_type,
            entity.id,
            CANCELLATION_LEVEL,
            LedgerAction.CANCELLED,
            submitted_by=auth.user_id,
            comment=reason or f"{kind.label.capitalize()} cancelled",
        )

    logger.info("%s %s cancelled by %s", kind.label, entity.sequence_number, auth.user_id)
    return entity


async def reopen(session: AsyncSession, kind: WorkflowKind, entity_id: uuid.UUID, auth: AuthContext) -> Any:
    """Return a rejected entity to draft so the requester can amend and resubmit it."""
    async with atomic(session):
        entity = await get_entity_for_update(session, kind, entity_id)
        if not kind.machine.can(entity.status, Action.REOPEN):
            raise InvalidStateError(
                f"Only rejected {kind.label}s can be reopened (status {entity.status})", reason="not_rejected"
            )
        if entity.requester_id != auth.user_id:
            raise ForbiddenError(f"Only the requester can reopen this {kind.label}", reason="not_requester")
        require_permission(auth, kind.submit_permission)

        await apply_transition(
            session,
            kind,
            entity,
            Action.REOPEN,
            current_approval_level=0,
            required_levels=None,
            decided_at=None,
        )
        ledger_service.append_entry(
            session,
            kind.entity_type,
            entity.id,
            SUBMISSION_LEVEL,
            LedgerAction.REOPENED,
            submitted_by=auth.user_id,
            comment="Returned to draft for resubmission",
        )

    logger.info("%s %s reopened by %s", kind.label, entity.sequence_number, auth.user_id)
    return entity


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def get_entity_ledger(
    session: AsyncSession,
    kind: WorkflowKind,
    entity_id: uuid.UUID,
    auth: AuthContext,
    order: LedgerOrder = LedgerOrder.LEVEL,
) -> LedgerResponse:
    """Return the entity's approval history."""
    entity = await get_entity(session, kind, entity_id)
    if not has_permission(auth, Permission.APPROVALS_READ_ALL) and not (
        entity.requester_id == auth.user_id and has_permission(auth, Permission.APPROVALS_READ_OWN)
    ):
        logger.warning("User %s denied approval history of %s %s", auth.user_id, kind.label, entity_id)
        raise UnauthorizedError("Not allowed to view this approval history", reason="missing_permission")

    entries = await ledger_service.list_entries(session, kind.entity_type, entity.id, order)
    return LedgerResponse(
        entity_type=kind.entity_type.value,
        entity_id=entity.id,
        order=order,
        entries=[ledger_service.build_entry_response(e) for e in entries],
    )
