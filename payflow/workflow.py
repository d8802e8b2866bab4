"""State machines for every approvable entity kind.

The machines only answer "is this transition legal and where does it lead".
Side effects (ledger entries, level advancement) live in the services that
drive them; per-kind differences are carried by ``WorkflowKind`` rather than
by subclassing the models.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from payflow.authz.permissions import Permission
from payflow.exceptions import InvalidStateError
from payflow.models.enums import (
    EntityType,
    InstrumentStatus,
    PaymentRequestStatus,
    RequisitionStatus,
    VoucherStatus,
)
from payflow.models.payment import DisbursementInstrument, PaymentRequest, PaymentVoucher
from payflow.models.requisition import Requisition

if TYPE_CHECKING:
    from collections.abc import Iterable
    from decimal import Decimal

    from payflow.models.base import ApprovableMixin


class Action(enum.StrEnum):
    """Workflow verbs."""

    SUBMIT = "submit"
    ADVANCE = "advance"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    REOPEN = "reopen"
    COMPLETE = "complete"
    GENERATE_INSTRUMENT = "generate_instrument"
    VERIFY = "verify"
    ISSUE_INSTRUMENT = "issue_instrument"
    CLEAR = "clear"
    VOID = "void"


@dataclass(frozen=True)
class Transition:
    action: Action
    sources: frozenset[str]
    target: str


class StateMachine:
    """A finite state machine over string statuses."""

    def __init__(self, name: str, transitions: Iterable[Transition], terminal: Iterable[str] = ()) -> None:
        self.name = name
        self._table: dict[tuple[str, Action], str] = {}
        for transition in transitions:
            for source in transition.sources:
                key = (source, transition.action)
                if key in self._table:
                    msg = f"{name}: duplicate transition {transition.action} from {source}"
                    raise ValueError(msg)
                self._table[key] = transition.target
        self.terminal = frozenset(terminal)

    def can(self, status: str, action: Action) -> bool:
        return (status, action) in self._table

    def assert_can(self, status: str, action: Action) -> None:
        self.next_status(status, action)

    def next_status(self, status: str, action: Action) -> str:
        """Return the target status or raise InvalidStateError."""
        target = self._table.get((status, action))
        if target is None:
            raise InvalidStateError(
                f"Cannot {action.value.replace('_', ' ')} a {self.name} in {status} status",
                reason=f"illegal_{action.value}",
            )
        return target

    def allowed_actions(self, status: str) -> list[Action]:
        return [action for (source, action) in self._table if source == status]

    def is_terminal(self, status: str) -> bool:
        return status in self.terminal


def _t(action: Action, sources: Iterable[str], target: str) -> Transition:
    return Transition(action, frozenset(sources), target)


_R = RequisitionStatus
REQUISITION_MACHINE = StateMachine(
    "requisition",
    [
        _t(Action.SUBMIT, [_R.DRAFT], _R.PENDING_APPROVAL),
        _t(Action.ADVANCE, [_R.PENDING_APPROVAL], _R.PENDING_APPROVAL),
        _t(Action.APPROVE, [_R.PENDING_APPROVAL], _R.APPROVED),
        _t(Action.REJECT, [_R.PENDING_APPROVAL], _R.REJECTED),
        _t(Action.CANCEL, [_R.DRAFT, _R.PENDING_APPROVAL], _R.CANCELLED),
        _t(Action.REOPEN, [_R.REJECTED], _R.DRAFT),
        _t(Action.COMPLETE, [_R.APPROVED], _R.COMPLETED),
    ],
    terminal=[_R.CANCELLED, _R.COMPLETED],
)

_P = PaymentRequestStatus
PAYMENT_REQUEST_MACHINE = StateMachine(
    "payment request",
    [
        _t(Action.SUBMIT, [_P.DRAFT], _P.PENDING_APPROVAL),
        _t(Action.ADVANCE, [_P.PENDING_APPROVAL], _P.PENDING_APPROVAL),
        _t(Action.APPROVE, [_P.PENDING_APPROVAL], _P.APPROVED),
        _t(Action.REJECT, [_P.PENDING_APPROVAL], _P.REJECTED),
        _t(Action.CANCEL, [_P.DRAFT, _P.PENDING_APPROVAL], _P.CANCELLED),
        _t(Action.REOPEN, [_P.REJECTED], _P.DRAFT),
        _t(Action.GENERATE_INSTRUMENT, [_P.APPROVED], _P.INSTRUMENT_GENERATED),
        _t(Action.ISSUE_INSTRUMENT, [_P.INSTRUMENT_GENERATED], _P.INSTRUMENT_ISSUED),
        _t(Action.CLEAR, [_P.INSTRUMENT_ISSUED], _P.DISBURSED),
        _t(Action.VOID, [_P.INSTRUMENT_ISSUED], _P.REJECTED),
    ],
    terminal=[_P.CANCELLED, _P.DISBURSED],
)

_V = VoucherStatus
VOUCHER_MACHINE = StateMachine(
    "payment voucher",
    [
        _t(Action.VERIFY, [_V.DRAFT], _V.VERIFIED),
        _t(Action.APPROVE, [_V.VERIFIED], _V.APPROVED),
        _t(Action.REJECT, [_V.DRAFT, _V.VERIFIED], _V.REJECTED),
        _t(Action.ISSUE_INSTRUMENT, [_V.APPROVED], _V.INSTRUMENT_ISSUED),
    ],
    terminal=[_V.INSTRUMENT_ISSUED, _V.REJECTED],
)

_I = InstrumentStatus
INSTRUMENT_MACHINE = StateMachine(
    "disbursement instrument",
    [
        _t(Action.CLEAR, [_I.ISSUED], _I.CLEARED),
        _t(Action.VOID, [_I.ISSUED], _I.VOIDED),
    ],
    terminal=[_I.CLEARED, _I.VOIDED],
)


@dataclass(frozen=True)
class WorkflowKind:
    """Binds an entity model to its machine and the permissions that gate each verb."""

    entity_type: EntityType
    model: type[ApprovableMixin]
    machine: StateMachine
    sequence_prefix: str
    # Attribute compared against an approver's ceiling; None disables ceilings.
    amount_attr: str | None = None
    submit_permission: Permission | None = None
    approve_permission: Permission | None = None
    reject_permission: Permission | None = None
    # Lets a non-requester cancel; None means only the requester may.
    cancel_override_permission: Permission | None = None
    read_all_permission: Permission | None = None
    read_unit_permission: Permission | None = None
    read_own_permission: Permission | None = None

    @property
    def label(self) -> str:
        return self.machine.name


REQUISITION_KIND = WorkflowKind(
    entity_type=EntityType.REQUISITION,
    model=Requisition,
    machine=REQUISITION_MACHINE,
    sequence_prefix="REQ",
    amount_attr="total_amount",
    submit_permission=Permission.REQUISITIONS_SUBMIT_OWN,
    approve_permission=Permission.REQUISITIONS_APPROVE_UNIT,
    reject_permission=Permission.REQUISITIONS_REJECT_UNIT,
    cancel_override_permission=Permission.REQUISITIONS_CANCEL_ALL,
    read_all_permission=Permission.REQUISITIONS_READ_ALL,
    read_unit_permission=Permission.REQUISITIONS_READ_UNIT,
    read_own_permission=Permission.REQUISITIONS_READ_OWN,
)

PAYMENT_REQUEST_KIND = WorkflowKind(
    entity_type=EntityType.PAYMENT_REQUEST,
    model=PaymentRequest,
    machine=PAYMENT_REQUEST_MACHINE,
    sequence_prefix="RFP",
    amount_attr="amount",
    submit_permission=Permission.PAYMENTS_SUBMIT_OWN,
    approve_permission=Permission.PAYMENTS_APPROVE_UNIT,
    reject_permission=Permission.PAYMENTS_REJECT_UNIT,
    cancel_override_permission=Permission.PAYMENTS_CANCEL_ALL,
    read_all_permission=Permission.PAYMENTS_READ_ALL,
    read_unit_permission=Permission.PAYMENTS_READ_UNIT,
    read_own_permission=Permission.PAYMENTS_READ_OWN,
)

VOUCHER_KIND = WorkflowKind(
    entity_type=EntityType.PAYMENT_VOUCHER,
    model=PaymentVoucher,
    machine=VOUCHER_MACHINE,
    sequence_prefix="CV",
    amount_attr="amount",
    approve_permission=Permission.VOUCHERS_APPROVE_ALL,
    reject_permission=Permission.VOUCHERS_REJECT_ALL,
    read_all_permission=Permission.VOUCHERS_READ_ALL,
)

INSTRUMENT_KIND = WorkflowKind(
    entity_type=EntityType.DISBURSEMENT_INSTRUMENT,
    model=DisbursementInstrument,
    machine=INSTRUMENT_MACHINE,
    sequence_prefix="CHK",
    read_all_permission=Permission.INSTRUMENTS_READ_ALL,
)

KINDS: dict[EntityType, WorkflowKind] = {
    kind.entity_type: kind for kind in (REQUISITION_KIND, PAYMENT_REQUEST_KIND, VOUCHER_KIND, INSTRUMENT_KIND)
}


def new_sequence_number(kind: WorkflowKind) -> str:
    """Return a fresh human-readable identifier such as ``REQ-20250106-3F9A12BC``."""
    return f"{kind.sequence_prefix}-{datetime.now(UTC):%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def entity_amount(kind: WorkflowKind, entity: ApprovableMixin) -> Decimal | None:
    """Return the amount an approver ceiling is checked against, if the kind has one."""
    if kind.amount_attr is None:
        return None
    return getattr(entity, kind.amount_attr)
