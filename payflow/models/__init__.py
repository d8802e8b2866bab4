from sqlmodel import SQLModel

from payflow.models.base import ApprovableMixin, TimestampMixin, UUIDBase
from payflow.models.enums import (
    CANCELLATION_LEVEL,
    SUBMISSION_LEVEL,
    EntityType,
    InstrumentStatus,
    LedgerAction,
    PaymentRequestStatus,
    RequisitionStatus,
    VoucherStatus,
)
from payflow.models.ledger import ApprovalLedgerEntry
from payflow.models.organization import Approver, OrganizationalUnit
from payflow.models.payment import BankAccount, DisbursementInstrument, PaymentRequest, PaymentVoucher
from payflow.models.requisition import Requisition, RequisitionItem

__all__ = [
    "CANCELLATION_LEVEL",
    "SUBMISSION_LEVEL",
    "ApprovableMixin",
    "ApprovalLedgerEntry",
    "Approver",
    "BankAccount",
    "DisbursementInstrument",
    "EntityType",
    "InstrumentStatus",
    "LedgerAction",
    "OrganizationalUnit",
    "PaymentRequest",
    "PaymentRequestStatus",
    "PaymentVoucher",
    "Requisition",
    "RequisitionItem",
    "RequisitionStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "VoucherStatus",
]
