from __future__ import annotations

import enum


class EntityType(enum.StrEnum):
    """Kinds of approvable entity; also the ledger's stream discriminator."""

    REQUISITION = "REQUISITION"
    PAYMENT_REQUEST = "PAYMENT_REQUEST"
    PAYMENT_VOUCHER = "PAYMENT_VOUCHER"
    DISBURSEMENT_INSTRUMENT = "DISBURSEMENT_INSTRUMENT"


class RequisitionStatus(enum.StrEnum):
    """State machine for purchase/service requisitions."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentRequestStatus(enum.StrEnum):
    """State machine for payment requests."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    INSTRUMENT_GENERATED = "INSTRUMENT_GENERATED"
    INSTRUMENT_ISSUED = "INSTRUMENT_ISSUED"
    DISBURSED = "DISBURSED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class VoucherStatus(enum.StrEnum):
    """State machine for payment vouchers (two-step internal approval)."""

    DRAFT = "DRAFT"
    VERIFIED = "VERIFIED"
    APPROVED = "APPROVED"
    INSTRUMENT_ISSUED = "INSTRUMENT_ISSUED"
    REJECTED = "REJECTED"


class InstrumentStatus(enum.StrEnum):
    """State machine for disbursement instruments (checks)."""

    ISSUED = "ISSUED"
    CLEARED = "CLEARED"
    VOIDED = "VOIDED"


class LedgerAction(enum.StrEnum):
    """Kind of event recorded by an approval ledger entry."""

    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    REOPENED = "REOPENED"
    GENERATED = "GENERATED"
    VERIFIED = "VERIFIED"
    ISSUED = "ISSUED"
    CLEARED = "CLEARED"
    VOIDED = "VOIDED"
    DISBURSED = "DISBURSED"


SUBMISSION_LEVEL = 0
CANCELLATION_LEVEL = -1
