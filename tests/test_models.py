from __future__ import annotations

import uuid
from decimal import Decimal

from payflow.models import (
    ApprovalLedgerEntry,
    Approver,
    LedgerAction,
    OrganizationalUnit,
    PaymentRequest,
    PaymentRequestStatus,
    SQLModel,
)

EXPECTED_TABLES = {
    "approval_ledger_entry",
    "approver",
    "bank_account",
    "disbursement_instrument",
    "organizational_unit",
    "payment_request",
    "payment_voucher",
    "requisition",
    "requisition_item",
}


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_derivation_links_are_unique() -> None:
    tables = SQLModel.metadata.tables
    assert tables["payment_request"].c.requisition_id.unique
    assert tables["payment_voucher"].c.payment_request_id.unique
    assert tables["disbursement_instrument"].c.voucher_id.unique
    assert tables["disbursement_instrument"].c.check_number.unique
    assert tables["bank_account"].c.account_number.unique


def test_unit_instantiation() -> None:
    unit = OrganizationalUnit(code="FIN", name="Finance")
    assert unit.id is not None
    assert unit.parent_id is None
    assert unit.is_active is True


def test_approver_defaults() -> None:
    approver = Approver(user_id=uuid.uuid4(), approval_level=1)
    assert approver.unit_id is None
    assert approver.approval_ceiling is None
    assert approver.priority == 100


def test_payment_request_defaults() -> None:
    payment = PaymentRequest(
        sequence_number="RFP-1",
        unit_id=uuid.uuid4(),
        requester_id=uuid.uuid4(),
        payee="Acme",
        particulars="Toner",
        amount=Decimal("10.00"),
    )
    assert payment.status == PaymentRequestStatus.DRAFT
    assert payment.current_approval_level == 0
    assert payment.version == 1
    assert payment.required_levels is None


def test_ledger_entry_pending_flag() -> None:
    pending = ApprovalLedgerEntry(
        entity_type="REQUISITION",
        entity_id=uuid.uuid4(),
        approval_level=1,
        action=LedgerAction.PENDING,
    )
    assert pending.is_pending

    approved = ApprovalLedgerEntry(
        entity_type="REQUISITION",
        entity_id=uuid.uuid4(),
        approval_level=1,
        action=LedgerAction.APPROVED,
        approved_by=uuid.uuid4(),
    )
    assert not approved.is_pending
