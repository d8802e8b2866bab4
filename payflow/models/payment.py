# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from payflow.models.base import ApprovableMixin, TimestampMixin, UUIDBase
from payflow.models.enums import InstrumentStatus, PaymentRequestStatus, VoucherStatus


class PaymentRequest(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """A request for payment; optionally derived from an approved requisition."""

    __tablename__ = "payment_request"
    __table_args__ = (sa.Index("ix_payment_request_unit_status", "unit_id", "status"),)

    status: str = Field(
        default=PaymentRequestStatus.DRAFT, max_length=50, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    payee: str = Field(max_length=255)
    particulars: str
    amount: Decimal = Field(sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
    currency: str = Field(default="PHP", max_length=3)
    date_needed: date | None = None
    requisition_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("requisition.id", ondelete="RESTRICT"), nullable=True, unique=True
        ),
    )


class PaymentVoucher(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """Voucher generated from an approved payment request; verified then approved internally."""

    __tablename__ = "payment_voucher"

    status: str = Field(
        default=VoucherStatus.DRAFT, max_length=50, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    payment_request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("payment_request.id", ondelete="RESTRICT"), nullable=False, unique=True
        ),
    )
    payee: str = Field(max_length=255)
    particulars: str
    amount: Decimal = Field(sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
    verified_by: uuid.UUID | None = None
    approved_by: uuid.UUID | None = None


class BankAccount(UUIDBase, TimestampMixin, table=True):
    """A disbursing bank account that checks are drawn on."""

    __tablename__ = "bank_account"

    account_name: str = Field(max_length=255)
    account_number: str = Field(max_length=100, unique=True)
    bank_name: str = Field(max_length=255)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})


class DisbursementInstrument(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """A check issued against an approved voucher."""

    __tablename__ = "disbursement_instrument"

    status: str = Field(
        default=InstrumentStatus.ISSUED, max_length=50, index=True, sa_column_kwargs={"server_default": "ISSUED"}
    )
    voucher_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("payment_voucher.id", ondelete="RESTRICT"), nullable=False, unique=True
        ),
    )
    check_number: str = Field(max_length=50, unique=True)
    bank_account_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("bank_account.id", ondelete="RESTRICT"), nullable=False, index=True),
    )
    payee: str = Field(max_length=255)
    amount: Decimal = Field(sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
    issued_by: uuid.UUID
    cleared_by: uuid.UUID | None = None
    received_by: str | None = Field(default=None, max_length=255)
    cleared_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    voided_by: uuid.UUID | None = None
    void_reason: str | None = None
