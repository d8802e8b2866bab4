# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from payflow.models.base import ApprovableMixin, TimestampMixin, UUIDBase
from payflow.models.enums import RequisitionStatus


class Requisition(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """A purchase or service requisition routed through the unit's approval chain."""

    __tablename__ = "requisition"
    __table_args__ = (sa.Index("ix_requisition_unit_status", "unit_id", "status"),)

    status: str = Field(
        default=RequisitionStatus.DRAFT, max_length=50, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    purpose: str
    date_needed: date | None = None
    currency: str = Field(default="PHP", max_length=3)
    total_amount: Decimal = Field(default=Decimal("0"), sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]


class RequisitionItem(UUIDBase, table=True):
    """One line of a requisition."""

    __tablename__ = "requisition_item"

    requisition_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("requisition.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    line_no: int
    quantity: Decimal = Field(sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
    unit: str = Field(max_length=50)
    particulars: str
    specification: str | None = None
    unit_cost: Decimal = Field(sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
    subtotal: Decimal = Field(sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
