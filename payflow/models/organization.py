# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from payflow.models.base import TimestampMixin, UUIDBase


class OrganizationalUnit(UUIDBase, TimestampMixin, table=True):
    """A business unit or a department; departments point at their business unit."""

    __tablename__ = "organizational_unit"

    code: str = Field(max_length=50, unique=True)
    name: str = Field(max_length=255)
    parent_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("organizational_unit.id", ondelete="SET NULL"), nullable=True, index=True
        ),
    )
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})


class Approver(UUIDBase, TimestampMixin, table=True):
    """Grants a user authority to approve at one level for one unit (or globally when unit_id is NULL)."""

    __tablename__ = "approver"
    __table_args__ = (
        sa.Index("ix_approver_unit_level", "unit_id", "approval_level"),
        sa.CheckConstraint("approval_level >= 1", name="ck_approver_level_positive"),
    )

    user_id: uuid.UUID = Field(index=True)
    unit_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organizational_unit.id", ondelete="CASCADE"), nullable=True),
    )
    approval_level: int
    approval_ceiling: Decimal | None = Field(default=None, sa_type=sa.Numeric(14, 2))  # ty: ignore[invalid-argument-type]
    # Lower values win when several approvers match the same unit and level.
    priority: int = Field(default=100, sa_column_kwargs={"server_default": "100"})
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
