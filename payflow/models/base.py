from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _uuid_factory() -> uuid.UUID:
    """Generate a new UUID v4."""
    return uuid.uuid4()


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


class UUIDBase(SQLModel):
    """Base model with UUID primary key."""

    id: uuid.UUID = Field(
        default_factory=_uuid_factory,
        primary_key=True,
        sa_type=sa.Uuid,
    )


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class ApprovableMixin(SQLModel):
    """Fields shared by every entity that moves through an approval workflow.

    ``version`` is bumped by every workflow transition and guards concurrent
    writers: an update only applies when the row still carries the version the
    writer read.
    """

    sequence_number: str = Field(max_length=50, unique=True)
    status: str = Field(max_length=50, index=True)
    current_approval_level: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    required_levels: int | None = None
    unit_id: uuid.UUID = Field(foreign_key="organizational_unit.id", index=True, sa_type=sa.Uuid)
    requester_id: uuid.UUID = Field(index=True, sa_type=sa.Uuid)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    submitted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
