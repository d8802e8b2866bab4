# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class BankAccountCreate(BaseModel):
    """Request body for registering a disbursing bank account."""

    account_name: str = Field(min_length=1, max_length=255)
    account_number: str = Field(min_length=1, max_length=100)
    bank_name: str = Field(min_length=1, max_length=255)
    is_active: bool = True


class BankAccountUpdate(BaseModel):
    """Partial update; omitted fields are left as they are."""

    account_name: str | None = Field(default=None, min_length=1, max_length=255)
    account_number: str | None = Field(default=None, min_length=1, max_length=100)
    bank_name: str | None = Field(default=None, min_length=1, max_length=255)
    is_active: bool | None = None


class BankAccountResponse(BaseModel):
    id: uuid.UUID
    account_name: str
    account_number: str
    bank_name: str
    is_active: bool
    created_at: datetime


class BankAccountListResponse(BaseModel):
    items: list[BankAccountResponse]
    total: int
