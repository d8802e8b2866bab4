# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, Response, status

from payflow.api.deps import AuthDep
from payflow.db import SessionDep
from payflow.schemas.bank_account import (
    BankAccountCreate,
    BankAccountListResponse,
    BankAccountResponse,
    BankAccountUpdate,
)
from payflow.services import bank_account as bank_account_service

bank_accounts_router = APIRouter(prefix="/bank-accounts", tags=["bank-accounts"])


@bank_accounts_router.post("", response_model=BankAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_bank_account(payload: BankAccountCreate, session: SessionDep, auth: AuthDep) -> BankAccountResponse:
    return await bank_account_service.create_bank_account(session, auth, payload)


@bank_accounts_router.get("", response_model=BankAccountListResponse)
async def list_bank_accounts(
    session: SessionDep,
    auth: AuthDep,
    active_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> BankAccountListResponse:
    return await bank_account_service.list_bank_accounts(session, auth, active_only, offset, limit)


@bank_accounts_router.get("/active", response_model=BankAccountListResponse)
async def list_active_bank_accounts(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> BankAccountListResponse:
    """Accounts a check can be drawn on."""
    return await bank_account_service.list_bank_accounts(session, auth, True, offset, limit)


@bank_accounts_router.get("/{account_id}", response_model=BankAccountResponse)
async def get_bank_account(account_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> BankAccountResponse:
    return await bank_account_service.get_bank_account(session, auth, account_id)


@bank_accounts_router.patch("/{account_id}", response_model=BankAccountResponse)
async def update_bank_account(
    account_id: uuid.UUID,
    payload: BankAccountUpdate,
    session: SessionDep,
    auth: AuthDep,
) -> BankAccountResponse:
    return await bank_account_service.update_bank_account(session, auth, account_id, payload)


@bank_accounts_router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bank_account(account_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> Response:
    await bank_account_service.delete_bank_account(session, auth, account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
