# ruff: noqa: TC003
"""Registry of the bank accounts checks are drawn on."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from payflow.authz.permissions import Permission
from payflow.db import atomic
from payflow.exceptions import AlreadyExistsError, InvalidStateError, NotFoundError
from payflow.models.payment import BankAccount, DisbursementInstrument
from payflow.schemas.bank_account import BankAccountListResponse, BankAccountResponse
from payflow.services.access import require_permission

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from payflow.schemas.auth import AuthContext
    from payflow.schemas.bank_account import BankAccountCreate, BankAccountUpdate

logger = logging.getLogger(__name__)


def _build_bank_account_response(account: BankAccount) -> BankAccountResponse:
    return BankAccountResponse(
        id=account.id,
        account_name=account.account_name,
        account_number=account.account_number,
        bank_name=account.bank_name,
        is_active=account.is_active,
        created_at=account.created_at,
    )


async def _get_or_404(session: AsyncSession, account_id: uuid.UUID) -> BankAccount:
    account = await session.get(BankAccount, account_id)
    if account is None:
        raise NotFoundError("Bank account not found", reason="bank_account_not_found")
    return account


async def get_active_or_404(session: AsyncSession, account_id: uuid.UUID) -> BankAccount:
    """Return an account checks may be drawn on; inactive accounts count as missing."""
    account = await _get_or_404(session, account_id)
    if not account.is_active:
        raise NotFoundError("Bank account is not active", reason="bank_account_not_found")
    return account


async def _flush_unique(session: AsyncSession, account_number: str) -> None:
    try:
        await session.flush()
    except IntegrityError:
        msg = f"Bank account number {account_number!r} is already registered"
        raise AlreadyExistsError(msg, reason="duplicate_account_number") from None


async def create_bank_account(
    session: AsyncSession, auth: AuthContext, payload: BankAccountCreate
) -> BankAccountResponse:
    require_permission(auth, Permission.BANK_ACCOUNTS_MANAGE_ALL)

    async with atomic(session):
        account = BankAccount(
            account_name=payload.account_name,
            account_number=payload.account_number,
            bank_name=payload.bank_name,
            is_active=payload.is_active,
        )
        session.add(account)
        await _flush_unique(session, payload.account_number)

    logger.info("Registered bank account %s at %s (%s)", account.account_number, account.bank_name, account.id)
    return _build_bank_account_response(account)


async def get_bank_account(session: AsyncSession, auth: AuthContext, account_id: uuid.UUID) -> BankAccountResponse:
    require_permission(auth, Permission.BANK_ACCOUNTS_READ_ALL)
    return _build_bank_account_response(await _get_or_404(session, account_id))


async def list_bank_accounts(
    session: AsyncSession,
    auth: AuthContext,
    active_only: bool = False,
    offset: int = 0,
    limit: int = 50,
) -> BankAccountListResponse:
    """List accounts, newest first. ``active_only`` leaves the ones checks can be drawn on."""
    require_permission(auth, Permission.BANK_ACCOUNTS_READ_ALL)

    base = select(BankAccount)
    if active_only:
        base = base.where(col(BankAccount.is_active).is_(True))

    count_result = await session.execute(select(func.count()).select_from(base.subquery()))
    total = count_result.scalar_one()

    result = await session.execute(
        base.order_by(col(BankAccount.created_at).desc(), col(BankAccount.id)).offset(offset).limit(limit)
    )
    return BankAccountListResponse(
        items=[_build_bank_account_response(a) for a in result.scalars().all()], total=total
    )


async def update_bank_account(
    session: AsyncSession, auth: AuthContext, account_id: uuid.UUID, payload: BankAccountUpdate
) -> BankAccountResponse:
    """Rename, renumber, activate or deactivate an account. Checks already issued keep pointing at it."""
    require_permission(auth, Permission.BANK_ACCOUNTS_MANAGE_ALL)

    async with atomic(session):
        account = await _get_or_404(session, account_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(account, field, value)
        await _flush_unique(session, account.account_number)

    logger.info("Updated bank account %s (active=%s)", account.id, account.is_active)
    return _build_bank_account_response(account)


async def delete_bank_account(session: AsyncSession, auth: AuthContext, account_id: uuid.UUID) -> None:
    """Remove an account no check was ever drawn on; deactivate the others instead."""
    require_permission(auth, Permission.BANK_ACCOUNTS_MANAGE_ALL)

    async with atomic(session):
        account = await _get_or_404(session, account_id)
        result = await session.execute(
            select(col(DisbursementInstrument.id))
            .where(col(DisbursementInstrument.bank_account_id) == account.id)
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise InvalidStateError(
                "Checks were drawn on this bank account; deactivate it instead", reason="bank_account_in_use"
            )
        await session.delete(account)

    logger.info("Deleted bank account %s", account_id)
