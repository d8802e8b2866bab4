"""Permission catalog.

Tokens follow ``resource:action:scope`` where scope is ``own``, ``unit`` or
``all``. Categories exist for presentation only.
"""

from __future__ import annotations

import enum


class Permission(enum.StrEnum):
    """Closed set of capability tokens."""

    # Requisitions
    REQUISITIONS_CREATE_OWN = "requisitions:create:own"
    REQUISITIONS_READ_OWN = "requisitions:read:own"
    REQUISITIONS_READ_UNIT = "requisitions:read:unit"
    REQUISITIONS_READ_ALL = "requisitions:read:all"
    REQUISITIONS_UPDATE_OWN = "requisitions:update:own"
    REQUISITIONS_UPDATE_ALL = "requisitions:update:all"
    REQUISITIONS_DELETE_OWN = "requisitions:delete:own"
    REQUISITIONS_SUBMIT_OWN = "requisitions:submit:own"
    REQUISITIONS_APPROVE_UNIT = "requisitions:approve:unit"
    REQUISITIONS_REJECT_UNIT = "requisitions:reject:unit"
    REQUISITIONS_CANCEL_ALL = "requisitions:cancel:all"

    # Payment requests
    PAYMENTS_CREATE_OWN = "payments:create:own"
    PAYMENTS_READ_OWN = "payments:read:own"
    PAYMENTS_READ_UNIT = "payments:read:unit"
    PAYMENTS_READ_ALL = "payments:read:all"
    PAYMENTS_UPDATE_OWN = "payments:update:own"
    PAYMENTS_UPDATE_ALL = "payments:update:all"
    PAYMENTS_DELETE_OWN = "payments:delete:own"
    PAYMENTS_SUBMIT_OWN = "payments:submit:own"
    PAYMENTS_APPROVE_UNIT = "payments:approve:unit"
    PAYMENTS_REJECT_UNIT = "payments:reject:unit"
    PAYMENTS_CANCEL_ALL = "payments:cancel:all"

    # Payment vouchers
    VOUCHERS_CREATE_ALL = "vouchers:create:all"
    VOUCHERS_READ_ALL = "vouchers:read:all"
    VOUCHERS_VERIFY_ALL = "vouchers:verify:all"
    VOUCHERS_APPROVE_ALL = "vouchers:approve:all"
    VOUCHERS_REJECT_ALL = "vouchers:reject:all"

    # Disbursement instruments
    INSTRUMENTS_READ_ALL = "instruments:read:all"
    INSTRUMENTS_ISSUE_ALL = "instruments:issue:all"
    INSTRUMENTS_DISBURSE_ALL = "instruments:disburse:all"
    INSTRUMENTS_VOID_ALL = "instruments:void:all"

    # Bank accounts
    BANK_ACCOUNTS_READ_ALL = "bank_accounts:read:all"
    BANK_ACCOUNTS_MANAGE_ALL = "bank_accounts:manage:all"

    # Approval ledger
    APPROVALS_READ_OWN = "approvals:read:own"
    APPROVALS_READ_ALL = "approvals:read:all"

    # Routing configuration
    UNITS_READ_ALL = "units:read:all"
    UNITS_MANAGE_ALL = "units:manage:all"
    APPROVERS_READ_ALL = "approvers:read:all"
    APPROVERS_MANAGE_ALL = "approvers:manage:all"

    # Roles
    ROLES_READ_ALL = "roles:read:all"

    # System
    SYSTEM_CONFIG_ALL = "system:config:all"
    AUDIT_EXPORT_ALL = "audit:export:all"


PERMISSION_CATEGORIES: dict[str, tuple[Permission, ...]] = {
    category: tuple(p for p in Permission if p.value.split(":", 1)[0] == category)
    for category in dict.fromkeys(p.value.split(":", 1)[0] for p in Permission)
}
