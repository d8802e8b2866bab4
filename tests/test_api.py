"""HTTP surface: authentication, error bodies and the full disbursement flow."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from conftest import Actors, Org
    from httpx import AsyncClient

    from payflow.models import Approver
    from payflow.schemas.auth import AuthContext

    AddApprover = Callable[..., Awaitable[Approver]]


def _headers(actor: AuthContext) -> dict[str, str]:
    return {"X-User-Id": str(actor.user_id)}


REQUISITION_BODY = {
    "purpose": "Warehouse shelving",
    "items": [
        {"quantity": "4", "unit": "set", "particulars": "Steel rack", "unit_cost": "1250.00"},
        {"quantity": "10", "unit": "pc", "particulars": "Bin", "unit_cost": "85.50"},
    ],
}


# ---------------------------------------------------------------------------
# Authentication and errors
# ---------------------------------------------------------------------------


async def test_missing_user_header(async_client: AsyncClient) -> None:
    response = await async_client.get("/requisitions")
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_unknown_user(async_client: AsyncClient) -> None:
    response = await async_client.get("/requisitions", headers={"X-User-Id": str(uuid.uuid4())})
    assert response.status_code == 401
    data = response.json()
    assert data["reason"] == "unknown_user"
    assert data["status_code"] == 401


async def test_missing_permission_error_body(async_client: AsyncClient, actors: Actors) -> None:
    response = await async_client.post(
        "/units", json={"code": "HR", "name": "Human Resources"}, headers=_headers(actors.requester)
    )
    assert response.status_code == 403
    data = response.json()
    assert data["error"] == "UnauthorizedError"
    assert data["code"] == "UNAUTHORIZED"
    assert data["reason"] == "missing_permission"
    assert set(data.keys()) == {"error", "code", "reason", "detail", "status_code"}


async def test_not_found(async_client: AsyncClient, actors: Actors) -> None:
    response = await async_client.get(f"/requisitions/{uuid.uuid4()}", headers=_headers(actors.requester))
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


async def test_my_permissions(async_client: AsyncClient, actors: Actors) -> None:
    response = await async_client.get("/me/permissions", headers=_headers(actors.finance))
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "FINANCE_STAFF"
    assert data["parents"] == ["APPROVER"]
    assert "vouchers:verify:all" in data["own_permissions"]
    # Inherited through APPROVER and REQUESTER.
    assert "payments:approve:unit" in data["permissions"]
    assert "requisitions:create:own" in data["permissions"]
    assert "vouchers:approve:all" not in data["permissions"]


async def test_roles_listing(async_client: AsyncClient, actors: Actors) -> None:
    response = await async_client.get("/roles", headers=_headers(actors.admin))
    assert response.status_code == 200
    names = {r["name"] for r in response.json()["items"]}
    assert names == {
        "REQUESTER",
        "APPROVER",
        "FINANCE_STAFF",
        "ACCOUNTING_HEAD",
        "DEPARTMENT_HEAD",
        "ADMIN",
        "SYSTEM_ADMIN",
    }

    response = await async_client.get("/roles", headers=_headers(actors.requester))
    assert response.status_code == 403

    response = await async_client.get("/roles/NOBODY", headers=_headers(actors.admin))
    assert response.status_code == 404
    assert response.json()["reason"] == "role_not_found"


async def test_permission_catalog(async_client: AsyncClient, actors: Actors) -> None:
    response = await async_client.get("/permissions", headers=_headers(actors.requester))
    assert response.status_code == 200
    categories = response.json()["categories"]
    assert "requisitions:approve:unit" in categories["requisitions"]
    assert "instruments:void:all" in categories["instruments"]


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------


async def test_units_and_routing(async_client: AsyncClient, org: Org, actors: Actors) -> None:
    admin = _headers(actors.admin)
    response = await async_client.post(
        "/approvers",
        json={"user_id": str(actors.approver_1.user_id), "unit_id": str(org.department.id), "approval_level": 1},
        headers=admin,
    )
    assert response.status_code == 201
    response = await async_client.post(
        "/approvers",
        json={"user_id": str(actors.approver_2.user_id), "unit_id": str(org.business.id), "approval_level": 2},
        headers=admin,
    )
    assert response.status_code == 201

    response = await async_client.get(f"/units/{org.department.id}/routing", headers=admin)
    assert response.status_code == 200
    routing = response.json()
    assert routing["max_level"] == 2
    assert [lvl["approver"]["user_id"] for lvl in routing["levels"]] == [
        str(actors.approver_1.user_id),
        str(actors.approver_2.user_id),
    ]

    response = await async_client.get("/units", params={"parent_id": str(org.business.id)}, headers=admin)
    assert response.json()["total"] == 1

    response = await async_client.get(f"/units/{org.department.id}/routing", headers=_headers(actors.requester))
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


async def test_requisition_to_cleared_check(
    async_client: AsyncClient, org: Org, actors: Actors, add_approver: AddApprover
) -> None:
    await add_approver(actors.approver_1, 1, org.department)
    await add_approver(actors.approver_2, 2, org.business)
    requester = _headers(actors.requester)

    # Requisition through two approval levels.
    response = await async_client.post("/requisitions", json=REQUISITION_BODY, headers=requester)
    assert response.status_code == 201
    requisition = response.json()
    assert requisition["status"] == "DRAFT"
    assert Decimal(requisition["total_amount"]) == Decimal("5855.00")
    assert requisition["unit_id"] == str(org.department.id)
    requisition_id = requisition["id"]

    response = await async_client.post(f"/requisitions/{requisition_id}/submit", headers=requester)
    assert response.status_code == 200
    assert response.json()["required_levels"] == 2

    response = await async_client.post(
        f"/requisitions/{requisition_id}/approve", headers=_headers(actors.approver_2)
    )
    assert response.status_code == 403
    assert response.json()["reason"] == "not_an_approver"

    response = await async_client.post(
        f"/requisitions/{requisition_id}/approve",
        json={"comment": "Budget ok", "expected_level": 1},
        headers=_headers(actors.approver_1),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING_APPROVAL"

    response = await async_client.post(
        f"/requisitions/{requisition_id}/approve", headers=_headers(actors.approver_1)
    )
    assert response.status_code == 409
    assert response.json()["reason"] == "level_already_advanced"

    response = await async_client.post(
        f"/requisitions/{requisition_id}/approve", headers=_headers(actors.approver_2)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"

    response = await async_client.get(f"/requisitions/{requisition_id}/ledger", headers=requester)
    entries = response.json()["entries"]
    assert [(e["approval_level"], e["action"]) for e in entries] == [
        (0, "SUBMITTED"),
        (1, "APPROVED"),
        (2, "APPROVED"),
    ]
    assert entries[1]["comment"] == "Budget ok"

    # Payment request derived from it, approved through the same chain.
    response = await async_client.post(
        f"/requisitions/{requisition_id}/payment-request",
        json={"payee": "Metro Steel Corp."},
        headers=requester,
    )
    assert response.status_code == 201
    payment = response.json()
    assert Decimal(payment["amount"]) == Decimal("5855.00")
    payment_id = payment["id"]

    response = await async_client.post(
        f"/requisitions/{requisition_id}/payment-request", json={"payee": "Again"}, headers=requester
    )
    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_EXISTS"

    response = await async_client.post(f"/payment-requests/{payment_id}/submit", headers=requester)
    assert response.status_code == 200
    for approver in (actors.approver_1, actors.approver_2):
        response = await async_client.post(f"/payment-requests/{payment_id}/approve", headers=_headers(approver))
        assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"

    # Voucher, check, clearance.
    finance = _headers(actors.finance)
    response = await async_client.post(f"/payment-requests/{payment_id}/voucher", headers=finance)
    assert response.status_code == 201
    voucher_id = response.json()["id"]

    response = await async_client.post(f"/vouchers/{voucher_id}/verify", headers=finance)
    assert response.json()["status"] == "VERIFIED"
    response = await async_client.post(f"/vouchers/{voucher_id}/approve", headers=_headers(actors.accounting))
    assert response.json()["status"] == "APPROVED"

    response = await async_client.post(
        "/bank-accounts",
        json={"account_name": "Operations Disbursing", "account_number": "BPI-778-01", "bank_name": "BPI"},
        headers=_headers(actors.admin),
    )
    assert response.status_code == 201
    response = await async_client.get("/bank-accounts/active", headers=finance)
    assert response.status_code == 200
    [account] = response.json()["items"]

    response = await async_client.post(
        f"/vouchers/{voucher_id}/instrument",
        json={"check_number": "004512", "bank_account_id": account["id"]},
        headers=finance,
    )
    assert response.status_code == 201
    instrument_id = response.json()["id"]

    response = await async_client.post(
        f"/instruments/{instrument_id}/clear", json={"received_by": "Metro Steel cashier"}, headers=finance
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CLEARED"

    response = await async_client.get(f"/payment-requests/{payment_id}", headers=requester)
    assert response.json()["status"] == "DISBURSED"
    response = await async_client.get(f"/requisitions/{requisition_id}", headers=requester)
    assert response.json()["status"] == "COMPLETED"


async def test_requester_visibility_over_http(
    async_client: AsyncClient, org: Org, actors: Actors, add_approver: AddApprover
) -> None:
    await add_approver(actors.approver_1, 1, org.department)
    response = await async_client.post("/requisitions", json=REQUISITION_BODY, headers=_headers(actors.requester))
    requisition_id = response.json()["id"]

    response = await async_client.get(f"/requisitions/{requisition_id}", headers=_headers(actors.other_requester))
    assert response.status_code == 403
    assert response.json()["reason"] == "not_visible"

    response = await async_client.get("/requisitions", headers=_headers(actors.other_requester))
    assert response.json()["total"] == 0

    response = await async_client.get(
        "/requisitions", params={"status": "DRAFT"}, headers=_headers(actors.approver_1)
    )
    assert response.json()["total"] == 1

    response = await async_client.delete(f"/requisitions/{requisition_id}", headers=_headers(actors.requester))
    assert response.status_code == 204
    response = await async_client.get(f"/requisitions/{requisition_id}", headers=_headers(actors.requester))
    assert response.status_code == 404
