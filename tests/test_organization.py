"""Unit and approver administration."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from payflow.exceptions import AlreadyExistsError, InvalidStateError, NotFoundError, UnauthorizedError
from payflow.schemas.organization import ApproverCreate, UnitCreate
from payflow.services import organization as organization_service
from payflow.services import routing

if TYPE_CHECKING:
    from conftest import Actors, Org
    from sqlalchemy.ext.asyncio import AsyncSession


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


async def test_create_business_unit_and_department(db_session: AsyncSession, actors: Actors) -> None:
    business = await organization_service.create_unit(
        db_session, actors.admin, UnitCreate(code="FIN", name="Finance")
    )
    assert business.parent_id is None
    assert business.is_active is True

    department = await organization_service.create_unit(
        db_session, actors.admin, UnitCreate(code="FIN-AP", name="Accounts Payable", parent_id=business.id)
    )
    assert department.parent_id == business.id

    fetched = await organization_service.get_unit(db_session, actors.admin, department.id)
    assert fetched.code == "FIN-AP"


async def test_unit_codes_are_unique(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    with pytest.raises(AlreadyExistsError) as exc_info:
        await organization_service.create_unit(db_session, actors.admin, UnitCreate(code="OPS", name="Again"))
    assert exc_info.value.reason == "duplicate_unit_code"


async def test_departments_cannot_nest(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    with pytest.raises(InvalidStateError) as exc_info:
        await organization_service.create_unit(
            db_session, actors.admin, UnitCreate(code="OPS-PUR-X", name="Too deep", parent_id=org.department.id)
        )
    assert exc_info.value.reason == "unit_too_deep"


async def test_unit_parent_must_exist(db_session: AsyncSession, actors: Actors) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await organization_service.create_unit(
            db_session, actors.admin, UnitCreate(code="X", name="Orphan", parent_id=uuid.uuid4())
        )
    assert exc_info.value.reason == "unit_not_found"


async def test_unit_management_needs_permission(db_session: AsyncSession, actors: Actors) -> None:
    with pytest.raises(UnauthorizedError):
        await organization_service.create_unit(db_session, actors.requester, UnitCreate(code="X", name="X"))
    with pytest.raises(UnauthorizedError):
        await organization_service.list_units(db_session, actors.approver_1)


async def test_list_units(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    await organization_service.create_unit(
        db_session, actors.admin, UnitCreate(code="OPS-LOG", name="Logistics", parent_id=org.business.id)
    )

    everything = await organization_service.list_units(db_session, actors.admin)
    assert everything.total == 3
    assert [u.code for u in everything.items] == ["OPS", "OPS-LOG", "OPS-PUR"]

    departments = await organization_service.list_units(db_session, actors.admin, parent_id=org.business.id)
    assert departments.total == 2
    assert {u.code for u in departments.items} == {"OPS-LOG", "OPS-PUR"}

    page = await organization_service.list_units(db_session, actors.admin, offset=1, limit=1)
    assert page.total == 3
    assert [u.code for u in page.items] == ["OPS-LOG"]


async def test_get_unknown_unit(db_session: AsyncSession, actors: Actors) -> None:
    with pytest.raises(NotFoundError):
        await organization_service.get_unit(db_session, actors.admin, uuid.uuid4())


# ---------------------------------------------------------------------------
# Approvers
# ---------------------------------------------------------------------------


async def test_create_approver(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    approver = await organization_service.create_approver(
        db_session,
        actors.admin,
        ApproverCreate(
            user_id=actors.approver_1.user_id,
            unit_id=org.department.id,
            approval_level=1,
            approval_ceiling=Decimal("5000.00"),
        ),
    )
    assert approver.unit_id == org.department.id
    assert approver.approval_ceiling == Decimal("5000.00")
    assert approver.priority == 100
    assert approver.is_active is True

    assert await routing.max_level(db_session, org.department.id) == 1


async def test_create_global_approver(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    approver = await organization_service.create_approver(
        db_session, actors.admin, ApproverCreate(user_id=actors.top.user_id, approval_level=3)
    )
    assert approver.unit_id is None
    assert await routing.max_level(db_session, org.department.id) == 3


async def test_unit_approver_at_top_level_is_rejected(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    with pytest.raises(InvalidStateError) as exc_info:
        await organization_service.create_approver(
            db_session,
            actors.admin,
            ApproverCreate(user_id=actors.approver_1.user_id, unit_id=org.department.id, approval_level=3),
        )
    assert exc_info.value.reason == "invalid_routing_binding"
    assert await routing.max_level(db_session, org.department.id) == 1


async def test_global_approver_below_top_level_is_rejected(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    with pytest.raises(InvalidStateError) as exc_info:
        await organization_service.create_approver(
            db_session, actors.admin, ApproverCreate(user_id=actors.top.user_id, approval_level=1)
        )
    assert exc_info.value.reason == "invalid_routing_binding"
    listed = await organization_service.list_approvers(db_session, actors.admin)
    assert listed.total == 0


async def test_approver_unit_must_exist(db_session: AsyncSession, actors: Actors) -> None:
    with pytest.raises(NotFoundError):
        await organization_service.create_approver(
            db_session,
            actors.admin,
            ApproverCreate(user_id=actors.approver_1.user_id, unit_id=uuid.uuid4(), approval_level=1),
        )


async def test_approver_management_needs_permission(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    payload = ApproverCreate(user_id=actors.approver_1.user_id, unit_id=org.department.id, approval_level=1)
    with pytest.raises(UnauthorizedError):
        await organization_service.create_approver(db_session, actors.dept_head, payload)
    with pytest.raises(UnauthorizedError):
        await organization_service.list_approvers(db_session, actors.requester)


async def test_list_approvers(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    for actor, unit_id, level in [
        (actors.approver_1, org.department.id, 1),
        (actors.dept_head, org.department.id, 2),
        (actors.approver_2, org.business.id, 2),
    ]:
        await organization_service.create_approver(
            db_session, actors.admin, ApproverCreate(user_id=actor.user_id, unit_id=unit_id, approval_level=level)
        )

    everyone = await organization_service.list_approvers(db_session, actors.admin)
    assert everyone.total == 3
    assert [a.approval_level for a in everyone.items] == [1, 2, 2]

    department = await organization_service.list_approvers(db_session, actors.admin, unit_id=org.department.id)
    assert {a.user_id for a in department.items} == {actors.approver_1.user_id, actors.dept_head.user_id}

    second = await organization_service.list_approvers(db_session, actors.admin, level=2)
    assert {a.user_id for a in second.items} == {actors.dept_head.user_id, actors.approver_2.user_id}


async def test_deactivate_approver(db_session: AsyncSession, org: Org, actors: Actors) -> None:
    await organization_service.create_approver(
        db_session,
        actors.admin,
        ApproverCreate(user_id=actors.approver_1.user_id, unit_id=org.department.id, approval_level=1),
    )
    second = await organization_service.create_approver(
        db_session,
        actors.admin,
        ApproverCreate(user_id=actors.approver_2.user_id, unit_id=org.business.id, approval_level=2),
    )
    assert await routing.max_level(db_session, org.department.id) == 2

    deactivated = await organization_service.deactivate_approver(db_session, actors.admin, second.id)
    assert deactivated.is_active is False
    assert await routing.max_level(db_session, org.department.id) == 1

    active = await organization_service.list_approvers(db_session, actors.admin)
    assert [a.user_id for a in active.items] == [actors.approver_1.user_id]
    with_inactive = await organization_service.list_approvers(db_session, actors.admin, include_inactive=True)
    assert with_inactive.total == 2


async def test_deactivate_unknown_approver(db_session: AsyncSession, actors: Actors) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await organization_service.deactivate_approver(db_session, actors.admin, uuid.uuid4())
    assert exc_info.value.reason == "approver_not_found"
