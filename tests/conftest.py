from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payflow.authz.roles import set_role_graph
from payflow.config import reset_settings
from payflow.db import get_session
from payflow.main import app
from payflow.models import Approver, BankAccount, OrganizationalUnit, SQLModel
from payflow.schemas.auth import AuthContext
from payflow.schemas.requisition import RequisitionCreate, RequisitionItemPayload
from payflow.services import requisition as requisition_service
from payflow.services.identity import InMemoryIdentityService, UserInfo, set_identity_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from payflow.schemas.requisition import RequisitionResponse


@dataclass
class Org:
    """A business unit and one of its departments."""

    business: OrganizationalUnit
    department: OrganizationalUnit


@dataclass
class Actors:
    requester: AuthContext
    other_requester: AuthContext
    approver_1: AuthContext
    approver_2: AuthContext
    top: AuthContext
    dept_head: AuthContext
    finance: AuthContext
    accounting: AuthContext
    admin: AuthContext
    sysadmin: AuthContext

    def all(self) -> list[AuthContext]:
        return [
            self.requester,
            self.other_requester,
            self.approver_1,
            self.approver_2,
            self.top,
            self.dept_head,
            self.finance,
            self.accounting,
            self.admin,
            self.sysadmin,
        ]


# ---------------------------------------------------------------------------
# Process-wide state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals() -> Iterator[None]:
    """Every test starts from the built-in role graph, fresh settings and no known users."""
    reset_settings()
    set_role_graph(None)
    set_identity_service(InMemoryIdentityService())
    yield
    reset_settings()
    set_role_graph(None)
    set_identity_service(InMemoryIdentityService())


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A throwaway SQLite database per test."""
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payflow.db'}")
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client; each request gets its own session on the test database."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Organization and people
# ---------------------------------------------------------------------------


@pytest.fixture
async def org(session_factory: async_sessionmaker[AsyncSession]) -> Org:
    """Units are written through their own session so tests hold detached, fully loaded rows."""
    async with session_factory() as session:
        business = OrganizationalUnit(code="OPS", name="Operations")
        session.add(business)
        await session.flush()
        department = OrganizationalUnit(code="OPS-PUR", name="Purchasing", parent_id=business.id)
        session.add(department)
        await session.commit()
    return Org(business=business, department=department)


@pytest.fixture
async def bank_account(session_factory: async_sessionmaker[AsyncSession]) -> BankAccount:
    """An active disbursing account to draw checks on."""
    async with session_factory() as session:
        account = BankAccount(account_name="Operations Disbursing", account_number="BDO-001-22", bank_name="BDO")
        session.add(account)
        await session.commit()
    return account


@pytest.fixture
def actors(org: Org) -> Actors:
    """One user per role, registered with the identity service."""

    def _actor(role: str, unit_id: uuid.UUID | None) -> AuthContext:
        return AuthContext(user_id=uuid.uuid4(), role=role, unit_id=unit_id)

    people = Actors(
        requester=_actor("REQUESTER", org.department.id),
        other_requester=_actor("REQUESTER", org.department.id),
        approver_1=_actor("APPROVER", org.department.id),
        approver_2=_actor("APPROVER", org.business.id),
        top=_actor("APPROVER", None),
        dept_head=_actor("DEPARTMENT_HEAD", org.department.id),
        finance=_actor("FINANCE_STAFF", None),
        accounting=_actor("ACCOUNTING_HEAD", None),
        admin=_actor("ADMIN", None),
        sysadmin=_actor("SYSTEM_ADMIN", None),
    )
    identity = InMemoryIdentityService()
    for index, actor in enumerate(people.all()):
        identity.seed(
            UserInfo(
                id=actor.user_id,
                email=f"user{index}@example.com",
                full_name=f"User {index}",
                role=actor.role,
                unit_id=actor.unit_id,
            )
        )
    set_identity_service(identity)
    return people


@pytest.fixture
def add_approver(session_factory: async_sessionmaker[AsyncSession]) -> Callable[..., Awaitable[Approver]]:
    """Bind a user to an approval level; ``unit=None`` makes the binding organization-wide."""

    async def _add(
        actor: AuthContext,
        level: int,
        unit: OrganizationalUnit | None = None,
        ceiling: Decimal | None = None,
        priority: int = 100,
        created_at: datetime | None = None,
        is_active: bool = True,
    ) -> Approver:
        approver = Approver(
            user_id=actor.user_id,
            unit_id=unit.id if unit is not None else None,
            approval_level=level,
            approval_ceiling=ceiling,
            priority=priority,
            is_active=is_active,
        )
        if created_at is not None:
            approver.created_at = created_at
        async with session_factory() as session:
            session.add(approver)
            await session.commit()
        return approver

    return _add


@pytest.fixture
async def two_level_chain(
    org: Org, actors: Actors, add_approver: Callable[..., Awaitable[Approver]]
) -> Actors:
    """approver_1 at level 1 on the department, approver_2 at level 2 on its business unit."""
    await add_approver(actors.approver_1, 1, org.department)
    await add_approver(actors.approver_2, 2, org.business)
    return actors


@pytest.fixture
def make_requisition(db_session: AsyncSession) -> Callable[..., Awaitable[RequisitionResponse]]:
    """Create a draft requisition worth ``2 x 150.50 + 1 x 99.00 = 400.00``."""

    async def _make(actor: AuthContext, purpose: str = "Office supplies") -> RequisitionResponse:
        payload = RequisitionCreate(
            purpose=purpose,
            items=[
                RequisitionItemPayload(
                    quantity=Decimal("2"), unit="box", particulars="Bond paper", unit_cost=Decimal("150.50")
                ),
                RequisitionItemPayload(
                    quantity=Decimal("1"), unit="pc", particulars="Stapler", unit_cost=Decimal("99.00")
                ),
            ],
        )
        return await requisition_service.create_requisition(db_session, actor, payload)

    return _make
