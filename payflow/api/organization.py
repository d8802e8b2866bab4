# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from payflow.api.deps import AuthDep
from payflow.authz.permissions import Permission
from payflow.db import SessionDep
from payflow.schemas.organization import (
    ApproverCreate,
    ApproverListResponse,
    ApproverResponse,
    RoutingResponse,
    UnitCreate,
    UnitListResponse,
    UnitResponse,
)
from payflow.services import organization as organization_service
from payflow.services import routing as routing_service
from payflow.services.access import require_permission

units_router = APIRouter(prefix="/units", tags=["organization"])
approvers_router = APIRouter(prefix="/approvers", tags=["organization"])


@units_router.post("", response_model=UnitResponse, status_code=status.HTTP_201_CREATED)
async def create_unit(payload: UnitCreate, session: SessionDep, auth: AuthDep) -> UnitResponse:
    return await organization_service.create_unit(session, auth, payload)


@units_router.get("", response_model=UnitListResponse)
async def list_units(
    session: SessionDep,
    auth: AuthDep,
    parent_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> UnitListResponse:
    return await organization_service.list_units(session, auth, parent_id, offset, limit)


@units_router.get("/{unit_id}", response_model=UnitResponse)
async def get_unit(unit_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> UnitResponse:
    return await organization_service.get_unit(session, auth, unit_id)


@units_router.get("/{unit_id}/routing", response_model=RoutingResponse)
async def get_unit_routing(unit_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> RoutingResponse:
    """Resolved approval chain: level count and the approver chosen at each level."""
    require_permission(auth, Permission.APPROVERS_READ_ALL)
    return await routing_service.get_routing(session, unit_id)


@approvers_router.post("", response_model=ApproverResponse, status_code=status.HTTP_201_CREATED)
async def create_approver(payload: ApproverCreate, session: SessionDep, auth: AuthDep) -> ApproverResponse:
    return await organization_service.create_approver(session, auth, payload)


@approvers_router.get("", response_model=ApproverListResponse)
async def list_approvers(
    session: SessionDep,
    auth: AuthDep,
    unit_id: uuid.UUID | None = Query(default=None),
    level: int | None = Query(default=None, ge=1),
    include_inactive: bool = Query(default=False),
) -> ApproverListResponse:
    return await organization_service.list_approvers(session, auth, unit_id, level, include_inactive)


@approvers_router.post("/{approver_id}/deactivate", response_model=ApproverResponse)
async def deactivate_approver(approver_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> ApproverResponse:
    return await organization_service.deactivate_approver(session, auth, approver_id)
