"""Readiness report, request ids and CORS for the browser client."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from payflow.config import reset_settings
from payflow.db import get_session
from payflow.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    import pytest

    from conftest import Actors


async def test_health_reports_builtin_catalog(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": "0.1.0",
        "environment": "development",
        "database": True,
        "roles": 7,
        "role_source": "builtin",
        "top_approval_level": 3,
    }


async def test_health_follows_role_and_routing_settings(
    async_client: AsyncClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "roles.json"
    path.write_text(
        json.dumps({"roles": {"CLERK": {"permissions": ["requisitions:create:own"]}, "AUDITOR": {}}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("ROLE_CONFIG_PATH", str(path))
    monkeypatch.setenv("TOP_APPROVAL_LEVEL", "2")
    reset_settings()

    data = (await async_client.get("/health")).json()
    assert data["status"] == "ok"
    assert data["roles"] == 2
    assert data["role_source"] == str(path)
    assert data["top_approval_level"] == 2


async def test_health_errors_on_broken_role_file(
    async_client: AsyncClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "roles.json"
    path.write_text(json.dumps({"roles": {"A": {"parents": ["B"]}, "B": {"parents": ["A"]}}}), encoding="utf-8")
    monkeypatch.setenv("ROLE_CONFIG_PATH", str(path))
    reset_settings()

    response = await async_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "error"
    assert data["database"] is True
    assert data["roles"] == 0


async def test_health_degraded_on_db_failure() -> None:
    """The role graph is still reported while the database is unreachable."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = ConnectionError("DB unreachable")

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "degraded"
        assert data["database"] is False
        assert data["roles"] == 7
    finally:
        app.dependency_overrides.clear()


async def test_request_id_is_generated_or_echoed(async_client: AsyncClient, actors: Actors) -> None:
    generated = await async_client.get("/health")
    assert len(generated.headers["X-Request-Id"]) == 32

    echoed = await async_client.get(
        "/requisitions", headers={"X-User-Id": str(actors.requester.user_id), "X-Request-Id": "trace-42"}
    )
    assert echoed.status_code == 200
    assert echoed.headers["X-Request-Id"] == "trace-42"


async def test_error_responses_carry_request_id(async_client: AsyncClient) -> None:
    response = await async_client.get("/requisitions")
    assert response.status_code == 422
    assert response.headers["X-Request-Id"]


async def test_cors_preflight_allows_identity_header(async_client: AsyncClient) -> None:
    preflight = {"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"}

    allowed = await async_client.options(
        "/requisitions", headers={**preflight, "Access-Control-Request-Headers": "x-user-id,content-type"}
    )
    assert allowed.status_code == 200
    assert "x-user-id" in allowed.headers["access-control-allow-headers"].lower()

    refused = await async_client.options(
        "/requisitions", headers={**preflight, "Access-Control-Request-Headers": "x-impersonate"}
    )
    assert refused.status_code == 400


async def test_cors_exposes_request_id(async_client: AsyncClient) -> None:
    response = await async_client.get("/health", headers={"Origin": "http://localhost:3000"})
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert "x-request-id" in response.headers["access-control-expose-headers"].lower()
