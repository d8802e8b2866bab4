# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class UserInfo(BaseModel):
    """User metadata from the identity service."""

    id: uuid.UUID
    email: str
    full_name: str
    role: str  # one of the configured role names, e.g. "APPROVER"
    unit_id: uuid.UUID | None = None  # organizational unit membership
    is_active: bool = True


@runtime_checkable
class IdentityService(Protocol):
    """Interface for the identity/role collaborator."""

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        ...

    async def list_users(self, unit_id: uuid.UUID | None = None) -> list[UserInfo]:
        """List users, optionally restricted to one unit."""
        ...


class InMemoryIdentityService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[user.id] = user

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        return self._users.get(user_id)

    async def list_users(self, unit_id: uuid.UUID | None = None) -> list[UserInfo]:
        """List users, optionally restricted to one unit."""
        return [u for u in self._users.values() if unit_id is None or u.unit_id == unit_id]


_identity_service: IdentityService = InMemoryIdentityService()


def get_identity_service() -> IdentityService:
    """FastAPI dependency for the identity service."""
    return _identity_service


def set_identity_service(service: IdentityService) -> None:
    """Override the service (for testing or production wiring)."""
    global _identity_service
    _identity_service = service
