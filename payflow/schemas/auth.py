# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel


class AuthContext(BaseModel):
    """The acting user as resolved by the identity collaborator."""

    user_id: uuid.UUID
    role: str = "REQUESTER"
    unit_id: uuid.UUID | None = None
