"""Role-to-permission resolution over a multi-parent inheritance graph.

The graph is a DAG, not a chain: DEPARTMENT_HEAD inherits REQUESTER directly
and sits beside the APPROVER -> FINANCE_STAFF -> ACCOUNTING_HEAD branch, and
ADMIN joins both branches. Closures are computed once when the graph is built,
so lookups are plain set membership.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from payflow.authz.permissions import Permission
from payflow.config import get_settings
from payflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Role(enum.StrEnum):
    """Built-in roles."""

    REQUESTER = "REQUESTER"
    APPROVER = "APPROVER"
    FINANCE_STAFF = "FINANCE_STAFF"
    ACCOUNTING_HEAD = "ACCOUNTING_HEAD"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    ADMIN = "ADMIN"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


OWN_PERMISSIONS: dict[str, frozenset[Permission]] = {
    Role.REQUESTER: frozenset(
        {
            Permission.REQUISITIONS_CREATE_OWN,
            Permission.REQUISITIONS_READ_OWN,
            Permission.REQUISITIONS_UPDATE_OWN,
            Permission.REQUISITIONS_DELETE_OWN,
            Permission.REQUISITIONS_SUBMIT_OWN,
            Permission.PAYMENTS_CREATE_OWN,
            Permission.PAYMENTS_READ_OWN,
            Permission.PAYMENTS_UPDATE_OWN,
            Permission.PAYMENTS_DELETE_OWN,
            Permission.PAYMENTS_SUBMIT_OWN,
            Permission.APPROVALS_READ_OWN,
        }
    ),
    Role.APPROVER: frozenset(
        {
            Permission.REQUISITIONS_READ_ALL,
            Permission.REQUISITIONS_APPROVE_UNIT,
            Permission.REQUISITIONS_REJECT_UNIT,
            Permission.PAYMENTS_READ_ALL,
            Permission.PAYMENTS_APPROVE_UNIT,
            Permission.PAYMENTS_REJECT_UNIT,
            Permission.APPROVALS_READ_ALL,
        }
    ),
    Role.FINANCE_STAFF: frozenset(
        {
            Permission.VOUCHERS_CREATE_ALL,
            Permission.VOUCHERS_READ_ALL,
            Permission.VOUCHERS_VERIFY_ALL,
            Permission.INSTRUMENTS_READ_ALL,
            Permission.INSTRUMENTS_ISSUE_ALL,
            Permission.INSTRUMENTS_DISBURSE_ALL,
            Permission.BANK_ACCOUNTS_READ_ALL,
        }
    ),
    Role.ACCOUNTING_HEAD: frozenset(
        {
            Permission.VOUCHERS_APPROVE_ALL,
            Permission.VOUCHERS_REJECT_ALL,
        }
    ),
    Role.DEPARTMENT_HEAD: frozenset(
        {
            Permission.REQUISITIONS_READ_UNIT,
            Permission.REQUISITIONS_APPROVE_UNIT,
            Permission.REQUISITIONS_REJECT_UNIT,
            Permission.PAYMENTS_READ_UNIT,
            Permission.PAYMENTS_APPROVE_UNIT,
            Permission.PAYMENTS_REJECT_UNIT,
            Permission.APPROVALS_READ_ALL,
        }
    ),
    Role.ADMIN: frozenset(
        {
            Permission.REQUISITIONS_CANCEL_ALL,
            Permission.PAYMENTS_CANCEL_ALL,
            Permission.UNITS_READ_ALL,
            Permission.UNITS_MANAGE_ALL,
            Permission.APPROVERS_READ_ALL,
            Permission.APPROVERS_MANAGE_ALL,
            Permission.BANK_ACCOUNTS_MANAGE_ALL,
            Permission.ROLES_READ_ALL,
        }
    ),
    Role.SYSTEM_ADMIN: frozenset(
        {
            Permission.REQUISITIONS_UPDATE_ALL,
            Permission.PAYMENTS_UPDATE_ALL,
            Permission.INSTRUMENTS_VOID_ALL,
            Permission.SYSTEM_CONFIG_ALL,
            Permission.AUDIT_EXPORT_ALL,
        }
    ),
}

# Direct parents only; transitive ancestors are reached by traversal.
ROLE_PARENTS: dict[str, tuple[str, ...]] = {
    Role.REQUESTER: (),
    Role.APPROVER: (Role.REQUESTER,),
    Role.FINANCE_STAFF: (Role.APPROVER,),
    Role.ACCOUNTING_HEAD: (Role.FINANCE_STAFF,),
    Role.DEPARTMENT_HEAD: (Role.REQUESTER,),
    Role.ADMIN: (Role.ACCOUNTING_HEAD, Role.DEPARTMENT_HEAD),
    Role.SYSTEM_ADMIN: (Role.ADMIN,),
}


class RoleDefinition(BaseModel):
    """One role entry of a JSON role configuration file."""

    permissions: list[Permission] = Field(default_factory=list)
    parents: list[str] = Field(default_factory=list)


class RoleConfigFile(BaseModel):
    """Top-level shape of a JSON role configuration file."""

    roles: dict[str, RoleDefinition]


class RoleGraph:
    """Immutable role graph with precomputed permission closures."""

    def __init__(
        self,
        own_permissions: Mapping[str, Iterable[Permission]],
        parents: Mapping[str, Sequence[str]],
    ) -> None:
        self._own: dict[str, frozenset[Permission]] = {
            str(role): frozenset(perms) for role, perms in own_permissions.items()
        }
        self._parents: dict[str, tuple[str, ...]] = {
            str(role): tuple(str(p) for p in ps) for role, ps in parents.items()
        }
        for role in self._own:
            self._parents.setdefault(role, ())
        self._validate()
        self._closure: dict[str, frozenset[Permission]] = {role: self._compute_closure(role) for role in self._own}

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(self._own)

    def parents_of(self, role: str) -> tuple[str, ...]:
        return self._parents.get(str(role), ())

    def own_permissions(self, role: str) -> frozenset[Permission]:
        return self._own.get(str(role), frozenset())

    def _validate(self) -> None:
        """Reject unknown parents and cycles."""
        for role, parents in self._parents.items():
            if role not in self._own:
                raise ConfigurationError(f"Role {role!r} has parents but no permission entry")
            for parent in parents:
                if parent not in self._own:
                    raise ConfigurationError(f"Role {role!r} inherits from unknown role {parent!r}")

        # Iterative three-colour DFS.
        white, grey, black = 0, 1, 2
        colour = dict.fromkeys(self._own, white)
        for start in self._own:
            if colour[start] != white:
                continue
            colour[start] = grey
            stack: list[tuple[str, int]] = [(start, 0)]
            while stack:
                node, idx = stack[-1]
                parents = self._parents[node]
                if idx < len(parents):
                    stack[-1] = (node, idx + 1)
                    nxt = parents[idx]
                    if colour[nxt] == grey:
                        path = " -> ".join([n for n, _ in stack] + [nxt])
                        raise ConfigurationError(f"Role inheritance cycle: {path}")
                    if colour[nxt] == white:
                        colour[nxt] = grey
                        stack.append((nxt, 0))
                else:
                    colour[node] = black
                    stack.pop()

    def _compute_closure(self, role: str) -> frozenset[Permission]:
        resolved: set[Permission] = set()
        visited: set[str] = set()
        worklist = [role]
        while worklist:
            current = worklist.pop()
            if current in visited:
                continue
            visited.add(current)
            resolved |= self._own[current]
            worklist.extend(self._parents[current])
        return frozenset(resolved)

    def resolve_permissions(self, role: str) -> frozenset[Permission]:
        """Return the role's own permissions plus those of every ancestor."""
        closure = self._closure.get(str(role))
        if closure is None:
            logger.warning("Permission lookup for unknown role %r", role)
            return frozenset()
        return closure

    def has_permission(self, role: str, permission: Permission | str) -> bool:
        return permission in self.resolve_permissions(role)

    def has_any(self, role: str, permissions: Iterable[Permission | str]) -> bool:
        resolved = self.resolve_permissions(role)
        return any(p in resolved for p in permissions)

    def has_all(self, role: str, permissions: Iterable[Permission | str]) -> bool:
        resolved = self.resolve_permissions(role)
        return all(p in resolved for p in permissions)


def load_role_graph(path: str | Path | None = None) -> RoleGraph:
    """Build a role graph from a JSON file, or the built-in catalog when ``path`` is None."""
    if path is None:
        return RoleGraph(OWN_PERMISSIONS, ROLE_PARENTS)

    try:
        config = RoleConfigFile.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        raise ConfigurationError(f"Unable to load role configuration from {path}: {exc}") from exc

    return RoleGraph(
        {name: role.permissions for name, role in config.roles.items()},
        {name: role.parents for name, role in config.roles.items()},
    )


_role_graph: RoleGraph | None = None


def get_role_graph() -> RoleGraph:
    """Return the process-wide role graph, building it on first call."""
    global _role_graph
    if _role_graph is None:
        settings = get_settings()
        _role_graph = load_role_graph(settings.role_config_path)
        logger.info("Loaded role graph with %d roles", len(_role_graph.roles))
    return _role_graph


def set_role_graph(graph: RoleGraph | None) -> None:
    """Override the process-wide graph (for testing); None rebuilds on next access."""
    global _role_graph
    _role_graph = graph
