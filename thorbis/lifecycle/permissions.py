"""Roles, permissions and the single authorization entry point.

Permissions are tagged strings of the form ``{domain}:{entity}:{action}``.
Roles map to a fixed permission set through :data:`ROLE_PERMISSIONS`; an
actor may carry extra grants on top of its role.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable

from thorbis.lifecycle.decision import ALLOWED, Decision, RejectionReason


class Permission(str, Enum):
    WORKORDER_READ = "hs:workorder:read"
    WORKORDER_WRITE = "hs:workorder:write"
    WORKORDER_DELETE = "hs:workorder:delete"
    INVOICE_READ = "hs:invoice:read"
    INVOICE_WRITE = "hs:invoice:write"
    INVOICE_DELETE = "hs:invoice:delete"
    ESTIMATE_READ = "hs:estimate:read"
    ESTIMATE_WRITE = "hs:estimate:write"
    ESTIMATE_DELETE = "hs:estimate:delete"
    APPOINTMENT_READ = "hs:appointment:read"
    APPOINTMENT_WRITE = "hs:appointment:write"
    APPOINTMENT_DELETE = "hs:appointment:delete"
    CAMPAIGN_READ = "mkt:campaign:read"
    CAMPAIGN_WRITE = "mkt:campaign:write"
    CAMPAIGN_DELETE = "mkt:campaign:delete"
    EXPERIMENT_READ = "mkt:experiment:read"
    EXPERIMENT_WRITE = "mkt:experiment:write"
    EXPERIMENT_DELETE = "mkt:experiment:delete"

    @property
    def action(self) -> str:
        return self.value.rsplit(":", 1)[-1]


class Role(str, Enum):
    VIEWER = "viewer"
    TECHNICIAN = "technician"
    DISPATCHER = "dispatcher"
    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"


def _by_action(*actions: str) -> FrozenSet[Permission]:
    return frozenset(p for p in Permission if p.action in actions)


_READ_ALL = _by_action("read")
_FIELD_WRITE = frozenset({Permission.WORKORDER_WRITE, Permission.APPOINTMENT_WRITE})

ROLE_PERMISSIONS: dict[Role, FrozenSet[Permission]] = {
    Role.VIEWER: _READ_ALL,
    Role.TECHNICIAN: _READ_ALL | _FIELD_WRITE,
    Role.DISPATCHER: _READ_ALL | _FIELD_WRITE | {Permission.ESTIMATE_WRITE},
    Role.MANAGER: _by_action("read", "write"),
    Role.ADMIN: frozenset(Permission),
    Role.OWNER: frozenset(Permission),
}


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role
    permissions: FrozenSet[Permission] = frozenset()

    @classmethod
    def for_role(cls, actor_id: str, role: Role, extra: Iterable[Permission] = ()) -> "Actor":
        return cls(
            id=actor_id,
            role=role,
            permissions=ROLE_PERMISSIONS.get(role, frozenset()) | frozenset(extra),
        )

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions


def authorize(actor: Actor, permission: Permission) -> Decision:
    """Check *actor* holds *permission*.

    The rejection names only the missing permission, never the roles that
    would have been granted it.
    """
    if actor.has(permission):
        return ALLOWED
    return Decision.reject(
        RejectionReason.PERMISSION_DENIED,
        f"Missing permission '{permission.value}'",
        permission=permission.value,
    )
