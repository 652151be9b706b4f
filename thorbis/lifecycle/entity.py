"""Immutable entity snapshots and mutation requests handled by the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

# Keys owned by the lifecycle itself; never editable through the payload.
RESERVED_FIELDS = frozenset(
    {
        "id",
        "entity_type",
        "status",
        "assignee_id",
        "created_by",
        "updated_by",
        "created_at",
        "updated_at",
        "version",
        "client_id",
        "deleted_at",
    }
)


def _freeze(data: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class EntitySnapshot:
    id: str
    entity_type: str
    status: str
    assignee_id: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _freeze(self.fields))

    def get(self, name: str, default: Any = None) -> Any:
        """Return a top-level attribute or, failing that, a payload field."""
        if name in RESERVED_FIELDS:
            return getattr(self, name, default)
        return self.fields.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "status": self.status,
            "assignee_id": self.assignee_id,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version": self.version,
            "fields": dict(self.fields),
        }


@dataclass(frozen=True)
class MutationRequest:
    """A proposed change: new status, reassignment and/or payload edits.

    ``assignee_id=None`` leaves the assignee alone unless ``reassign`` is set,
    which is how an entity is unassigned.
    """

    status: Optional[str] = None
    assignee_id: Optional[str] = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    reassign: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _freeze(self.fields))
        if self.assignee_id is not None:
            object.__setattr__(self, "reassign", True)

    @property
    def changes_status(self) -> bool:
        return self.status is not None
