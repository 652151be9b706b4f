"""Entity lifecycle Pydantic schemas (request DTOs and response models)."""


from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field

from thorbis.lifecycle.decision import Decision
from thorbis.lifecycle.definitions import EntityLifecycle
from thorbis.schemas.common import CamelModel

class EntityCreate(CamelModel):
    assignee_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

class EntityUpdate(CamelModel):
    """A mutation request. ``version`` is the version the caller last read.

    Omitting ``assigneeId`` keeps the current assignee; an explicit ``null``
    unassigns the entity.
    """

    version: int = Field(ge=1)
    status: str | None = None
    assignee_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

class EntityOut(CamelModel):
    id: str
    client_id: str
    entity_type: str
    status: str
    assignee_id: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    version: int
    # ORM rows carry the payload as ``data``; re-validated responses as ``payload``
    payload: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("data", "payload"))
    created_at: datetime
    updated_at: datetime

class TransitionOut(CamelModel):
    from_status: str
    to_status: str

class EntityResult(CamelModel):
    """Response envelope for create/update: entity plus what to do next."""

    data: EntityOut
    next_actions: list[str] = Field(default_factory=list)
    transition: TransitionOut | None = None

class LifecycleOut(CamelModel):
    entity_type: str
    statuses: list[str]
    initial_status: str
    terminal_statuses: list[str]
    transitions: dict[str, list[str]]

    @classmethod
    def from_lifecycle(cls, lifecycle: EntityLifecycle) -> "LifecycleOut":
        return cls(
            entity_type=lifecycle.entity_type,
            statuses=list(lifecycle.statuses),
            initial_status=lifecycle.initial_status,
            terminal_statuses=list(lifecycle.terminal_statuses),
            transitions={s: sorted(lifecycle.allowed_from(s)) for s in lifecycle.statuses},
        )

class TransitionCheckOut(CamelModel):
    allowed: bool
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_decision(cls, decision: Decision) -> "TransitionCheckOut":
        if decision.allowed:
            return cls(allowed=True)
        rejection = decision.rejection
        return cls(
            allowed=False,
            reason=rejection.reason.value,
            message=rejection.message,
            details=dict(rejection.details),
        )
