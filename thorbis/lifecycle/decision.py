"""Decision values returned by the lifecycle engine.

The engine never raises for a rejected request: every check returns a
:class:`Decision`. Callers that want exceptions convert the rejection at the
service boundary (see :class:`thorbis.core.exceptions.LifecycleRejected`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional

if TYPE_CHECKING:
    from thorbis.lifecycle.entity import EntitySnapshot


class RejectionReason(str, Enum):
    UNKNOWN_STATUS = "UNKNOWN_STATUS"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TERMINAL_STATE_IMMUTABLE = "TERMINAL_STATE_IMMUTABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    OWNERSHIP_REQUIRED = "OWNERSHIP_REQUIRED"
    INVALID_FIELD = "INVALID_FIELD"
    FIELDS_LOCKED = "FIELDS_LOCKED"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str


@dataclass(frozen=True)
class Decision:
    """Outcome of a lifecycle check.

    ``next_state`` is only populated by mutation checks that succeed.
    ``transition`` is set when the proposed state changes status.
    """

    rejection: Optional[Rejection] = None
    next_state: Optional["EntitySnapshot"] = None
    transition: Optional[Transition] = None

    @property
    def allowed(self) -> bool:
        return self.rejection is None

    @property
    def reason(self) -> Optional[RejectionReason]:
        return self.rejection.reason if self.rejection else None

    @classmethod
    def allow(
        cls,
        next_state: Optional["EntitySnapshot"] = None,
        transition: Optional[Transition] = None,
    ) -> "Decision":
        return cls(next_state=next_state, transition=transition)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str, **details: Any) -> "Decision":
        return cls(rejection=Rejection(reason=reason, message=message, details=details))


ALLOWED = Decision()
