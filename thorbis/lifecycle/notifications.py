"""Best-effort listeners invoked after a mutation has been persisted.

Listeners (calendar sync, e-mail, background queues, audit history) are
independent of each other and of the request: a failing listener is logged
and skipped, and can never undo the state change that triggered it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    entity_id: str
    entity_type: str
    client_id: str
    actor_id: str
    from_status: Optional[str]
    to_status: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_creation(self) -> bool:
        return self.from_status is None


Listener = Callable[[TransitionEvent], Awaitable[None]]


class NotificationDispatcher:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    @property
    def listeners(self) -> tuple[Listener, ...]:
        return tuple(self._listeners)

    def subscribe(self, listener: Listener) -> Listener:
        """Register *listener*; returns it so this can be used as a decorator."""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def dispatch(self, event: TransitionEvent) -> int:
        """Run every listener once; returns the number that failed."""
        failures = 0
        for listener in list(self._listeners):
            name = getattr(listener, "__name__", type(listener).__name__)
            try:
                await listener(event)
            except Exception as exc:
                failures += 1
                logger.warning(
                    "Listener %s failed for %s %s (%s -> %s): %s",
                    name,
                    event.entity_type,
                    event.entity_id,
                    event.from_status,
                    event.to_status,
                    exc,
                )
        return failures


async def log_transition(event: TransitionEvent) -> None:
    logger.info(
        "%s %s: %s -> %s by %s",
        event.entity_type,
        event.entity_id,
        event.from_status or "(new)",
        event.to_status,
        event.actor_id,
    )
