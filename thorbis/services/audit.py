"""Audit-trail listener: appends one ``audit_trail`` row per status change.

Subscribed to the :class:`~thorbis.lifecycle.notifications.NotificationDispatcher`
by the app factory. It runs after the response, in its own session, so a
failure here never touches the mutation that triggered it.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.db.base import async_session_factory
from thorbis.domain.audit import AuditTrail
from thorbis.lifecycle.notifications import TransitionEvent


def audit_action(event: TransitionEvent) -> str:
    return "created" if event.is_creation else f"status_change_to_{event.to_status}"


class AuditTrailRecorder:
    def __init__(self, session_factory: Callable[[], AsyncSession] = async_session_factory):
        self._session_factory = session_factory

    async def __call__(self, event: TransitionEvent) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditTrail(
                    client_id=event.client_id,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    actor_id=event.actor_id,
                    action=audit_action(event),
                    from_status=event.from_status,
                    to_status=event.to_status,
                    occurred_at=event.occurred_at,
                )
            )
            await session.commit()
