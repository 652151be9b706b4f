"""Completing an appointment completes the work order it was booked for.

Runs as a notification listener, after the appointment change has been
committed, in its own session. The work order still goes through its own
lifecycle: if its table does not allow ``completed`` from where it stands,
the cascade is logged and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.db.base import async_session_factory
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.lifecycle.entity import MutationRequest
from thorbis.lifecycle.notifications import NotificationDispatcher, TransitionEvent
from thorbis.lifecycle.permissions import Actor, Role
from thorbis.repositories.entity import EntityRepository

logger = logging.getLogger(__name__)

CASCADE_ACTOR = Actor.for_role("system:appointment-cascade", Role.OWNER)


class AppointmentCompletionCascade:
    source_type = "appointment"
    target_type = "workorder"
    link_field = "work_order_id"
    trigger_status = "completed"
    target_status = "completed"

    def __init__(
        self,
        engine: LifecycleEngine,
        notifier: Optional[NotificationDispatcher] = None,
        session_factory: Callable[[], AsyncSession] = async_session_factory,
    ):
        self._engine = engine
        self._notifier = notifier
        self._session_factory = session_factory

    async def __call__(self, event: TransitionEvent) -> None:
        if event.entity_type != self.source_type or event.to_status != self.trigger_status:
            return
        if event.from_status == self.trigger_status:
            return

        async with self._session_factory() as session:
            source = await EntityRepository(session, event.client_id, self.source_type).get_by_id(event.entity_id)
            target_id = (source.data or {}).get(self.link_field) if source else None
            if not target_id:
                return

            repo = EntityRepository(session, event.client_id, self.target_type)
            target = await repo.get_by_id(str(target_id))
            if target is None:
                logger.warning("Cascade from %s %s: %s %s not found",
                               self.source_type, event.entity_id, self.target_type, target_id)
                return

            current = target.to_snapshot()
            decision = self._engine.authorize_mutation(
                current, MutationRequest(status=self.target_status), CASCADE_ACTOR
            )
            if not decision.allowed:
                logger.info(
                    "Cascade from %s %s skipped for %s %s: %s",
                    self.source_type,
                    event.entity_id,
                    self.target_type,
                    target.id,
                    decision.rejection.message,
                )
                return
            if decision.transition is None:
                return

            nxt = decision.next_state
            updated = await repo.apply_if_unchanged(
                target.id,
                current.version,
                status=nxt.status,
                updated_by=nxt.updated_by,
                updated_at=nxt.updated_at,
                data=dict(nxt.fields),
            )
            if updated is None:
                logger.warning("Cascade lost a version race on %s %s", self.target_type, target.id)
                return
            await session.commit()

        logger.info("Completed %s %s after %s %s", self.target_type, target.id, self.source_type, event.entity_id)
        if self._notifier is not None:
            await self._notifier.dispatch(
                TransitionEvent(
                    entity_id=target.id,
                    entity_type=self.target_type,
                    client_id=event.client_id,
                    actor_id=CASCADE_ACTOR.id,
                    from_status=current.status,
                    to_status=nxt.status,
                )
            )
