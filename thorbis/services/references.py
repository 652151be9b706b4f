"""Cross-entity checks run before a write is persisted.

The lifecycle engine only sees one entity at a time. Checks that need other
rows (a linked work order must exist, a technician cannot be booked twice)
live here, behind the :class:`ReferenceValidator` protocol that the app
factory places on ``app.state``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Mapping, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.core.exceptions import ReferenceNotFoundError, SchedulingConflictError
from thorbis.lifecycle.entity import EntitySnapshot
from thorbis.lifecycle.summary import parse_timestamp
from thorbis.repositories.entity import EntityRepository

logger = logging.getLogger(__name__)

# Payload field -> entity type it points at
DEFAULT_LINKS: Mapping[str, str] = {
    "work_order_id": "workorder",
    "estimate_id": "estimate",
    "invoice_id": "invoice",
    "appointment_id": "appointment",
    "campaign_id": "campaign",
}

# Appointment statuses that hold a slot in the assignee's calendar
BOOKED_STATUSES = frozenset({"scheduled", "confirmed", "in_progress"})
DEFAULT_DURATION_MINUTES = 60


class ReferenceValidator(Protocol):
    async def validate(
        self,
        session: AsyncSession,
        client_id: str,
        proposed: EntitySnapshot,
        current: Optional[EntitySnapshot] = None,
    ) -> None:
        """Raise an ``AppException`` if *proposed* cannot be stored.

        *current* is the stored snapshot for updates and ``None`` on create.
        """
        ...


def booked_window(snapshot: EntitySnapshot) -> Optional[tuple[datetime, datetime]]:
    """Return the ``(start, end)`` an appointment occupies, or ``None`` if unscheduled.

    The end is ``scheduled_end`` when present, otherwise ``scheduled_start``
    plus ``estimated_duration`` minutes.
    """
    start = parse_timestamp(snapshot.fields.get("scheduled_start"))
    if start is None:
        return None
    end = parse_timestamp(snapshot.fields.get("scheduled_end"))
    if end is None:
        try:
            minutes = float(snapshot.fields.get("estimated_duration") or DEFAULT_DURATION_MINUTES)
        except (TypeError, ValueError):
            minutes = DEFAULT_DURATION_MINUTES
        end = start + timedelta(minutes=minutes)
    # Naive and aware values cannot be compared; treat naive ones as unscheduled.
    if start.tzinfo is None or end.tzinfo is None:
        return None
    return start, end


class RepositoryReferenceValidator:
    """Default validator backed by the entity repository.

    * every link field in ``links`` that is new or changed must name a live
      entity of the linked type in the same tenant
    * a booked appointment may not overlap another booked appointment of the
      same assignee
    """

    def __init__(
        self,
        links: Mapping[str, str] = DEFAULT_LINKS,
        scheduled_types: frozenset[str] = frozenset({"appointment"}),
    ):
        self._links = dict(links)
        self._scheduled_types = scheduled_types

    async def validate(
        self,
        session: AsyncSession,
        client_id: str,
        proposed: EntitySnapshot,
        current: Optional[EntitySnapshot] = None,
    ) -> None:
        await self._check_links(session, client_id, proposed, current)
        if proposed.entity_type in self._scheduled_types:
            await self._check_schedule(session, client_id, proposed, current)

    async def _check_links(
        self,
        session: AsyncSession,
        client_id: str,
        proposed: EntitySnapshot,
        current: Optional[EntitySnapshot],
    ) -> None:
        for field_name, target_type in self._links.items():
            value = proposed.fields.get(field_name)
            if value in (None, ""):
                continue
            if current is not None and current.fields.get(field_name) == value:
                continue
            target = await EntityRepository(session, client_id, target_type).get_by_id(str(value))
            if target is None:
                raise ReferenceNotFoundError(field_name, str(value), target_type)

    async def _check_schedule(
        self,
        session: AsyncSession,
        client_id: str,
        proposed: EntitySnapshot,
        current: Optional[EntitySnapshot],
    ) -> None:
        if proposed.assignee_id is None or proposed.status not in BOOKED_STATUSES:
            return
        window = booked_window(proposed)
        if window is None:
            return
        if (
            current is not None
            and current.assignee_id == proposed.assignee_id
            and current.status in BOOKED_STATUSES
            and booked_window(current) == window
        ):
            return

        start, end = window
        rows = await EntityRepository(session, client_id, proposed.entity_type).list_all(
            filters={"assignee_id": proposed.assignee_id}
        )
        for row in rows:
            if row.id == proposed.id or row.status not in BOOKED_STATUSES:
                continue
            other = booked_window(row.to_snapshot())
            if other is not None and start < other[1] and other[0] < end:
                logger.info(
                    "Scheduling conflict for %s: %s overlaps %s", proposed.assignee_id, proposed.id, row.id
                )
                raise SchedulingConflictError(proposed.assignee_id, row.id)
