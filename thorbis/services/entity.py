"""Entity service — runs lifecycle decisions against stored entities.

Flow for every write:
  1. Fetch the current snapshot from the repository (404 if missing)
  2. Ask the LifecycleEngine for a decision (pure, no I/O)
  3. Convert a rejection to LifecycleRejected
  4. Let the ReferenceValidator check links and bookings against other rows
  5. Persist the proposed state with a version check (VersionConflictError if
     someone else won)
  6. Return the stored row plus the transition that occurred, if any

Rule: No FastAPI here. Notifications are the router's concern (they run after
the response, outside the request transaction).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.core.exceptions import (
    LifecycleRejected,
    NotFoundError,
    UnknownEntityTypeError,
    ValidationError,
    VersionConflictError,
)
from thorbis.core.pagination import PaginationParams
from thorbis.domain.entity import Entity
from thorbis.lifecycle.decision import Decision, Transition
from thorbis.lifecycle.definitions import EntityLifecycle, UnknownEntityType
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.lifecycle.entity import MutationRequest
from thorbis.lifecycle.permissions import Actor, authorize
from thorbis.lifecycle.summary import Summary
from thorbis.repositories.entity import EntityRepository
from thorbis.schemas.entity import EntityCreate, EntityUpdate
from thorbis.services.references import ReferenceValidator, RepositoryReferenceValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    entity: Entity
    transition: Optional[Transition] = None


def _raise_for(decision: Decision) -> None:
    if not decision.allowed:
        raise LifecycleRejected(decision.rejection)


class EntityService:
    def __init__(
        self,
        session: AsyncSession,
        client_id: str,
        engine: LifecycleEngine,
        entity_type: str,
        references: Optional[ReferenceValidator] = None,
    ):
        try:
            self._lifecycle: EntityLifecycle = engine.lifecycle(entity_type)
        except UnknownEntityType as exc:
            raise UnknownEntityTypeError(exc.entity_type) from exc
        self._engine = engine
        self._client_id = client_id
        self._session = session
        self._references = references or RepositoryReferenceValidator()
        self._repo = EntityRepository(session, client_id, entity_type)

    @property
    def lifecycle(self) -> EntityLifecycle:
        return self._lifecycle

    @property
    def entity_type(self) -> str:
        return self._lifecycle.entity_type

    def next_actions(self, status: str) -> list[str]:
        return self._engine.next_actions(self.entity_type, status)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _require_read(self, actor: Actor) -> None:
        _raise_for(authorize(actor, self._lifecycle.read_permission))

    def _check_status_filter(self, status: Optional[str]) -> None:
        if status is not None and not self._lifecycle.has_status(status):
            raise ValidationError(
                f"'{status}' is not a {self.entity_type} status",
                details={"field": "status", "allowed": list(self._lifecycle.statuses)},
            )

    async def list_entities(
        self,
        actor: Actor,
        pagination: PaginationParams,
        status: Optional[str] = None,
        assignee_id: Optional[str] = None,
    ) -> tuple[list[Entity], int]:
        self._require_read(actor)
        self._check_status_filter(status)
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"status": status, "assignee_id": assignee_id},
        )

    async def get_entity(self, actor: Actor, entity_id: str) -> Entity:
        self._require_read(actor)
        return await self._fetch(entity_id)

    async def _fetch(self, entity_id: str) -> Entity:
        entity = await self._repo.get_by_id(entity_id)
        if not entity:
            raise NotFoundError(self.entity_type, entity_id)
        return entity

    async def summarize(
        self,
        actor: Actor,
        group_by: Optional[Sequence[str]] = None,
        status: Optional[str] = None,
    ) -> Summary:
        self._require_read(actor)
        self._check_status_filter(status)
        rows = await self._repo.list_all(filters={"status": status})
        return self._engine.summarize(
            self.entity_type, [row.to_snapshot() for row in rows], group_by=group_by
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_entity(self, actor: Actor, data: EntityCreate) -> MutationResult:
        decision = self._engine.initial_snapshot(
            self.entity_type,
            str(uuid.uuid4()),
            actor,
            assignee_id=data.assignee_id,
            fields=data.payload,
        )
        _raise_for(decision)
        snapshot = decision.next_state
        await self._references.validate(self._session, self._client_id, snapshot)
        entity = await self._repo.create(
            id=snapshot.id,
            status=snapshot.status,
            assignee_id=snapshot.assignee_id,
            created_by=snapshot.created_by,
            updated_by=snapshot.updated_by,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
            version=snapshot.version,
            data=dict(snapshot.fields),
        )
        logger.info("Created %s %s in %s", self.entity_type, entity.id, entity.status)
        return MutationResult(entity=entity)

    async def update_entity(self, actor: Actor, entity_id: str, data: EntityUpdate) -> MutationResult:
        current = await self._fetch(entity_id)

        request = MutationRequest(
            status=data.status,
            assignee_id=data.assignee_id,
            fields=data.payload,
            reassign="assignee_id" in data.model_fields_set,
        )
        snapshot = current.to_snapshot()
        decision = self._engine.authorize_mutation(snapshot, request, actor)
        if not decision.allowed:
            logger.info(
                "Rejected %s on %s %s by %s: %s",
                decision.reason.value,
                self.entity_type,
                entity_id,
                actor.id,
                decision.rejection.message,
            )
            raise LifecycleRejected(decision.rejection)

        nxt = decision.next_state
        await self._references.validate(self._session, self._client_id, nxt, snapshot)
        updated = await self._repo.apply_if_unchanged(
            entity_id,
            data.version,
            status=nxt.status,
            assignee_id=nxt.assignee_id,
            updated_by=nxt.updated_by,
            updated_at=nxt.updated_at,
            data=dict(nxt.fields),
        )
        if updated is None:
            raise VersionConflictError(
                entity_id, data.version, await self._repo.current_version(entity_id)
            )
        return MutationResult(entity=updated, transition=decision.transition)

    async def delete_entity(self, actor: Actor, entity_id: str) -> None:
        """Administrative soft delete; lifecycle rules do not apply here."""
        _raise_for(authorize(actor, self._lifecycle.delete_permission))
        deleted = await self._repo.soft_delete(entity_id)
        if not deleted:
            raise NotFoundError(self.entity_type, entity_id)
        logger.info("Deleted %s %s by %s", self.entity_type, entity_id, actor.id)
