"""Entity repository — the persistence collaborator of the lifecycle engine.

Scoped to one tenant *and* one entity type. Writes to an existing row go
through :meth:`EntityRepository.apply_if_unchanged`, which only succeeds when
the stored version still matches what the caller read.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.domain.entity import Entity
from thorbis.repositories.base import BaseRepository


class EntityRepository(BaseRepository[Entity]):
    model = Entity

    def __init__(self, session: AsyncSession, client_id: str, entity_type: str):
        super().__init__(session, client_id)
        self._entity_type = entity_type

    def _base_query(self):
        return super()._base_query().where(Entity.entity_type == self._entity_type)

    def _scoped_update(self, entity_id: str):
        return super()._scoped_update(entity_id).where(Entity.entity_type == self._entity_type)

    async def create(self, **kwargs: Any) -> Entity:
        kwargs["entity_type"] = self._entity_type
        return await super().create(**kwargs)

    async def current_version(self, entity_id: str) -> int | None:
        q = (
            select(Entity.version)
            .where(Entity.id == entity_id)
            .where(Entity.client_id == self._client_id)
            .where(Entity.entity_type == self._entity_type)
            .where(Entity.deleted_at.is_(None))
        )
        return (await self._session.execute(q)).scalar_one_or_none()

    async def apply_if_unchanged(
        self, entity_id: str, expected_version: int, **values: Any
    ) -> Entity | None:
        """Write *values* only if the row is still at *expected_version*.

        Returns the refreshed row, or ``None`` when another writer got there
        first (or the row is gone).
        """
        for key in ("id", "client_id", "entity_type", "version", "created_at", "created_by"):
            values.pop(key, None)

        result = await self._session.execute(
            self._scoped_update(entity_id)
            .where(Entity.version == expected_version)
            .values(version=Entity.version + 1, **values)
        )
        if result.rowcount == 0:
            return None
        await self._session.flush()
        return await self.get_by_id(entity_id, refresh=True)
