"""Generic async repository with soft-delete, pagination, and tenant isolation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic CRUD repository. All queries are filtered by client_id.

    Soft-deletes: rows with `deleted_at IS NOT NULL` are excluded from all
    standard reads. Hard-delete is intentionally never exposed.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession, client_id: str):
        self._session = session
        self._client_id = client_id

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _base_query(self):
        """Return a SELECT filtered by client_id and excluding soft-deleted rows."""
        q = select(self.model).where(self.model.client_id == self._client_id)
        if hasattr(self.model, "deleted_at"):
            q = q.where(self.model.deleted_at.is_(None))
        return q

    def _filtered(self, q, filters: dict[str, Any] | None):
        """Apply simple equality filters on known columns."""
        for col_name, value in (filters or {}).items():
            if value is not None and hasattr(self.model, col_name):
                q = q.where(getattr(self.model, col_name) == value)
        return q

    def _scoped_update(self, entity_id: str):
        q = (
            update(self.model)
            .where(self.model.id == entity_id)
            .where(self.model.client_id == self._client_id)
        )
        if hasattr(self.model, "deleted_at"):
            q = q.where(self.model.deleted_at.is_(None))
        return q.execution_options(synchronize_session=False)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: str, *, refresh: bool = False) -> ModelT | None:
        q = self._base_query().where(self.model.id == entity_id)
        if refresh:
            q = q.execution_options(populate_existing=True)
        result = await self._session.execute(q)
        return result.scalars().first()

    async def list(
        self,
        *,
        offset: int = 0,
        limit: int = 20,
        order_by: str = "created_at",
        order: str = "desc",
        filters: dict[str, Any] | None = None,
    ) -> tuple[list[ModelT], int]:
        """Return (items, total_count) with pagination and optional column filters."""
        q = self._filtered(self._base_query(), filters)

        # Count
        count_q = select(func.count()).select_from(q.subquery())
        total = (await self._session.execute(count_q)).scalar_one()

        # Order + paginate
        col = getattr(self.model, order_by, None)
        if col is not None:
            q = q.order_by(col.desc() if order == "desc" else col.asc())
        q = q.offset(offset).limit(limit)

        items = (await self._session.execute(q)).scalars().all()
        return list(items), total

    async def list_all(self, filters: dict[str, Any] | None = None) -> list[ModelT]:
        """Return every matching row (no pagination) — used for aggregates."""
        q = self._filtered(self._base_query(), filters)
        return list((await self._session.execute(q)).scalars().all())

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, **kwargs: Any) -> ModelT:
        instance = self.model(client_id=self._client_id, **kwargs)
        self._session.add(instance)
        await self._session.flush()  # populate id
        await self._session.refresh(instance)
        return instance

    async def soft_delete(self, entity_id: str) -> bool:
        result = await self._session.execute(
            self._scoped_update(entity_id).values(deleted_at=datetime.now(timezone.utc))
        )
        await self._session.flush()
        return result.rowcount > 0
