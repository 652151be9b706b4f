"""SQLAlchemy ORM model for lifecycle-managed business records.

Every entity type (work order, invoice, campaign, ...) shares one table;
``entity_type`` selects the lifecycle that governs ``status``. Domain fields
that differ per type live in the ``data`` JSON column.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from thorbis.db.base import Base
from thorbis.domain.mixins import (
    ActorStampMixin,
    SoftDeleteMixin,
    TenantMixin,
    TimestampMixin,
    VersionMixin,
)
from thorbis.lifecycle.entity import EntitySnapshot


class Entity(Base, TenantMixin, ActorStampMixin, VersionMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "entities"
    __table_args__ = (
        Index("ix_entities_client_type_status", "client_id", "entity_type", "status"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(100), index=True, nullable=True)

    data: Mapped[Any] = mapped_column(JSON, default=dict, nullable=False)

    def to_snapshot(self) -> EntitySnapshot:
        return EntitySnapshot(
            id=self.id,
            entity_type=self.entity_type,
            status=self.status,
            assignee_id=self.assignee_id,
            created_by=self.created_by,
            updated_by=self.updated_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
            fields=self.data or {},
        )
