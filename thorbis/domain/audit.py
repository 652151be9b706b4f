"""Status history of lifecycle-managed entities.

One row per creation or status transition, written by
:class:`~thorbis.services.audit.AuditTrailRecorder` after the change has been
committed. Rows are append-only.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from thorbis.db.base import Base
from thorbis.domain.mixins import TenantMixin, utcnow


class AuditTrail(Base, TenantMixin):
    __tablename__ = "audit_trail"
    __table_args__ = (
        Index("ix_audit_trail_entity", "entity_type", "entity_id", "occurred_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(100), index=True, nullable=True)

    # "created" or "status_change_to_<status>"
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    from_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
