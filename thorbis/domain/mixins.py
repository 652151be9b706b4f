"""Column mixins shared by lifecycle-managed tables."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TenantMixin:
    """Owning tenant; every repository query filters on it."""

    client_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class SoftDeleteMixin:
    """Rows with ``deleted_at`` set are invisible to standard reads."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ActorStampMixin:
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class VersionMixin:
    """Optimistic concurrency counter, bumped by every applied write."""

    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
