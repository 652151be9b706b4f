"""Domain package — all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  entity.py  — lifecycle-managed records (work orders, invoices, campaigns, ...)
  audit.py   — Immutable status-change audit trail (never updated or deleted)
  mixins.py  — Shared TimestampMixin, TenantMixin
"""

from thorbis.domain.audit import AuditTrail
from thorbis.domain.entity import Entity

__all__ = [
    "AuditTrail",
    "Entity",
]
