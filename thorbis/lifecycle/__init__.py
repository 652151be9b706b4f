"""Entity lifecycle engine — statuses, transitions, guarded mutations, summaries.

Nothing in this package touches FastAPI or the database.

Files:
  decision.py       — Decision / Rejection values and reason codes
  permissions.py    — Permission + Role enums, Actor, authorize()
  entity.py         — EntitySnapshot and MutationRequest
  definitions.py    — per-type EntityLifecycle tables and the default registry
  engine.py         — LifecycleEngine (validate_transition, authorize_mutation)
  summary.py        — compute_summary over entity collections
  rate_limit.py     — injected fixed-window rate limiter
  notifications.py  — post-mutation listeners (best effort)
"""

from thorbis.lifecycle.decision import Decision, Rejection, RejectionReason, Transition
from thorbis.lifecycle.definitions import (
    DEFAULT_REGISTRY,
    EntityLifecycle,
    LifecycleConfigError,
    LifecycleRegistry,
    UnknownEntityType,
)
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.lifecycle.entity import EntitySnapshot, MutationRequest
from thorbis.lifecycle.permissions import ROLE_PERMISSIONS, Actor, Permission, Role, authorize
from thorbis.lifecycle.summary import Summary, SummaryConfig, compute_summary

__all__ = [
    "DEFAULT_REGISTRY",
    "ROLE_PERMISSIONS",
    "Actor",
    "Decision",
    "EntityLifecycle",
    "EntitySnapshot",
    "LifecycleConfigError",
    "LifecycleEngine",
    "LifecycleRegistry",
    "MutationRequest",
    "Permission",
    "Rejection",
    "RejectionReason",
    "Role",
    "Summary",
    "SummaryConfig",
    "Transition",
    "UnknownEntityType",
    "authorize",
    "compute_summary",
]
