"""Per-entity-type lifecycle definitions.

Each entity type declares its own status vocabulary, transition table,
guards and suggested next actions. Tables are independent: two entity types
may give the same status name different meaning (``cancelled`` is terminal
for work orders but can be re-scheduled for appointments).

Definitions are frozen at import and checked once at startup through
:meth:`LifecycleRegistry.check`; a broken table is a configuration bug and
must stop the process before it serves traffic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, Mapping, Optional

from thorbis.lifecycle.permissions import Permission, Role
from thorbis.lifecycle.summary import SummaryConfig


class LifecycleConfigError(Exception):
    """Raised at startup when a lifecycle definition is inconsistent."""


class UnknownEntityType(LookupError):
    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"Unknown entity type '{entity_type}'")


def _freeze_table(table: Mapping[str, Iterable[str]]) -> Mapping[str, FrozenSet[str]]:
    return MappingProxyType({status: frozenset(targets) for status, targets in table.items()})


@dataclass(frozen=True)
class EntityLifecycle:
    entity_type: str
    statuses: tuple[str, ...]
    initial_status: str
    transitions: Mapping[str, FrozenSet[str]]
    read_permission: Permission
    write_permission: Permission
    delete_permission: Permission
    override_roles: FrozenSet[Role] = frozenset({Role.ADMIN, Role.OWNER})
    # Statuses only the assignee (or an override role) may move the entity to.
    owner_statuses: FrozenSet[str] = frozenset()
    owner_fields: FrozenSet[str] = frozenset()
    # Roles that may change the assignee; defaults to ``override_roles``.
    assign_roles: Optional[FrozenSet[Role]] = None
    # Statuses in which the payload and assignee are read-only for everyone.
    frozen_statuses: FrozenSet[str] = frozenset()
    # Payload field stamped with the transition time when a status is entered.
    status_timestamps: Mapping[str, str] = field(default_factory=dict)
    next_actions: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    summary: SummaryConfig = field(default_factory=SummaryConfig)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transitions", _freeze_table(self.transitions))
        object.__setattr__(self, "override_roles", frozenset(self.override_roles))
        assign_roles = self.override_roles if self.assign_roles is None else self.assign_roles
        object.__setattr__(self, "assign_roles", frozenset(assign_roles))
        object.__setattr__(self, "frozen_statuses", frozenset(self.frozen_statuses))
        object.__setattr__(self, "owner_statuses", frozenset(self.owner_statuses))
        object.__setattr__(self, "owner_fields", frozenset(self.owner_fields))
        object.__setattr__(self, "status_timestamps", MappingProxyType(dict(self.status_timestamps)))
        object.__setattr__(
            self,
            "next_actions",
            MappingProxyType({k: tuple(v) for k, v in self.next_actions.items()}),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_status(self, status: str) -> bool:
        return status in self.statuses

    def allowed_from(self, status: str) -> FrozenSet[str]:
        return self.transitions.get(status, frozenset())

    def is_terminal(self, status: str) -> bool:
        return self.has_status(status) and not self.transitions.get(status)

    @property
    def terminal_statuses(self) -> tuple[str, ...]:
        return tuple(s for s in self.statuses if not self.transitions.get(s))

    def is_frozen(self, status: str) -> bool:
        return status in self.frozen_statuses

    def can_assign(self, role: Role) -> bool:
        return role in self.assign_roles

    @property
    def stamped_fields(self) -> FrozenSet[str]:
        """Payload fields written by the engine on status entry."""
        return frozenset(self.status_timestamps.values())

    def actions_for(self, status: str) -> tuple[str, ...]:
        return self.next_actions.get(status, ())

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def check(self) -> None:
        name = self.entity_type
        declared = set(self.statuses)
        if len(declared) != len(self.statuses):
            raise LifecycleConfigError(f"{name}: duplicate statuses in {self.statuses}")
        if self.initial_status not in declared:
            raise LifecycleConfigError(f"{name}: initial status '{self.initial_status}' is not declared")

        missing = declared - set(self.transitions)
        if missing:
            raise LifecycleConfigError(f"{name}: no transition entry for {sorted(missing)}")
        extra = set(self.transitions) - declared
        if extra:
            raise LifecycleConfigError(f"{name}: transition entries for undeclared {sorted(extra)}")

        for status, targets in self.transitions.items():
            unknown = targets - declared
            if unknown:
                raise LifecycleConfigError(f"{name}: '{status}' targets undeclared {sorted(unknown)}")

        if self.is_terminal(self.initial_status):
            raise LifecycleConfigError(f"{name}: initial status '{self.initial_status}' is terminal")

        for label, keys in (
            ("owner_statuses", self.owner_statuses),
            ("frozen_statuses", self.frozen_statuses),
            ("status_timestamps", self.status_timestamps.keys()),
            ("next_actions", self.next_actions.keys()),
        ):
            unknown = set(keys) - declared
            if unknown:
                raise LifecycleConfigError(f"{name}: {label} reference undeclared {sorted(unknown)}")

        for perm, action in (
            (self.read_permission, "read"),
            (self.write_permission, "write"),
            (self.delete_permission, "delete"),
        ):
            if perm.action != action:
                raise LifecycleConfigError(f"{name}: {perm.value} is not a {action} permission")


class LifecycleRegistry:
    """Lookup of :class:`EntityLifecycle` by entity type."""

    def __init__(self, lifecycles: Iterable[EntityLifecycle]):
        table: dict[str, EntityLifecycle] = {}
        for lifecycle in lifecycles:
            if lifecycle.entity_type in table:
                raise LifecycleConfigError(f"Duplicate lifecycle for '{lifecycle.entity_type}'")
            table[lifecycle.entity_type] = lifecycle
        self._lifecycles = MappingProxyType(table)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._lifecycles

    def __iter__(self) -> Iterator[EntityLifecycle]:
        return iter(self._lifecycles.values())

    def __len__(self) -> int:
        return len(self._lifecycles)

    def get(self, entity_type: str) -> EntityLifecycle:
        try:
            return self._lifecycles[entity_type]
        except KeyError:
            raise UnknownEntityType(entity_type) from None

    def find(self, entity_type: str) -> Optional[EntityLifecycle]:
        return self._lifecycles.get(entity_type)

    def check(self) -> None:
        for lifecycle in self:
            lifecycle.check()


# ---------------------------------------------------------------------------
# Built-in lifecycles
# ---------------------------------------------------------------------------

WORK_ORDER = EntityLifecycle(
    entity_type="workorder",
    statuses=("created", "scheduled", "assigned", "in_progress", "on_hold", "completed", "cancelled"),
    initial_status="created",
    transitions={
        "created": {"scheduled", "assigned", "cancelled"},
        "scheduled": {"assigned", "in_progress", "cancelled"},
        "assigned": {"in_progress", "on_hold", "cancelled"},
        "in_progress": {"completed", "on_hold", "cancelled"},
        "on_hold": {"assigned", "in_progress", "cancelled"},
        "completed": set(),
        "cancelled": set(),
    },
    read_permission=Permission.WORKORDER_READ,
    write_permission=Permission.WORKORDER_WRITE,
    delete_permission=Permission.WORKORDER_DELETE,
    override_roles={Role.MANAGER, Role.ADMIN, Role.OWNER},
    owner_statuses={"completed"},
    owner_fields={"completion_notes", "actual_duration"},
    assign_roles={Role.DISPATCHER, Role.MANAGER, Role.ADMIN, Role.OWNER},
    status_timestamps={
        "scheduled": "scheduled_at",
        "assigned": "assigned_at",
        "in_progress": "started_at",
        "completed": "completed_at",
        "cancelled": "cancelled_at",
    },
    next_actions={
        "created": ("Schedule appointment", "Assign technician"),
        "scheduled": ("Assign technician", "Confirm with customer"),
        "assigned": ("Dispatch technician", "Send arrival window"),
        "in_progress": ("Record labor and parts", "Complete work order"),
        "on_hold": ("Resolve blocker", "Reassign technician"),
        "completed": ("Create invoice", "Request customer review"),
        "cancelled": ("Notify customer",),
    },
    summary=SummaryConfig(
        value_field="total_cost",
        group_by=("status", "priority"),
        durations={"average_completion_hours": ("started_at", "completed_at")},
    ),
)

INVOICE = EntityLifecycle(
    entity_type="invoice",
    statuses=("draft", "sent", "viewed", "partial_paid", "paid", "overdue", "cancelled", "refunded"),
    initial_status="draft",
    transitions={
        "draft": {"sent", "cancelled"},
        "sent": {"viewed", "partial_paid", "paid", "overdue", "cancelled"},
        "viewed": {"partial_paid", "paid", "overdue", "cancelled"},
        "partial_paid": {"paid", "overdue", "refunded"},
        "overdue": {"partial_paid", "paid", "cancelled"},
        "paid": {"refunded"},
        "cancelled": set(),
        "refunded": set(),
    },
    read_permission=Permission.INVOICE_READ,
    write_permission=Permission.INVOICE_WRITE,
    delete_permission=Permission.INVOICE_DELETE,
    override_roles={Role.OWNER},
    owner_statuses={"refunded"},
    status_timestamps={
        "sent": "sent_at",
        "viewed": "viewed_at",
        "paid": "paid_at",
        "cancelled": "cancelled_at",
        "refunded": "refunded_at",
    },
    next_actions={
        "draft": ("Review line items", "Send to customer"),
        "sent": ("Send reminder",),
        "viewed": ("Send reminder", "Offer payment plan"),
        "partial_paid": ("Collect remaining balance",),
        "overdue": ("Apply late fee", "Send final notice"),
        "paid": ("Sync to accounting",),
        "refunded": ("Sync to accounting",),
    },
    summary=SummaryConfig(
        value_field="total_amount",
        group_by=("status",),
        durations={"average_hours_to_payment": ("sent_at", "paid_at")},
    ),
)

ESTIMATE = EntityLifecycle(
    entity_type="estimate",
    statuses=("draft", "sent", "viewed", "accepted", "rejected", "expired", "converted"),
    initial_status="draft",
    transitions={
        "draft": {"sent", "expired"},
        "sent": {"viewed", "accepted", "rejected", "expired"},
        "viewed": {"accepted", "rejected", "expired"},
        "accepted": {"converted"},
        "rejected": set(),
        "expired": set(),
        "converted": set(),
    },
    read_permission=Permission.ESTIMATE_READ,
    write_permission=Permission.ESTIMATE_WRITE,
    delete_permission=Permission.ESTIMATE_DELETE,
    override_roles={Role.MANAGER, Role.ADMIN, Role.OWNER},
    status_timestamps={"sent": "sent_at", "accepted": "accepted_at", "converted": "converted_at"},
    next_actions={
        "draft": ("Send to customer",),
        "sent": ("Follow up",),
        "viewed": ("Follow up", "Offer discount"),
        "accepted": ("Convert to work order",),
    },
    summary=SummaryConfig(
        value_field="total_amount",
        group_by=("status",),
        durations={"average_acceptance_hours": ("sent_at", "accepted_at")},
    ),
)

APPOINTMENT = EntityLifecycle(
    entity_type="appointment",
    statuses=("scheduled", "confirmed", "in_progress", "completed", "cancelled", "no_show", "rescheduled"),
    initial_status="scheduled",
    transitions={
        "scheduled": {"confirmed", "cancelled", "rescheduled"},
        "confirmed": {"in_progress", "cancelled", "no_show", "rescheduled"},
        "in_progress": {"completed", "cancelled"},
        "completed": set(),
        "cancelled": {"scheduled"},
        "no_show": {"rescheduled"},
        "rescheduled": {"scheduled", "confirmed"},
    },
    read_permission=Permission.APPOINTMENT_READ,
    write_permission=Permission.APPOINTMENT_WRITE,
    delete_permission=Permission.APPOINTMENT_DELETE,
    override_roles={Role.DISPATCHER, Role.MANAGER, Role.ADMIN, Role.OWNER},
    owner_statuses={"in_progress", "completed"},
    frozen_statuses={"completed", "cancelled", "no_show"},
    owner_fields={"completion_notes"},
    status_timestamps={
        "confirmed": "confirmed_at",
        "in_progress": "started_at",
        "completed": "completed_at",
        "cancelled": "cancelled_at",
        "no_show": "no_show_at",
    },
    next_actions={
        "scheduled": ("Confirm with customer",),
        "confirmed": ("Send arrival window", "Start appointment"),
        "in_progress": ("Complete appointment",),
        "completed": ("Update work order",),
        "cancelled": ("Reschedule",),
        "no_show": ("Reschedule", "Contact customer"),
        "rescheduled": ("Confirm new time",),
    },
    summary=SummaryConfig(
        value_field="estimated_cost",
        group_by=("status",),
        durations={"average_duration_hours": ("started_at", "completed_at")},
    ),
)

CAMPAIGN = EntityLifecycle(
    entity_type="campaign",
    statuses=("draft", "scheduled", "active", "paused", "completed", "cancelled", "archived"),
    initial_status="draft",
    transitions={
        "draft": {"scheduled", "active", "cancelled"},
        "scheduled": {"active", "paused", "cancelled"},
        "active": {"paused", "completed", "cancelled"},
        "paused": {"active", "completed", "cancelled"},
        "completed": {"archived"},
        "cancelled": {"archived"},
        "archived": set(),
    },
    read_permission=Permission.CAMPAIGN_READ,
    write_permission=Permission.CAMPAIGN_WRITE,
    delete_permission=Permission.CAMPAIGN_DELETE,
    override_roles={Role.ADMIN, Role.OWNER},
    owner_fields={"budget"},
    status_timestamps={"active": "launched_at", "completed": "completed_at", "archived": "archived_at"},
    next_actions={
        "draft": ("Choose audience", "Schedule launch"),
        "scheduled": ("Preview content",),
        "active": ("Review performance", "Pause campaign"),
        "paused": ("Resume campaign",),
        "completed": ("Export results", "Archive campaign"),
        "cancelled": ("Archive campaign",),
    },
    summary=SummaryConfig(
        value_field="budget",
        group_by=("status", "channel"),
        durations={"average_run_hours": ("launched_at", "completed_at")},
    ),
)

EXPERIMENT = EntityLifecycle(
    entity_type="experiment",
    statuses=("draft", "running", "paused", "concluded", "cancelled"),
    initial_status="draft",
    transitions={
        "draft": {"running", "cancelled"},
        "running": {"paused", "concluded"},
        "paused": {"running", "concluded", "cancelled"},
        "concluded": set(),
        "cancelled": set(),
    },
    read_permission=Permission.EXPERIMENT_READ,
    write_permission=Permission.EXPERIMENT_WRITE,
    delete_permission=Permission.EXPERIMENT_DELETE,
    override_roles={Role.OWNER},
    owner_statuses={"concluded"},
    owner_fields={"winning_variant"},
    status_timestamps={"running": "started_at", "concluded": "concluded_at"},
    next_actions={
        "draft": ("Define variants", "Start experiment"),
        "running": ("Check significance",),
        "paused": ("Resume experiment",),
        "concluded": ("Roll out winning variant",),
    },
    summary=SummaryConfig(
        value_field="sample_size",
        group_by=("status",),
        durations={"average_runtime_hours": ("started_at", "concluded_at")},
    ),
)

DEFAULT_REGISTRY = LifecycleRegistry([WORK_ORDER, INVOICE, ESTIMATE, APPOINTMENT, CAMPAIGN, EXPERIMENT])
