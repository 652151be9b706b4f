"""Entity lifecycle engine.

Pure and synchronous: every method takes a snapshot plus an actor and returns
a :class:`~thorbis.lifecycle.decision.Decision`. Nothing here performs I/O or
holds mutable state, so concurrent callers never interfere. Conflicts between
racing writers are resolved by the persistence layer's version check.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from thorbis.lifecycle.decision import ALLOWED, Decision, RejectionReason, Transition
from thorbis.lifecycle.definitions import DEFAULT_REGISTRY, EntityLifecycle, LifecycleRegistry
from thorbis.lifecycle.entity import RESERVED_FIELDS, EntitySnapshot, MutationRequest
from thorbis.lifecycle.permissions import Actor, authorize
from thorbis.lifecycle.summary import Summary, compute_summary

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_protected(lifecycle: EntityLifecycle, fields: Mapping[str, Any]) -> Decision:
    """Reject payload keys owned by the lifecycle: reserved columns and status stamps."""
    protected = sorted(set(fields) & (RESERVED_FIELDS | lifecycle.stamped_fields))
    if protected:
        return Decision.reject(
            RejectionReason.INVALID_FIELD,
            f"Fields {protected} cannot be set directly",
            fields=protected,
        )
    return ALLOWED


class LifecycleEngine:
    def __init__(self, registry: LifecycleRegistry = DEFAULT_REGISTRY, clock: Clock = _utcnow):
        self._registry = registry
        self._clock = clock

    @property
    def registry(self) -> LifecycleRegistry:
        return self._registry

    def lifecycle(self, entity_type: str) -> EntityLifecycle:
        """Return the lifecycle for *entity_type*; raises ``UnknownEntityType``."""
        return self._registry.get(entity_type)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def validate_transition(self, entity_type: str, current_status: str, requested_status: str) -> Decision:
        lifecycle = self.lifecycle(entity_type)
        for status in (current_status, requested_status):
            if not lifecycle.has_status(status):
                return Decision.reject(
                    RejectionReason.UNKNOWN_STATUS,
                    f"'{status}' is not a {entity_type} status",
                    entity_type=entity_type,
                    status=status,
                    allowed=list(lifecycle.statuses),
                )

        if requested_status == current_status:
            return ALLOWED
        if lifecycle.is_terminal(current_status):
            return Decision.reject(
                RejectionReason.TERMINAL_STATE_IMMUTABLE,
                f"{entity_type} is {current_status} and can no longer change status",
                from_status=current_status,
                to_status=requested_status,
            )
        if requested_status not in lifecycle.allowed_from(current_status):
            return Decision.reject(
                RejectionReason.INVALID_TRANSITION,
                f"Cannot move {entity_type} from {current_status} to {requested_status}",
                from_status=current_status,
                to_status=requested_status,
                allowed=sorted(lifecycle.allowed_from(current_status)),
            )
        return ALLOWED

    def next_actions(self, entity_type: str, status: str) -> list[str]:
        return list(self.lifecycle(entity_type).actions_for(status))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def authorize_mutation(self, entity: EntitySnapshot, request: MutationRequest, actor: Actor) -> Decision:
        """Decide whether *actor* may apply *request* to *entity*.

        Checks run in a fixed order: base write permission, terminal status
        (override roles only), frozen status, protected payload keys,
        transition table, then reassignment and ownership of status-sensitive
        changes. On success the decision carries the proposed next snapshot;
        *entity* itself is never modified.
        """
        lifecycle = self.lifecycle(entity.entity_type)

        decision = authorize(actor, lifecycle.write_permission)
        if not decision.allowed:
            return decision

        is_override = actor.role in lifecycle.override_roles
        if lifecycle.is_terminal(entity.status) and not is_override:
            return Decision.reject(
                RejectionReason.TERMINAL_STATE_IMMUTABLE,
                f"{entity.entity_type} is {entity.status} and can no longer be edited",
                from_status=entity.status,
                to_status=request.status or entity.status,
            )

        new_assignee = request.assignee_id if request.reassign else entity.assignee_id
        reassigning = new_assignee != entity.assignee_id
        if lifecycle.is_frozen(entity.status) and (request.fields or reassigning):
            return Decision.reject(
                RejectionReason.FIELDS_LOCKED,
                f"A {entity.status} {entity.entity_type} can only change status",
                status=entity.status,
            )

        decision = _check_protected(lifecycle, request.fields)
        if not decision.allowed:
            return decision

        target = request.status if request.changes_status else entity.status
        decision = self.validate_transition(entity.entity_type, entity.status, target)
        if not decision.allowed:
            return decision

        if reassigning and not lifecycle.can_assign(actor.role):
            return Decision.reject(
                RejectionReason.OWNERSHIP_REQUIRED,
                f"Not allowed to reassign the {entity.entity_type}",
                assignee_id=new_assignee,
            )

        # Ownership is judged against the stored assignee, never the proposed one.
        status_changes = target != entity.status
        guarded = sorted(set(request.fields) & lifecycle.owner_fields)
        needs_owner = (status_changes and target in lifecycle.owner_statuses) or bool(guarded)
        if needs_owner and not is_override and actor.id != entity.assignee_id:
            return Decision.reject(
                RejectionReason.OWNERSHIP_REQUIRED,
                f"Only the assignee can make this change to the {entity.entity_type}",
                status=target if status_changes else None,
                fields=guarded,
            )

        now = self._clock()
        fields: dict[str, Any] = {**entity.fields, **request.fields}
        if status_changes:
            stamp = lifecycle.status_timestamps.get(target)
            if stamp:
                fields[stamp] = now.isoformat()

        next_state = replace(
            entity,
            status=target,
            assignee_id=new_assignee,
            fields=fields,
            updated_by=actor.id,
            updated_at=now,
        )
        transition = Transition(entity.status, target) if status_changes else None
        return Decision.allow(next_state=next_state, transition=transition)

    def initial_snapshot(
        self,
        entity_type: str,
        entity_id: str,
        actor: Actor,
        *,
        assignee_id: Optional[str] = None,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> Decision:
        """Build the snapshot of a new entity in its initial status.

        Actors outside ``assign_roles`` may only assign the new entity to
        themselves.
        """
        lifecycle = self.lifecycle(entity_type)
        decision = authorize(actor, lifecycle.write_permission)
        if not decision.allowed:
            return decision

        decision = _check_protected(lifecycle, fields or {})
        if not decision.allowed:
            return decision

        if assignee_id not in (None, actor.id) and not lifecycle.can_assign(actor.role):
            return Decision.reject(
                RejectionReason.OWNERSHIP_REQUIRED,
                f"Not allowed to assign the {entity_type}",
                assignee_id=assignee_id,
            )

        now = self._clock()
        payload = dict(fields or {})
        stamp = lifecycle.status_timestamps.get(lifecycle.initial_status)
        if stamp:
            payload[stamp] = now.isoformat()
        snapshot = EntitySnapshot(
            id=entity_id,
            entity_type=entity_type,
            status=lifecycle.initial_status,
            assignee_id=assignee_id,
            created_by=actor.id,
            updated_by=actor.id,
            created_at=now,
            updated_at=now,
            version=1,
            fields=payload,
        )
        return Decision.allow(next_state=snapshot)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def summarize(self, entity_type: str, entities, group_by=None) -> Summary:
        return compute_summary(entities, group_by=group_by, config=self.lifecycle(entity_type).summary)
