"""
Tests for LifecycleEngine.authorize_mutation and initial_snapshot
"""
import pytest

from thorbis.lifecycle import DEFAULT_REGISTRY, Actor, EntitySnapshot, MutationRequest, Permission, RejectionReason, Role
from thorbis.lifecycle.definitions import WORK_ORDER

from tests.conftest import FIXED_NOW


@pytest.mark.unit
class TestPermissionCheck:
    @pytest.mark.parametrize("status", WORK_ORDER.statuses)
    def test_viewer_rejected_even_for_noop(self, engine, work_order, viewer, status):
        decision = engine.authorize_mutation(work_order(status=status), MutationRequest(status=status), viewer)
        assert decision.reason is RejectionReason.PERMISSION_DENIED
        assert decision.rejection.details == {"permission": "hs:workorder:write"}

    @pytest.mark.parametrize(
        "entity_type, status",
        [(lc.entity_type, status) for lc in DEFAULT_REGISTRY for status in lc.statuses],
    )
    def test_viewer_rejected_in_every_status(self, engine, viewer, entity_type, status):
        entity = EntitySnapshot(id="e-1", entity_type=entity_type, status=status, assignee_id=viewer.id)
        decision = engine.authorize_mutation(entity, MutationRequest(fields={"note": "x"}), viewer)
        assert decision.reason is RejectionReason.PERMISSION_DENIED

    def test_rejection_does_not_name_roles(self, engine, work_order, viewer):
        decision = engine.authorize_mutation(work_order(), MutationRequest(), viewer)
        message = decision.rejection.message.lower()
        for role in Role:
            assert role.value not in message

    def test_extra_grant_lets_viewer_write(self, engine, work_order):
        actor = Actor.for_role("user-viewer", Role.VIEWER, extra=[Permission.WORKORDER_WRITE])
        decision = engine.authorize_mutation(work_order(), MutationRequest(fields={"priority": "low"}), actor)
        assert decision.allowed

    def test_technician_cannot_write_invoices(self, engine, technician):
        invoice = EntitySnapshot(id="inv-1", entity_type="invoice", status="draft")
        decision = engine.authorize_mutation(invoice, MutationRequest(status="sent"), technician)
        assert decision.reason is RejectionReason.PERMISSION_DENIED


@pytest.mark.unit
class TestTerminalEntities:
    def test_technician_cannot_edit_completed(self, engine, work_order, technician):
        entity = work_order(status="completed")
        decision = engine.authorize_mutation(entity, MutationRequest(fields={"priority": "low"}), technician)
        assert decision.reason is RejectionReason.TERMINAL_STATE_IMMUTABLE

    def test_override_role_may_edit_fields_of_completed(self, engine, work_order, manager):
        entity = work_order(status="completed")
        decision = engine.authorize_mutation(
            entity, MutationRequest(fields={"completion_notes": "Invoice sent twice"}), manager
        )
        assert decision.allowed
        assert decision.next_state.status == "completed"
        assert decision.transition is None

    def test_override_role_cannot_reopen(self, engine, work_order, manager):
        entity = work_order(status="completed")
        decision = engine.authorize_mutation(entity, MutationRequest(status="in_progress"), manager)
        assert decision.reason is RejectionReason.TERMINAL_STATE_IMMUTABLE


@pytest.mark.unit
class TestFieldAndTransitionChecks:
    def test_reserved_field_rejected(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(), MutationRequest(fields={"version": 9}), manager)
        assert decision.reason is RejectionReason.INVALID_FIELD
        assert decision.rejection.details == {"fields": ["version"]}

    def test_invalid_transition_rejected(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(status="created"), MutationRequest(status="completed"), manager)
        assert decision.reason is RejectionReason.INVALID_TRANSITION

    def test_unknown_status_rejected(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(), MutationRequest(status="archived"), manager)
        assert decision.reason is RejectionReason.UNKNOWN_STATUS

    def test_status_timestamp_cannot_be_forged(self, engine, work_order, technician):
        decision = engine.authorize_mutation(
            work_order(status="assigned"),
            MutationRequest(status="in_progress", fields={"started_at": "2020-01-01T00:00:00+00:00"}),
            technician,
        )
        assert decision.reason is RejectionReason.INVALID_FIELD
        assert decision.rejection.details == {"fields": ["started_at"]}

    def test_status_timestamp_protected_for_override_roles(self, engine, work_order, manager):
        decision = engine.authorize_mutation(
            work_order(status="completed"), MutationRequest(fields={"completed_at": "2020-01-01"}), manager
        )
        assert decision.reason is RejectionReason.INVALID_FIELD


@pytest.mark.unit
class TestOwnership:
    def test_assignee_may_complete(self, engine, work_order, technician):
        decision = engine.authorize_mutation(work_order(status="in_progress"), MutationRequest(status="completed"), technician)
        assert decision.allowed

    def test_other_technician_may_not_complete(self, engine, work_order, other_technician):
        decision = engine.authorize_mutation(
            work_order(status="in_progress"), MutationRequest(status="completed"), other_technician
        )
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED
        assert decision.rejection.details["status"] == "completed"

    def test_other_technician_may_not_edit_owner_fields(self, engine, work_order, other_technician):
        decision = engine.authorize_mutation(
            work_order(status="in_progress"), MutationRequest(fields={"actual_duration": 3}), other_technician
        )
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED
        assert decision.rejection.details["fields"] == ["actual_duration"]

    def test_other_technician_may_put_on_hold(self, engine, work_order, other_technician):
        decision = engine.authorize_mutation(
            work_order(status="in_progress"), MutationRequest(status="on_hold"), other_technician
        )
        assert decision.allowed

    def test_manager_overrides_ownership(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(status="in_progress"), MutationRequest(status="completed"), manager)
        assert decision.allowed


@pytest.mark.unit
class TestNextState:
    def test_transition_stamps_timestamp_and_actor(self, engine, work_order, technician):
        entity = work_order(status="assigned")
        decision = engine.authorize_mutation(
            entity, MutationRequest(status="in_progress", fields={"priority": "urgent"}), technician
        )
        state = decision.next_state
        assert state.status == "in_progress"
        assert state.fields["started_at"] == FIXED_NOW.isoformat()
        assert state.fields["priority"] == "urgent"
        assert state.fields["total_cost"] == 450.0
        assert state.updated_by == "tech-1"
        assert state.updated_at == FIXED_NOW
        assert decision.transition.from_status == "assigned"
        assert decision.transition.to_status == "in_progress"

    def test_input_snapshot_untouched(self, engine, work_order, technician):
        entity = work_order(status="assigned")
        engine.authorize_mutation(entity, MutationRequest(status="in_progress", fields={"priority": "urgent"}), technician)
        assert entity.status == "assigned"
        assert entity.fields["priority"] == "high"
        assert "started_at" not in entity.fields

    def test_reassignment(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(), MutationRequest(assignee_id="tech-2"), manager)
        assert decision.next_state.assignee_id == "tech-2"
        assert decision.transition is None

    def test_version_is_left_to_persistence(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(), MutationRequest(fields={"priority": "low"}), manager)
        assert decision.next_state.version == 3


@pytest.mark.unit
class TestInitialSnapshot:
    def test_starts_in_initial_status(self, engine, manager):
        decision = engine.initial_snapshot("invoice", "inv-1", manager, fields={"total_amount": 99})
        state = decision.next_state
        assert state.status == "draft"
        assert state.version == 1
        assert state.created_by == "mgr-1"
        assert state.created_at == FIXED_NOW

    def test_initial_status_without_timestamp_field(self, engine, manager):
        # "scheduled" has no timestamp field for appointments
        decision = engine.initial_snapshot("appointment", "apt-1", manager)
        assert dict(decision.next_state.fields) == {}

    def test_viewer_cannot_create(self, engine, viewer):
        decision = engine.initial_snapshot("workorder", "wo-1", viewer)
        assert decision.reason is RejectionReason.PERMISSION_DENIED

    def test_reserved_fields_rejected(self, engine, manager):
        decision = engine.initial_snapshot("workorder", "wo-1", manager, fields={"status": "completed"})
        assert decision.reason is RejectionReason.INVALID_FIELD

    def test_status_timestamps_cannot_be_supplied(self, engine, manager):
        decision = engine.initial_snapshot("invoice", "inv-1", manager, fields={"paid_at": "2020-01-01"})
        assert decision.reason is RejectionReason.INVALID_FIELD
        assert decision.rejection.details == {"fields": ["paid_at"]}

    def test_technician_may_only_assign_self(self, engine, technician):
        assert engine.initial_snapshot("workorder", "wo-1", technician, assignee_id="tech-1").allowed
        decision = engine.initial_snapshot("workorder", "wo-1", technician, assignee_id="tech-2")
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED
        assert decision.rejection.details == {"assignee_id": "tech-2"}


@pytest.mark.unit
class TestReassignment:
    def test_technician_cannot_take_over_work_order(self, engine, work_order, other_technician):
        entity = work_order(status="in_progress")
        decision = engine.authorize_mutation(entity, MutationRequest(assignee_id="tech-2"), other_technician)
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED
        assert decision.rejection.details == {"assignee_id": "tech-2"}

    def test_take_over_and_complete_in_one_request(self, engine, work_order, other_technician):
        entity = work_order(status="in_progress")
        decision = engine.authorize_mutation(
            entity, MutationRequest(status="completed", assignee_id="tech-2"), other_technician
        )
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED

    def test_assignee_cannot_hand_off(self, engine, work_order, technician):
        decision = engine.authorize_mutation(work_order(), MutationRequest(assignee_id="tech-2"), technician)
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED

    def test_same_assignee_is_not_a_reassignment(self, engine, work_order, technician):
        decision = engine.authorize_mutation(
            work_order(), MutationRequest(assignee_id="tech-1", fields={"priority": "low"}), technician
        )
        assert decision.allowed

    def test_dispatcher_assigns_work_orders(self, engine, work_order):
        dispatcher = Actor.for_role("disp-1", Role.DISPATCHER)
        decision = engine.authorize_mutation(work_order(), MutationRequest(assignee_id="tech-2"), dispatcher)
        assert decision.allowed
        assert decision.next_state.assignee_id == "tech-2"

    def test_explicit_unassign(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(), MutationRequest(assignee_id=None, reassign=True), manager)
        assert decision.allowed
        assert decision.next_state.assignee_id is None

    def test_omitted_assignee_is_kept(self, engine, work_order, manager):
        decision = engine.authorize_mutation(work_order(), MutationRequest(fields={"priority": "low"}), manager)
        assert decision.next_state.assignee_id == "tech-1"

    def test_technician_cannot_unassign(self, engine, work_order, technician):
        decision = engine.authorize_mutation(work_order(), MutationRequest(reassign=True), technician)
        assert decision.reason is RejectionReason.OWNERSHIP_REQUIRED


@pytest.mark.unit
class TestFrozenStatuses:
    @pytest.fixture
    def appointment(self):
        def _make(status):
            return EntitySnapshot(
                id="apt-1",
                entity_type="appointment",
                status=status,
                assignee_id="tech-1",
                fields={"scheduled_start": "2026-10-20T09:00:00+00:00"},
            )

        return _make

    @pytest.mark.parametrize("status", ["completed", "cancelled", "no_show"])
    def test_fields_locked_for_every_role(self, engine, appointment, status):
        owner = Actor.for_role("owner-1", Role.OWNER)
        decision = engine.authorize_mutation(appointment(status), MutationRequest(fields={"notes": "late"}), owner)
        assert decision.reason is RejectionReason.FIELDS_LOCKED
        assert decision.rejection.details == {"status": status}

    def test_reassignment_locked(self, engine, appointment, manager):
        decision = engine.authorize_mutation(appointment("cancelled"), MutationRequest(assignee_id="tech-2"), manager)
        assert decision.reason is RejectionReason.FIELDS_LOCKED

    def test_status_change_out_of_frozen_status_allowed(self, engine, appointment, manager):
        decision = engine.authorize_mutation(appointment("cancelled"), MutationRequest(status="scheduled"), manager)
        assert decision.allowed
        assert decision.next_state.status == "scheduled"

    def test_active_appointment_is_editable(self, engine, appointment, manager):
        decision = engine.authorize_mutation(appointment("confirmed"), MutationRequest(fields={"notes": "gate code"}), manager)
        assert decision.allowed
