"""
Tests for lifecycle definitions, the registry and role permissions
"""
from dataclasses import replace

import pytest

from thorbis.lifecycle import (
    DEFAULT_REGISTRY,
    ROLE_PERMISSIONS,
    Actor,
    LifecycleConfigError,
    LifecycleRegistry,
    Permission,
    Role,
    UnknownEntityType,
    authorize,
)
from thorbis.lifecycle.definitions import APPOINTMENT, INVOICE, WORK_ORDER


@pytest.mark.unit
class TestRegistry:
    def test_default_registry_is_consistent(self):
        DEFAULT_REGISTRY.check()
        assert {lc.entity_type for lc in DEFAULT_REGISTRY} == {
            "workorder",
            "invoice",
            "estimate",
            "appointment",
            "campaign",
            "experiment",
        }

    def test_get_unknown_raises(self):
        with pytest.raises(UnknownEntityType) as exc_info:
            DEFAULT_REGISTRY.get("spaceship")
        assert exc_info.value.entity_type == "spaceship"
        assert DEFAULT_REGISTRY.find("spaceship") is None

    def test_duplicate_entity_type_rejected(self):
        with pytest.raises(LifecycleConfigError):
            LifecycleRegistry([WORK_ORDER, WORK_ORDER])

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            WORK_ORDER.transitions["completed"] = frozenset({"created"})


@pytest.mark.unit
class TestLifecycleCheck:
    def test_transition_to_undeclared_status(self):
        broken = replace(WORK_ORDER, transitions={**WORK_ORDER.transitions, "created": {"teleported"}})
        with pytest.raises(LifecycleConfigError, match="undeclared"):
            broken.check()

    def test_missing_transition_entry(self):
        table = {k: v for k, v in WORK_ORDER.transitions.items() if k != "on_hold"}
        broken = replace(WORK_ORDER, transitions=table)
        with pytest.raises(LifecycleConfigError, match="on_hold"):
            broken.check()

    def test_initial_status_must_be_declared(self):
        with pytest.raises(LifecycleConfigError):
            replace(WORK_ORDER, initial_status="draft").check()

    def test_initial_status_cannot_be_terminal(self):
        with pytest.raises(LifecycleConfigError, match="terminal"):
            replace(WORK_ORDER, initial_status="completed").check()

    def test_permission_slot_must_match_action(self):
        with pytest.raises(LifecycleConfigError):
            replace(WORK_ORDER, write_permission=Permission.WORKORDER_READ).check()

    def test_owner_statuses_must_be_declared(self):
        with pytest.raises(LifecycleConfigError, match="owner_statuses"):
            replace(WORK_ORDER, owner_statuses={"closed"}).check()

    def test_frozen_statuses_must_be_declared(self):
        with pytest.raises(LifecycleConfigError, match="frozen_statuses"):
            replace(WORK_ORDER, frozen_statuses={"archived"}).check()


@pytest.mark.unit
class TestLifecycleGuards:
    def test_assign_roles_default_to_override_roles(self):
        assert INVOICE.assign_roles == INVOICE.override_roles

    def test_dispatchers_assign_work_orders(self):
        assert WORK_ORDER.can_assign(Role.DISPATCHER)
        assert not WORK_ORDER.can_assign(Role.TECHNICIAN)

    def test_stamped_fields(self):
        assert {"started_at", "completed_at"} <= WORK_ORDER.stamped_fields

    def test_closed_appointments_are_frozen(self):
        assert {s for s in APPOINTMENT.statuses if APPOINTMENT.is_frozen(s)} == {"completed", "cancelled", "no_show"}


@pytest.mark.unit
class TestPermissions:
    def test_permission_action(self):
        assert Permission.CAMPAIGN_DELETE.action == "delete"

    def test_role_sets_are_nested(self):
        assert ROLE_PERMISSIONS[Role.VIEWER] <= ROLE_PERMISSIONS[Role.TECHNICIAN]
        assert ROLE_PERMISSIONS[Role.TECHNICIAN] <= ROLE_PERMISSIONS[Role.DISPATCHER]
        assert ROLE_PERMISSIONS[Role.DISPATCHER] <= ROLE_PERMISSIONS[Role.MANAGER]
        assert ROLE_PERMISSIONS[Role.MANAGER] <= ROLE_PERMISSIONS[Role.ADMIN]

    def test_only_admin_and_owner_delete(self):
        deleters = {role for role, perms in ROLE_PERMISSIONS.items() if Permission.WORKORDER_DELETE in perms}
        assert deleters == {Role.ADMIN, Role.OWNER}

    def test_authorize(self):
        actor = Actor.for_role("t-1", Role.TECHNICIAN)
        assert authorize(actor, Permission.WORKORDER_WRITE).allowed
        assert not authorize(actor, Permission.INVOICE_WRITE).allowed
