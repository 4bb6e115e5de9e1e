"""
Tests for the enclave lifecycle controller.

Verifies:
- The full (status, action) precondition grid
- Check order: missing fields, existence, ownership, action validity, status
- Best-effort destroy trigger on terminate
- Deletion from terminal states only
- Reconciliation of stale PENDING_DESTROY enclaves
"""

from datetime import datetime, timedelta, timezone

import pytest

from enclave_control_tower.db.audit_service import AuditService
from enclave_control_tower.db.services import EnclaveService
from enclave_control_tower.enclaves.enums import EnclaveStatus, TransitionAction
from enclave_control_tower.enclaves.lifecycle import (
    TRANSITION_RULES,
    LifecycleController,
    parse_action,
)
from enclave_control_tower.enclaves.triggers import RecordingWorkflowTrigger
from enclave_control_tower.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

from conftest import OTHER, OWNER

EXPECTED_TARGETS = {
    ("pause", EnclaveStatus.DEPLOYED): EnclaveStatus.PAUSING,
    ("resume", EnclaveStatus.PAUSED): EnclaveStatus.RESUMING,
    ("terminate", EnclaveStatus.DEPLOYED): EnclaveStatus.PENDING_DESTROY,
    ("terminate", EnclaveStatus.PAUSED): EnclaveStatus.PENDING_DESTROY,
    ("terminate", EnclaveStatus.FAILED): EnclaveStatus.PENDING_DESTROY,
}


def reload_status(db_session, enclave_id):
    db_session.expire_all()
    return EnclaveService(db_session).get_enclave(enclave_id).status


def test_every_action_has_a_rule():
    assert set(TRANSITION_RULES) == set(TransitionAction)


@pytest.mark.parametrize("action", [a.value for a in TransitionAction])
@pytest.mark.parametrize("status", list(EnclaveStatus))
def test_transition_grid(db_session, make_enclave, status, action):
    enclave = make_enclave(status=status)
    controller = LifecycleController(db_session)
    expected = EXPECTED_TARGETS.get((action, status))

    if expected is None:
        with pytest.raises(ConflictError) as exc_info:
            controller.request_transition(enclave.id, action, OWNER)
        assert exc_info.value.extra["status"] == status.value
        assert reload_status(db_session, enclave.id) == status.value
    else:
        updated = controller.request_transition(enclave.id, action, OWNER)
        assert updated.status == expected.value
        assert reload_status(db_session, enclave.id) == expected.value


class TestRequestValidation:
    @pytest.mark.parametrize("action,caller", [(None, OWNER), ("pause", None), ("", "")])
    def test_missing_fields(self, db_session, make_enclave, action, caller):
        enclave = make_enclave()
        with pytest.raises(ValidationError):
            LifecycleController(db_session).request_transition(enclave.id, action, caller)

    def test_unknown_enclave(self, db_session):
        with pytest.raises(NotFoundError):
            LifecycleController(db_session).request_transition("enc_missing", "pause", OWNER)

    def test_ownership_checked_before_action(self, db_session, make_enclave):
        enclave = make_enclave()
        with pytest.raises(AuthorizationError) as exc_info:
            LifecycleController(db_session).request_transition(enclave.id, "explode", OTHER)
        # No entity contents in the error.
        assert exc_info.value.to_dict() == {"error": "Unauthorized", "code": "UNAUTHORIZED"}
        assert reload_status(db_session, enclave.id) == EnclaveStatus.DEPLOYED.value

    def test_ownership_checked_before_status(self, db_session, make_enclave):
        enclave = make_enclave(status=EnclaveStatus.DEPLOYING)
        with pytest.raises(AuthorizationError):
            LifecycleController(db_session).request_transition(enclave.id, "pause", OTHER)

    def test_unknown_action(self, db_session, make_enclave):
        enclave = make_enclave()
        with pytest.raises(ValidationError):
            LifecycleController(db_session).request_transition(enclave.id, "explode", OWNER)

    def test_parse_action_is_case_insensitive(self):
        assert parse_action(" Terminate ") is TransitionAction.TERMINATE

    def test_lost_race_is_a_conflict(self, db_session, make_enclave, monkeypatch):
        enclave = make_enclave()
        controller = LifecycleController(db_session)
        monkeypatch.setattr(controller.enclaves, "update_status", lambda *args: None)

        with pytest.raises(ConflictError):
            controller.request_transition(enclave.id, "pause", OWNER)


class TestConditionalWrite:
    def test_update_status_requires_expected_status(self, db_session, make_enclave):
        enclave = make_enclave(status=EnclaveStatus.PAUSED)
        service = EnclaveService(db_session)

        result = service.update_status(
            enclave.id, OWNER, EnclaveStatus.DEPLOYED, EnclaveStatus.PAUSING
        )

        assert result is None
        assert reload_status(db_session, enclave.id) == EnclaveStatus.PAUSED.value

    def test_update_status_requires_owner(self, db_session, make_enclave):
        enclave = make_enclave()
        result = EnclaveService(db_session).update_status(
            enclave.id, OTHER, EnclaveStatus.DEPLOYED, EnclaveStatus.PAUSING
        )
        assert result is None


class TestDestroyTrigger:
    def test_terminate_schedules_trigger(self, db_session, make_enclave):
        enclave = make_enclave()
        trigger = RecordingWorkflowTrigger()
        scheduled = []
        controller = LifecycleController(
            db_session, trigger=trigger, schedule=lambda fn, *args: scheduled.append((fn, args))
        )

        controller.request_transition(enclave.id, "terminate", OWNER)

        # Not sent until the scheduler runs it.
        assert trigger.calls == []
        fn, args = scheduled[0]
        fn(*args)
        assert trigger.calls == [
            {"enclave_id": enclave.id, "action": "destroy", "wallet_address": OWNER}
        ]

    def test_pause_does_not_trigger(self, db_session, make_enclave):
        enclave = make_enclave()
        trigger = RecordingWorkflowTrigger()
        LifecycleController(db_session, trigger=trigger).request_transition(
            enclave.id, "pause", OWNER
        )
        assert trigger.calls == []

    def test_trigger_failure_keeps_committed_status(self, db_session, make_enclave):
        enclave = make_enclave(status=EnclaveStatus.FAILED)
        trigger = RecordingWorkflowTrigger(fail_with=RuntimeError("lambda down"))
        controller = LifecycleController(db_session, trigger=trigger)

        updated = controller.request_transition(enclave.id, "terminate", OWNER)

        assert updated.status == EnclaveStatus.PENDING_DESTROY.value
        assert reload_status(db_session, enclave.id) == EnclaveStatus.PENDING_DESTROY.value
        failures = AuditService(db_session).query_by_action("trigger_failed")
        assert [f.entity_id for f in failures] == [enclave.id]
        assert "lambda down" in failures[0].note

    def test_transition_is_audited(self, db_session, make_enclave):
        enclave = make_enclave()
        LifecycleController(db_session).request_transition(enclave.id, "pause", OWNER)

        entries = AuditService(db_session).query_by_entity(enclave.id)
        assert entries[0].action == "status_changed"
        assert entries[0].before == {"status": "DEPLOYED"}
        assert entries[0].after == {"status": "PAUSING"}
        assert entries[0].actor_id == OWNER


class TestDelete:
    @pytest.mark.parametrize("status", [EnclaveStatus.DESTROYED, EnclaveStatus.FAILED])
    def test_delete_terminal(self, db_session, make_enclave, status):
        enclave = make_enclave(status=status)
        LifecycleController(db_session).delete_enclave(enclave.id, OWNER)
        assert EnclaveService(db_session).get_enclave(enclave.id) is None
        assert AuditService(db_session).query_by_action("deleted")[0].entity_id == enclave.id

    @pytest.mark.parametrize(
        "status",
        [s for s in EnclaveStatus if s not in (EnclaveStatus.DESTROYED, EnclaveStatus.FAILED)],
    )
    def test_delete_non_terminal_is_conflict(self, db_session, make_enclave, status):
        enclave = make_enclave(status=status)
        with pytest.raises(ConflictError):
            LifecycleController(db_session).delete_enclave(enclave.id, OWNER)
        assert EnclaveService(db_session).get_enclave(enclave.id) is not None

    def test_delete_requires_owner(self, db_session, make_enclave):
        enclave = make_enclave(status=EnclaveStatus.DESTROYED)
        with pytest.raises(AuthorizationError):
            LifecycleController(db_session).delete_enclave(enclave.id, OTHER)


class TestReconcile:
    def _age(self, db_session, enclave, minutes):
        enclave.updated_at = datetime.now(timezone.utc) - timedelta(minutes=minutes)
        db_session.commit()

    def test_retriggers_only_stale_pending_destroy(self, db_session, make_enclave):
        stale = make_enclave(status=EnclaveStatus.PENDING_DESTROY)
        fresh = make_enclave(status=EnclaveStatus.PENDING_DESTROY)
        other = make_enclave(status=EnclaveStatus.DEPLOYED)
        self._age(db_session, stale, 60)
        self._age(db_session, other, 60)

        trigger = RecordingWorkflowTrigger()
        controller = LifecycleController(db_session, trigger=trigger)

        retriggered = controller.reconcile_pending_destroys(timedelta(minutes=15))

        assert retriggered == [stale.id]
        assert [c["enclave_id"] for c in trigger.calls] == [stale.id]
        assert fresh.id not in retriggered
        retries = AuditService(db_session).query_by_action("trigger_retried")
        assert [r.entity_id for r in retries] == [stale.id]

    def test_successful_retrigger_resets_the_clock(self, db_session, make_enclave):
        stale = make_enclave(status=EnclaveStatus.PENDING_DESTROY)
        self._age(db_session, stale, 60)
        controller = LifecycleController(db_session, trigger=RecordingWorkflowTrigger())

        assert controller.reconcile_pending_destroys(timedelta(minutes=15)) == [stale.id]
        assert controller.reconcile_pending_destroys(timedelta(minutes=15)) == []

    def test_failed_retrigger_is_reported_again(self, db_session, make_enclave):
        stale = make_enclave(status=EnclaveStatus.PENDING_DESTROY)
        self._age(db_session, stale, 60)
        controller = LifecycleController(
            db_session, trigger=RecordingWorkflowTrigger(fail_with=RuntimeError("nope"))
        )

        assert controller.reconcile_pending_destroys(timedelta(minutes=15)) == []
        assert controller.reconcile_pending_destroys(timedelta(minutes=15)) == []
        assert len(AuditService(db_session).query_by_action("trigger_failed")) == 2
