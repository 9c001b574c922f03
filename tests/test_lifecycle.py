"""Tests for alert lifecycle transitions."""

from datetime import datetime

import pytest

from rpm_common.errors import AlertNotFoundError, InvalidTransitionError, ValidationError
from rpm_common.lifecycle import AlertLifecycle, can_transition
from rpm_common.models import (
    Alert,
    AlertSeverity,
    AlertStatus,
    AlertType,
    AuditAction,
)

from .conftest import make_patient


@pytest.fixture
def new_alert(store, clock):
    return store.add_alert(Alert(
        id="",
        patient_id="P-2025-001",
        patient_name="Maria Rodriguez",
        alert_type=AlertType.CRITICAL_BP,
        severity=AlertSeverity.CRITICAL,
        status=AlertStatus.NEW,
        title="Critical Blood Pressure Alert",
        description="Blood pressure reading of 185/110 mmHg requires attention.",
        trigger_value="185/110",
        created_at=clock.now,
    ))


@pytest.fixture
def lifecycle(store, clock):
    return AlertLifecycle(store, clock=clock)


class TestCanTransition:

    def test_forward_moves(self):
        assert can_transition(AlertStatus.NEW, AlertStatus.ACKNOWLEDGED)
        assert can_transition(AlertStatus.NEW, AlertStatus.RESOLVED)
        assert can_transition(AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED)

    def test_backward_moves(self):
        assert not can_transition(AlertStatus.ACKNOWLEDGED, AlertStatus.NEW)
        assert not can_transition(AlertStatus.RESOLVED, AlertStatus.ACKNOWLEDGED)
        assert not can_transition(AlertStatus.RESOLVED, AlertStatus.RESOLVED)


class TestAcknowledge:

    def test_acknowledge_new(self, lifecycle, store, new_alert, clock):
        clock.advance(minutes=4)

        alert = lifecycle.acknowledge(new_alert.id, acknowledged_by="clinician-001")

        assert alert.status == AlertStatus.ACKNOWLEDGED
        assert alert.acknowledged_by == "clinician-001"
        assert alert.acknowledged_at == clock.now
        assert store.get_alert(new_alert.id).status == AlertStatus.ACKNOWLEDGED

        log = store.get_audit_log(new_alert.id)
        assert [e.action for e in log] == [AuditAction.ACKNOWLEDGED]
        assert log[0].performed_by == "clinician-001"

    def test_reacknowledge_is_noop(self, lifecycle, store, new_alert, clock):
        first = lifecycle.acknowledge(new_alert.id, acknowledged_by="clinician-001")
        clock.advance(minutes=10)

        second = lifecycle.acknowledge(new_alert.id, acknowledged_by="clinician-002")

        assert second.acknowledged_at == first.acknowledged_at
        assert second.acknowledged_by == "clinician-001"
        assert len(store.get_audit_log(new_alert.id)) == 1

    def test_acknowledge_resolved_rejected(self, lifecycle, store, new_alert):
        lifecycle.resolve(new_alert.id, resolved_by="clinician-001")

        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.acknowledge(new_alert.id)

        assert exc_info.value.current == AlertStatus.RESOLVED
        assert store.get_alert(new_alert.id).status == AlertStatus.RESOLVED

    def test_not_found(self, lifecycle):
        with pytest.raises(AlertNotFoundError):
            lifecycle.acknowledge("missing")


class TestResolve:

    def test_resolve_acknowledged(self, lifecycle, store, new_alert, clock):
        lifecycle.acknowledge(new_alert.id, acknowledged_by="clinician-001")
        clock.advance(minutes=20)

        alert = lifecycle.resolve(
            new_alert.id, resolved_by="clinician-001", resolution="Issue addressed",
        )

        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolution == "Issue addressed"
        assert alert.resolved_at == clock.now
        assert alert.acknowledged_by == "clinician-001"

        log = store.get_audit_log(new_alert.id)
        assert [e.action for e in log] == [AuditAction.ACKNOWLEDGED, AuditAction.RESOLVED]
        assert log[1].details == "Issue addressed"

    def test_resolve_new_directly(self, lifecycle, new_alert):
        alert = lifecycle.resolve(new_alert.id, resolved_by="clinician-001")

        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolution is None
        assert alert.acknowledged_at is None

    def test_resolve_twice_rejected(self, lifecycle, store, new_alert):
        lifecycle.resolve(new_alert.id, resolution="Called patient")

        with pytest.raises(InvalidTransitionError):
            lifecycle.resolve(new_alert.id, resolution="Second attempt")

        assert store.get_alert(new_alert.id).resolution == "Called patient"

    def test_long_resolution_truncated_in_audit(self, lifecycle, store, new_alert):
        text = "x" * 500
        alert = lifecycle.resolve(new_alert.id, resolution=text)

        assert alert.resolution == text
        assert len(store.get_audit_log(new_alert.id)[0].details) == 200

    @pytest.mark.parametrize("resolution", [5, ["Called"], {"text": "Called"}])
    def test_non_string_resolution_rejected(self, lifecycle, store, new_alert, resolution):
        """Nothing is written when the resolution is malformed."""
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.resolve(new_alert.id, resolution=resolution)

        assert exc_info.value.field == "resolution"
        stored = store.get_alert(new_alert.id)
        assert stored.status == AlertStatus.NEW
        assert stored.resolution is None
        assert store.get_audit_log(new_alert.id) == []


class TestTransition:

    def test_string_targets(self, lifecycle, new_alert):
        alert = lifecycle.transition(new_alert.id, "acknowledged", user="clinician-001")
        assert alert.status == AlertStatus.ACKNOWLEDGED

        alert = lifecycle.transition(
            new_alert.id, "resolved", user="clinician-001", resolution="Issue addressed",
        )
        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolved_by == "clinician-001"

    def test_back_to_new_rejected(self, lifecycle, new_alert):
        lifecycle.acknowledge(new_alert.id)
        with pytest.raises(InvalidTransitionError):
            lifecycle.transition(new_alert.id, AlertStatus.NEW)

    def test_unknown_status(self, lifecycle, new_alert):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.transition(new_alert.id, "closed")
        assert exc_info.value.field == "status"

    @pytest.mark.parametrize("target", [5, None, ["resolved"]])
    def test_non_string_status(self, lifecycle, new_alert, target):
        with pytest.raises(ValidationError):
            lifecycle.transition(new_alert.id, target)

    def test_non_string_resolution(self, lifecycle, store, new_alert):
        with pytest.raises(ValidationError):
            lifecycle.transition(new_alert.id, "resolved", resolution=5)
        assert store.get_alert(new_alert.id).status == AlertStatus.NEW

    def test_unknown_alert(self, lifecycle):
        with pytest.raises(AlertNotFoundError):
            lifecycle.transition("missing", "resolved")


class TestRecordContact:

    def test_call_leaves_status(self, lifecycle, store, new_alert, clock):
        store.add_patient(make_patient())
        clock.advance(minutes=2)

        alert = lifecycle.record_contact(
            new_alert.id, "call", performed_by="clinician-001", details="Reached patient",
        )

        assert alert.status == AlertStatus.NEW
        assert store.get_alert(new_alert.id).status == AlertStatus.NEW

        log = store.get_audit_log(new_alert.id)
        assert [e.action for e in log] == [AuditAction.CALLED]
        assert log[0].details == "Reached patient"
        assert store.get_patient("P-2025-001").last_contact == clock.now

    def test_message_on_resolved_alert(self, lifecycle, store, new_alert):
        lifecycle.resolve(new_alert.id)

        alert = lifecycle.record_contact(new_alert.id, "message")

        assert alert.status == AlertStatus.RESOLVED
        assert store.get_audit_log(new_alert.id)[-1].action == AuditAction.MESSAGED

    def test_invalid_method(self, lifecycle, new_alert):
        with pytest.raises(ValidationError):
            lifecycle.record_contact(new_alert.id, "fax")

    def test_missing_patient_record(self, lifecycle, store, new_alert):
        lifecycle.record_contact(new_alert.id, "call")
        assert store.get_patient("P-2025-001") is None


    def test_invalid_method_type(self, lifecycle, new_alert):
        with pytest.raises(ValidationError):
            lifecycle.record_contact(new_alert.id, ["call"])

    def test_non_string_details(self, lifecycle, store, new_alert):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.record_contact(new_alert.id, "call", details=42)

        assert exc_info.value.field == "details"
        assert store.get_audit_log(new_alert.id) == []

    def test_last_contact_failure_keeps_audit(self, lifecycle, store, new_alert, monkeypatch):
        store.add_patient(make_patient())

        def fail(patient_id, fields):
            raise RuntimeError("patients table locked")

        monkeypatch.setattr(store, "update_patient", fail)

        alert = lifecycle.record_contact(new_alert.id, "message")

        assert alert.status == AlertStatus.NEW
        assert [e.action for e in store.get_audit_log(new_alert.id)] == [AuditAction.MESSAGED]


class TestAuditFailures:
    """A committed transition is returned even if its audit entry fails."""

    @pytest.fixture
    def failing_audit(self, store, monkeypatch):
        def fail(*args, **kwargs):
            raise RuntimeError("audit table locked")

        monkeypatch.setattr(store, "add_audit_entry", fail)

    def test_acknowledge(self, lifecycle, store, new_alert, failing_audit):
        alert = lifecycle.acknowledge(new_alert.id, acknowledged_by="clinician-001")

        assert alert.status == AlertStatus.ACKNOWLEDGED
        assert store.get_alert(new_alert.id).status == AlertStatus.ACKNOWLEDGED

    def test_resolve(self, lifecycle, store, new_alert, failing_audit):
        alert = lifecycle.resolve(new_alert.id, resolution="Issue addressed")

        assert alert.status == AlertStatus.RESOLVED
        assert store.get_alert(new_alert.id).resolution == "Issue addressed"

    def test_contact_failure_propagates(self, lifecycle, new_alert, failing_audit):
        """The audit entry is the only record of a contact."""
        with pytest.raises(RuntimeError):
            lifecycle.record_contact(new_alert.id, "call")


class TestConcurrentUpdates:
    """A lost conditional write is re-evaluated against the fresh status."""

    def test_resolve_wins_over_acknowledge(self, memory_store, clock):
        alert = memory_store.add_alert(Alert(
            id="",
            patient_id="P-2025-001",
            patient_name="Maria Rodriguez",
            alert_type=AlertType.HIGH_BP,
            severity=AlertSeverity.WARNING,
            status=AlertStatus.NEW,
            created_at=clock.now,
        ))
        original_update = memory_store.update_alert

        def racing_update(alert_id, expected_status, **fields):
            # Another request resolves the alert between read and write
            memory_store.update_alert = original_update
            original_update(
                alert_id, AlertStatus.NEW,
                status=AlertStatus.RESOLVED, resolved_at=datetime(2025, 3, 10, 9, 1),
            )
            return original_update(alert_id, expected_status, **fields)

        memory_store.update_alert = racing_update
        lifecycle = AlertLifecycle(memory_store, clock=clock)

        with pytest.raises(InvalidTransitionError):
            lifecycle.acknowledge(alert.id)

        stored = memory_store.get_alert(alert.id)
        assert stored.status == AlertStatus.RESOLVED
        assert stored.acknowledged_at is None

    def test_concurrent_acknowledge_is_noop(self, memory_store, clock):
        alert = memory_store.add_alert(Alert(
            id="",
            patient_id="P-2025-001",
            patient_name="Maria Rodriguez",
            alert_type=AlertType.HIGH_BP,
            severity=AlertSeverity.WARNING,
            status=AlertStatus.NEW,
            created_at=clock.now,
        ))
        original_update = memory_store.update_alert

        def racing_update(alert_id, expected_status, **fields):
            memory_store.update_alert = original_update
            original_update(
                alert_id, AlertStatus.NEW,
                status=AlertStatus.ACKNOWLEDGED, acknowledged_by="clinician-002",
            )
            return original_update(alert_id, expected_status, **fields)

        memory_store.update_alert = racing_update
        lifecycle = AlertLifecycle(memory_store, clock=clock)

        result = lifecycle.acknowledge(alert.id, acknowledged_by="clinician-001")

        assert result.status == AlertStatus.ACKNOWLEDGED
        assert result.acknowledged_by == "clinician-002"
