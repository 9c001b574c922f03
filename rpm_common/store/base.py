"""Abstract storage interface shared by every backend.

Core logic (ingestion, alerting, lifecycle) only talks to this interface, so
it behaves identically whether records live in memory or in SQLite.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ..models import (
    Alert,
    AlertAuditEntry,
    AlertSeverity,
    AlertStatus,
    AuditAction,
    ClinicianNote,
    Patient,
    PatientStatus,
    Reading,
    RiskLevel,
    TreatmentPlan,
)

# Alert columns that update_alert() may write
ALERT_MUTABLE_FIELDS = frozenset({
    "status",
    "acknowledged_at",
    "acknowledged_by",
    "resolved_at",
    "resolved_by",
    "resolution",
})

PATIENT_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})
NOTE_MUTABLE_FIELDS = frozenset({"content", "note_type", "updated_at"})


class BaseStore(ABC):
    """Persistence for readings, alerts, patients, notes and treatment plans.

    Alerts and readings have no delete operation.
    """

    backend_name = "base"

    def _generate_id(self) -> str:
        """Generate a short unique record ID."""
        return str(uuid.uuid4())[:8]

    @staticmethod
    def _check_alert_fields(fields: dict[str, Any]) -> None:
        unknown = set(fields) - ALERT_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Alert fields are not writable: {sorted(unknown)}")

    @staticmethod
    def _check_patient_fields(fields: dict[str, Any]) -> None:
        blocked = set(fields) & PATIENT_IMMUTABLE_FIELDS
        if blocked:
            raise ValueError(f"Patient fields are not writable: {sorted(blocked)}")

    @staticmethod
    def _check_note_fields(fields: dict[str, Any]) -> None:
        unknown = set(fields) - NOTE_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Note fields are not writable: {sorted(unknown)}")

    # Readings

    @abstractmethod
    def add_reading(self, reading: Reading) -> Reading:
        """Persist a reading and return it with its generated ID."""
        pass

    @abstractmethod
    def get_reading(self, reading_id: str) -> Reading | None:
        pass

    @abstractmethod
    def list_readings(
        self,
        patient_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[Reading]:
        """List readings newest first.

        Args:
            patient_id: Restrict to one patient (None for all patients)
            since: Only readings captured at or after this time
            limit: Maximum results
        """
        pass

    # Alerts

    @abstractmethod
    def add_alert(self, alert: Alert) -> Alert:
        """Persist a new alert and return it with its generated ID."""
        pass

    @abstractmethod
    def get_alert(self, alert_id: str) -> Alert | None:
        pass

    @abstractmethod
    def list_alerts(
        self,
        status: AlertStatus | list[AlertStatus] | None = None,
        severity: AlertSeverity | None = None,
        patient_id: str | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        """List alerts newest first by creation time."""
        pass

    @abstractmethod
    def update_alert(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        **fields,
    ) -> Alert | None:
        """Conditionally update an alert.

        The write only happens if the alert's current status still equals
        ``expected_status``.

        Returns:
            The updated alert, or None if the alert is missing or its status
            changed since the caller read it.
        """
        pass

    @abstractmethod
    def add_audit_entry(
        self,
        alert_id: str,
        action: AuditAction,
        performed_by: str | None = None,
        details: str | None = None,
        performed_at: datetime | None = None,
    ) -> AlertAuditEntry:
        pass

    @abstractmethod
    def get_audit_log(self, alert_id: str) -> list[AlertAuditEntry]:
        """Get audit history for an alert, oldest first."""
        pass

    @abstractmethod
    def get_alert_stats(self) -> dict[str, Any]:
        """Counts by status and severity plus average response times."""
        pass

    # Patients

    @abstractmethod
    def add_patient(self, patient: Patient) -> Patient:
        """Persist a patient. Keeps ``patient.id`` if set, else generates one.

        Raises:
            PatientExistsError: A patient with that ID is already stored
        """
        pass

    @abstractmethod
    def get_patient(self, patient_id: str) -> Patient | None:
        pass

    @abstractmethod
    def list_patients(
        self,
        status: PatientStatus | None = None,
        risk_level: RiskLevel | None = None,
        search: str | None = None,
    ) -> list[Patient]:
        """List patients, most recently updated first.

        ``search`` matches case-insensitively against full name or ID.
        """
        pass

    @abstractmethod
    def update_patient(self, patient_id: str, fields: dict[str, Any]) -> Patient | None:
        pass

    # Clinician notes

    @abstractmethod
    def add_note(self, note: ClinicianNote) -> ClinicianNote:
        pass

    @abstractmethod
    def get_note(self, note_id: str) -> ClinicianNote | None:
        pass

    @abstractmethod
    def list_notes(self, patient_id: str, limit: int | None = None) -> list[ClinicianNote]:
        """List a patient's notes newest first."""
        pass

    @abstractmethod
    def update_note(self, note_id: str, fields: dict[str, Any]) -> ClinicianNote | None:
        pass

    @abstractmethod
    def delete_note(self, note_id: str) -> bool:
        pass

    # Treatment plans

    @abstractmethod
    def get_treatment_plan(self, patient_id: str) -> TreatmentPlan | None:
        pass

    @abstractmethod
    def save_treatment_plan(self, plan: TreatmentPlan) -> TreatmentPlan:
        """Insert or replace the plan for ``plan.patient_id``."""
        pass


def matches_search(patient: Patient, search: str) -> bool:
    """Case-insensitive match on full name or patient ID."""
    term = search.lower()
    return term in patient.display_name.lower() or term in patient.id.lower()


def minutes_between(start: datetime | None, end: datetime | None) -> float | None:
    if start is None or end is None:
        return None
    return (end - start).total_seconds() / 60
