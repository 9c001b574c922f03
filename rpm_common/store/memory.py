"""In-memory store for tests and demo mode."""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..errors import PatientExistsError
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
from .base import BaseStore, matches_search, minutes_between

logger = logging.getLogger(__name__)


def empty_alert_stats() -> dict[str, Any]:
    stats: dict[str, Any] = {"total": 0}
    for status in AlertStatus:
        stats[f"status_{status.value}"] = 0
    for severity in AlertSeverity:
        stats[f"severity_{severity.value}"] = 0
    stats["avg_minutes_to_acknowledge"] = None
    stats["avg_minutes_to_resolve"] = None
    return stats


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


class MemoryStore(BaseStore):
    """Dict-backed storage. Contents are lost when the process exits."""

    backend_name = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self._readings: dict[str, Reading] = {}
        self._alerts: dict[str, Alert] = {}
        self._audit: list[AlertAuditEntry] = []
        self._patients: dict[str, Patient] = {}
        self._notes: dict[str, ClinicianNote] = {}
        self._plans: dict[str, TreatmentPlan] = {}

    # Readings

    def add_reading(self, reading: Reading) -> Reading:
        with self._lock:
            saved = replace(reading, id=self._generate_id())
            self._readings[saved.id] = saved
        return saved

    def get_reading(self, reading_id: str) -> Reading | None:
        with self._lock:
            return self._readings.get(reading_id)

    def list_readings(
        self,
        patient_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[Reading]:
        with self._lock:
            readings = list(self._readings.values())

        if patient_id:
            readings = [r for r in readings if r.patient_id == patient_id]
        if since:
            readings = [r for r in readings if r.timestamp >= since]

        readings.sort(key=lambda r: r.timestamp, reverse=True)
        return readings[:limit] if limit else readings

    # Alerts

    def add_alert(self, alert: Alert) -> Alert:
        with self._lock:
            saved = replace(alert, id=self._generate_id())
            self._alerts[saved.id] = saved
        logger.info(f"Created alert {saved.id} for patient {saved.patient_id}")
        return replace(saved)

    def get_alert(self, alert_id: str) -> Alert | None:
        with self._lock:
            alert = self._alerts.get(alert_id)
            return replace(alert) if alert else None

    def list_alerts(
        self,
        status: AlertStatus | list[AlertStatus] | None = None,
        severity: AlertSeverity | None = None,
        patient_id: str | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        with self._lock:
            alerts = [replace(a) for a in self._alerts.values()]

        if status:
            statuses = status if isinstance(status, list) else [status]
            alerts = [a for a in alerts if a.status in statuses]
        if severity:
            alerts = [a for a in alerts if a.severity == severity]
        if patient_id:
            alerts = [a for a in alerts if a.patient_id == patient_id]

        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts[:limit] if limit else alerts

    def update_alert(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        **fields,
    ) -> Alert | None:
        self._check_alert_fields(fields)
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.status != expected_status:
                return None
            updated = replace(alert, **fields)
            self._alerts[alert_id] = updated
            return replace(updated)

    def add_audit_entry(
        self,
        alert_id: str,
        action: AuditAction,
        performed_by: str | None = None,
        details: str | None = None,
        performed_at: datetime | None = None,
    ) -> AlertAuditEntry:
        with self._lock:
            entry = AlertAuditEntry(
                id=len(self._audit) + 1,
                alert_id=alert_id,
                action=action,
                performed_by=performed_by,
                performed_at=performed_at or datetime.now(),
                details=details,
            )
            self._audit.append(entry)
        return entry

    def get_audit_log(self, alert_id: str) -> list[AlertAuditEntry]:
        with self._lock:
            entries = [e for e in self._audit if e.alert_id == alert_id]
        return sorted(entries, key=lambda e: (e.performed_at, e.id))

    def get_alert_stats(self) -> dict[str, Any]:
        with self._lock:
            alerts = list(self._alerts.values())

        stats = empty_alert_stats()
        stats["total"] = len(alerts)
        for alert in alerts:
            stats[f"status_{alert.status.value}"] += 1
            stats[f"severity_{alert.severity.value}"] += 1

        ack_times = [
            minutes_between(a.created_at, a.acknowledged_at)
            for a in alerts if a.acknowledged_at
        ]
        resolve_times = [
            minutes_between(a.created_at, a.resolved_at)
            for a in alerts if a.resolved_at
        ]
        stats["avg_minutes_to_acknowledge"] = _average(ack_times)
        stats["avg_minutes_to_resolve"] = _average(resolve_times)
        return stats

    # Patients

    def add_patient(self, patient: Patient) -> Patient:
        with self._lock:
            saved = replace(patient, id=patient.id or self._generate_id())
            if saved.id in self._patients:
                raise PatientExistsError(saved.id)
            self._patients[saved.id] = saved
        return replace(saved)

    def get_patient(self, patient_id: str) -> Patient | None:
        with self._lock:
            patient = self._patients.get(patient_id)
            return replace(patient) if patient else None

    def list_patients(
        self,
        status: PatientStatus | None = None,
        risk_level: RiskLevel | None = None,
        search: str | None = None,
    ) -> list[Patient]:
        with self._lock:
            patients = [replace(p) for p in self._patients.values()]

        if status:
            patients = [p for p in patients if p.status == status]
        if risk_level:
            patients = [p for p in patients if p.risk_level == risk_level]
        if search:
            patients = [p for p in patients if matches_search(p, search)]

        patients.sort(key=lambda p: p.updated_at, reverse=True)
        return patients

    def update_patient(self, patient_id: str, fields: dict[str, Any]) -> Patient | None:
        self._check_patient_fields(fields)
        with self._lock:
            patient = self._patients.get(patient_id)
            if patient is None:
                return None
            updated = replace(patient, **fields)
            self._patients[patient_id] = updated
            return replace(updated)

    # Clinician notes

    def add_note(self, note: ClinicianNote) -> ClinicianNote:
        with self._lock:
            saved = replace(note, id=self._generate_id())
            self._notes[saved.id] = saved
        return replace(saved)

    def get_note(self, note_id: str) -> ClinicianNote | None:
        with self._lock:
            note = self._notes.get(note_id)
            return replace(note) if note else None

    def list_notes(self, patient_id: str, limit: int | None = None) -> list[ClinicianNote]:
        with self._lock:
            notes = [replace(n) for n in self._notes.values() if n.patient_id == patient_id]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return notes[:limit] if limit else notes

    def update_note(self, note_id: str, fields: dict[str, Any]) -> ClinicianNote | None:
        self._check_note_fields(fields)
        with self._lock:
            note = self._notes.get(note_id)
            if note is None:
                return None
            updated = replace(note, **fields)
            self._notes[note_id] = updated
            return replace(updated)

    def delete_note(self, note_id: str) -> bool:
        with self._lock:
            return self._notes.pop(note_id, None) is not None

    # Treatment plans

    def get_treatment_plan(self, patient_id: str) -> TreatmentPlan | None:
        with self._lock:
            plan = self._plans.get(patient_id)
            return replace(plan) if plan else None

    def save_treatment_plan(self, plan: TreatmentPlan) -> TreatmentPlan:
        with self._lock:
            self._plans[plan.patient_id] = replace(plan)
        return plan
