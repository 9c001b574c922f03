"""SQLite-backed storage for readings, alerts and patient records."""

import json
import logging
import os
import sqlite3
from dataclasses import replace
from datetime import datetime
from enum import Enum
from pathlib import Path
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
from .base import BaseStore, matches_search
from .memory import empty_alert_stats

logger = logging.getLogger(__name__)

ALERT_COLUMNS = """
    id, patient_id, patient_name, alert_type, severity, status,
    title, description, related_reading_id, trigger_value,
    created_at, acknowledged_at, acknowledged_by,
    resolved_at, resolved_by, resolution
"""

JSON_PATIENT_COLUMNS = {"address", "emergency_contact", "diagnosis", "medications"}


def _to_db(value: Any) -> Any:
    """Convert a model value to its column representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _json_or_none(value) -> str | None:
    return json.dumps(value) if value is not None else None


class SQLiteStore(BaseStore):
    """SQLite-backed storage, one connection per operation."""

    backend_name = "sqlite"

    def __init__(self, db_path: str | None = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to RPM_DB_PATH env var
                     or ~/.rpm/monitoring.db
        """
        if db_path:
            self.db_path = os.path.expanduser(str(db_path))
        else:
            self.db_path = os.path.expanduser(
                os.environ.get("RPM_DB_PATH", "~/.rpm/monitoring.db")
            )

        # Ensure directory exists
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path) as f:
            schema = f.read()

        with self._connect() as conn:
            conn.executescript(schema)

    def _connect(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # Readings

    def add_reading(self, reading: Reading) -> Reading:
        saved = replace(reading, id=self._generate_id())

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO readings (
                    id, patient_id, systolic, diastolic, pulse, timestamp,
                    source, device_id, status, patient_note
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    saved.id, saved.patient_id, saved.systolic, saved.diastolic,
                    saved.pulse, saved.timestamp.isoformat(), saved.source.value,
                    saved.device_id, saved.status.value, saved.patient_note,
                )
            )
            conn.commit()

        return saved

    def get_reading(self, reading_id: str) -> Reading | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM readings WHERE id = ?", (reading_id,)
            ).fetchone()
        return Reading.from_row(row) if row else None

    def list_readings(
        self,
        patient_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[Reading]:
        conditions = []
        params: list[Any] = []

        if patient_id:
            conditions.append("patient_id = ?")
            params.append(patient_id)

        if since:
            conditions.append("timestamp >= ?")
            params.append(since.isoformat())

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        limit_clause = ""
        if limit:
            limit_clause = " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT * FROM readings WHERE {where_clause} "
                f"ORDER BY timestamp DESC{limit_clause}",
                params
            )
            return [Reading.from_row(row) for row in cursor.fetchall()]

    # Alerts

    def add_alert(self, alert: Alert) -> Alert:
        saved = replace(alert, id=self._generate_id())

        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO alerts ({ALERT_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    saved.id, saved.patient_id, saved.patient_name,
                    saved.alert_type.value, saved.severity.value, saved.status.value,
                    saved.title, saved.description,
                    saved.related_reading_id, saved.trigger_value,
                    _to_db(saved.created_at), _to_db(saved.acknowledged_at),
                    saved.acknowledged_by, _to_db(saved.resolved_at),
                    saved.resolved_by, saved.resolution,
                )
            )
            conn.commit()

        logger.info(f"Created alert {saved.id} for patient {saved.patient_id}")
        return saved

    def get_alert(self, alert_id: str) -> Alert | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {ALERT_COLUMNS} FROM alerts WHERE id = ?",
                (alert_id,)
            ).fetchone()

            if row:
                return Alert.from_row(row)
            return None

    def list_alerts(
        self,
        status: AlertStatus | list[AlertStatus] | None = None,
        severity: AlertSeverity | None = None,
        patient_id: str | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        conditions = []
        params: list[Any] = []

        if status:
            if isinstance(status, list):
                placeholders = ",".join("?" * len(status))
                conditions.append(f"status IN ({placeholders})")
                params.extend(s.value for s in status)
            else:
                conditions.append("status = ?")
                params.append(status.value)

        if severity:
            conditions.append("severity = ?")
            params.append(severity.value)

        if patient_id:
            conditions.append("patient_id = ?")
            params.append(patient_id)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        limit_clause = ""
        if limit:
            limit_clause = " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {ALERT_COLUMNS}
                FROM alerts
                WHERE {where_clause}
                ORDER BY created_at DESC{limit_clause}
                """,
                params
            )
            return [Alert.from_row(row) for row in cursor.fetchall()]

    def update_alert(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        **fields,
    ) -> Alert | None:
        self._check_alert_fields(fields)
        if not fields:
            return None

        set_parts = [f"{key} = ?" for key in fields]
        params = [_to_db(value) for value in fields.values()]
        params.extend([alert_id, expected_status.value])

        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE alerts SET {', '.join(set_parts)} WHERE id = ? AND status = ?",
                params
            )
            conn.commit()

            if cursor.rowcount == 0:
                return None

        return self.get_alert(alert_id)

    def add_audit_entry(
        self,
        alert_id: str,
        action: AuditAction,
        performed_by: str | None = None,
        details: str | None = None,
        performed_at: datetime | None = None,
    ) -> AlertAuditEntry:
        performed_at = performed_at or datetime.now()

        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO alert_audit (alert_id, action, performed_by, performed_at, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (alert_id, action.value, performed_by, performed_at.isoformat(), details)
            )
            conn.commit()
            entry_id = cursor.lastrowid

        return AlertAuditEntry(
            id=entry_id,
            alert_id=alert_id,
            action=action,
            performed_by=performed_by,
            performed_at=performed_at,
            details=details,
        )

    def get_audit_log(self, alert_id: str) -> list[AlertAuditEntry]:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT id, alert_id, action, performed_by, performed_at, details
                FROM alert_audit
                WHERE alert_id = ?
                ORDER BY performed_at ASC, id ASC
                """,
                (alert_id,)
            )
            return [AlertAuditEntry.from_row(row) for row in cursor.fetchall()]

    def get_alert_stats(self) -> dict[str, Any]:
        stats = empty_alert_stats()

        with self._connect() as conn:
            stats["total"] = conn.execute("SELECT COUNT(*) FROM alerts").fetchone()[0]

            for row in conn.execute("SELECT status, COUNT(*) FROM alerts GROUP BY status"):
                stats[f"status_{row[0]}"] = row[1]

            for row in conn.execute("SELECT severity, COUNT(*) FROM alerts GROUP BY severity"):
                stats[f"severity_{row[0]}"] = row[1]

            row = conn.execute(
                """
                SELECT
                    AVG((julianday(acknowledged_at) - julianday(created_at)) * 24 * 60),
                    AVG((julianday(resolved_at) - julianday(created_at)) * 24 * 60)
                FROM alerts
                """
            ).fetchone()

        stats["avg_minutes_to_acknowledge"] = round(row[0], 1) if row[0] is not None else None
        stats["avg_minutes_to_resolve"] = round(row[1], 1) if row[1] is not None else None
        return stats

    # Patients

    def add_patient(self, patient: Patient) -> Patient:
        saved = replace(patient, id=patient.id or self._generate_id())

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO patients (
                        id, first_name, last_name, date_of_birth, gender, phone, email,
                        address, emergency_contact, diagnosis, risk_level,
                        target_systolic, target_diastolic, medications,
                        assigned_clinician_id, status, created_at, updated_at, last_contact
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        saved.id, saved.first_name, saved.last_name, saved.date_of_birth,
                        saved.gender, saved.phone, saved.email,
                        _json_or_none(saved.address), _json_or_none(saved.emergency_contact),
                        json.dumps(saved.diagnosis), saved.risk_level.value,
                        saved.target_systolic, saved.target_diastolic,
                        json.dumps(saved.medications), saved.assigned_clinician_id,
                        saved.status.value, _to_db(saved.created_at),
                        _to_db(saved.updated_at), _to_db(saved.last_contact),
                    )
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            raise PatientExistsError(saved.id) from None

        return saved

    def get_patient(self, patient_id: str) -> Patient | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM patients WHERE id = ?", (patient_id,)
            ).fetchone()
        return Patient.from_row(row) if row else None

    def list_patients(
        self,
        status: PatientStatus | None = None,
        risk_level: RiskLevel | None = None,
        search: str | None = None,
    ) -> list[Patient]:
        conditions = []
        params: list[Any] = []

        if status:
            conditions.append("status = ?")
            params.append(status.value)

        if risk_level:
            conditions.append("risk_level = ?")
            params.append(risk_level.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT * FROM patients WHERE {where_clause} ORDER BY updated_at DESC",
                params
            )
            patients = [Patient.from_row(row) for row in cursor.fetchall()]

        if search:
            patients = [p for p in patients if matches_search(p, search)]
        return patients

    def update_patient(self, patient_id: str, fields: dict[str, Any]) -> Patient | None:
        self._check_patient_fields(fields)
        if not fields:
            return self.get_patient(patient_id)

        set_parts = []
        params: list[Any] = []
        for key, value in fields.items():
            set_parts.append(f"{key} = ?")
            if key in JSON_PATIENT_COLUMNS:
                params.append(_json_or_none(value))
            else:
                params.append(_to_db(value))
        params.append(patient_id)

        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE patients SET {', '.join(set_parts)} WHERE id = ?",
                params
            )
            conn.commit()

            if cursor.rowcount == 0:
                return None

        return self.get_patient(patient_id)

    # Clinician notes

    def add_note(self, note: ClinicianNote) -> ClinicianNote:
        saved = replace(note, id=self._generate_id())

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO clinician_notes (
                    id, patient_id, clinician_id, clinician_name, content, note_type,
                    related_reading_id, related_alert_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    saved.id, saved.patient_id, saved.clinician_id, saved.clinician_name,
                    saved.content, saved.note_type.value,
                    saved.related_reading_id, saved.related_alert_id,
                    _to_db(saved.created_at), _to_db(saved.updated_at),
                )
            )
            conn.commit()

        return saved

    def get_note(self, note_id: str) -> ClinicianNote | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM clinician_notes WHERE id = ?", (note_id,)
            ).fetchone()
        return ClinicianNote.from_row(row) if row else None

    def list_notes(self, patient_id: str, limit: int | None = None) -> list[ClinicianNote]:
        params: list[Any] = [patient_id]
        limit_clause = ""
        if limit:
            limit_clause = " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM clinician_notes WHERE patient_id = ? "
                f"ORDER BY created_at DESC{limit_clause}",
                params
            )
            return [ClinicianNote.from_row(row) for row in cursor.fetchall()]

    def update_note(self, note_id: str, fields: dict[str, Any]) -> ClinicianNote | None:
        self._check_note_fields(fields)
        if not fields:
            return self.get_note(note_id)

        set_parts = [f"{key} = ?" for key in fields]
        params = [_to_db(value) for value in fields.values()]
        params.append(note_id)

        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE clinician_notes SET {', '.join(set_parts)} WHERE id = ?",
                params
            )
            conn.commit()

            if cursor.rowcount == 0:
                return None

        return self.get_note(note_id)

    def delete_note(self, note_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM clinician_notes WHERE id = ?", (note_id,))
            conn.commit()
            return cursor.rowcount > 0

    # Treatment plans

    def get_treatment_plan(self, patient_id: str) -> TreatmentPlan | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM treatment_plans WHERE patient_id = ?", (patient_id,)
            ).fetchone()
        return TreatmentPlan.from_row(row) if row else None

    def save_treatment_plan(self, plan: TreatmentPlan) -> TreatmentPlan:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO treatment_plans (
                    patient_id, medications, monitoring, alert_thresholds,
                    lifestyle, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    plan.patient_id, json.dumps(plan.medications),
                    json.dumps(plan.monitoring), json.dumps(plan.alert_thresholds),
                    json.dumps(plan.lifestyle), plan.updated_at.isoformat(),
                )
            )
            conn.commit()

        return plan
