"""Data models for readings, alerts, patients and clinician notes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
import json


class ReadingStatus(Enum):
    """Severity tier computed from a blood pressure reading."""
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"


class ReadingSource(Enum):
    """Where a reading was captured."""
    PATIENT_APP = "patient-app"
    MANUAL = "manual"
    DEVICE_SYNC = "device-sync"


class AlertType(Enum):
    """Types of alerts shown to clinicians."""
    HIGH_BP = "high-bp"
    CRITICAL_BP = "critical-bp"
    MISSED_READING = "missed-reading"
    LOW_ADHERENCE = "low-adherence"
    FOLLOW_UP_DUE = "follow-up-due"


class AlertSeverity(Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AlertStatus(Enum):
    """Alert lifecycle status."""
    NEW = "new"                    # Raised, nobody has looked at it yet
    ACKNOWLEDGED = "acknowledged"  # Clinician is aware
    RESOLVED = "resolved"          # Closed, terminal


class AuditAction(Enum):
    """Actions tracked in the alert audit log."""
    CREATED = "created"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    CALLED = "called"
    MESSAGED = "messaged"


class RiskLevel(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    STABLE = "stable"


class PatientStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class NoteType(Enum):
    GENERAL = "general"
    MEDICATION_CHANGE = "medication-change"
    FOLLOW_UP = "follow-up"
    ALERT_RESPONSE = "alert-response"
    CARE_PLAN = "care-plan"


def parse_datetime(val) -> datetime | None:
    """Parse an ISO timestamp (or pass through a datetime)."""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val.replace("Z", "+00:00"))


def _iso(val: datetime | None) -> str | None:
    return val.isoformat() if val else None


def _load_json(val, default):
    if val is None or val == "":
        return default
    if isinstance(val, (list, dict)):
        return val
    return json.loads(val)


def _compact(data: dict[str, Any], optional: tuple[str, ...]) -> dict[str, Any]:
    """Drop optional keys whose value is None."""
    return {k: v for k, v in data.items() if not (k in optional and v is None)}


@dataclass(frozen=True)
class Reading:
    """A single blood pressure measurement. Never mutated once stored."""
    id: str
    patient_id: str
    systolic: int
    diastolic: int
    timestamp: datetime
    source: ReadingSource
    status: ReadingStatus
    pulse: int | None = None
    device_id: str | None = None
    patient_note: str | None = None

    @property
    def display_value(self) -> str:
        return f"{self.systolic}/{self.diastolic}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return _compact(
            {
                "id": self.id,
                "patientId": self.patient_id,
                "systolic": self.systolic,
                "diastolic": self.diastolic,
                "pulse": self.pulse,
                "timestamp": _iso(self.timestamp),
                "source": self.source.value,
                "deviceId": self.device_id,
                "status": self.status.value,
                "patientNote": self.patient_note,
            },
            optional=("pulse", "deviceId", "patientNote"),
        )

    @classmethod
    def from_row(cls, row) -> "Reading":
        """Create from a database row (sqlite3.Row or mapping)."""
        return cls(
            id=row["id"],
            patient_id=row["patient_id"],
            systolic=row["systolic"],
            diastolic=row["diastolic"],
            pulse=row["pulse"],
            timestamp=parse_datetime(row["timestamp"]),
            source=ReadingSource(row["source"]),
            device_id=row["device_id"],
            status=ReadingStatus(row["status"]),
            patient_note=row["patient_note"],
        )


@dataclass
class Alert:
    """A clinician-facing alert with lifecycle tracking."""
    id: str
    patient_id: str
    patient_name: str
    alert_type: AlertType
    severity: AlertSeverity
    status: AlertStatus

    title: str = ""
    description: str = ""

    # Related data
    related_reading_id: str | None = None
    trigger_value: str | None = None  # e.g. "185/110"

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    resolution: str | None = None

    def is_actionable(self) -> bool:
        """Check if alert still requires attention."""
        return self.status != AlertStatus.RESOLVED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return _compact(
            {
                "id": self.id,
                "patientId": self.patient_id,
                "patientName": self.patient_name,
                "type": self.alert_type.value,
                "severity": self.severity.value,
                "status": self.status.value,
                "title": self.title,
                "description": self.description,
                "relatedReadingId": self.related_reading_id,
                "triggerValue": self.trigger_value,
                "createdAt": _iso(self.created_at),
                "acknowledgedAt": _iso(self.acknowledged_at),
                "acknowledgedBy": self.acknowledged_by,
                "resolvedAt": _iso(self.resolved_at),
                "resolvedBy": self.resolved_by,
                "resolution": self.resolution,
            },
            optional=(
                "relatedReadingId", "triggerValue", "acknowledgedAt",
                "acknowledgedBy", "resolvedAt", "resolvedBy", "resolution",
            ),
        )

    @classmethod
    def from_row(cls, row) -> "Alert":
        """Create from a database row (sqlite3.Row or mapping)."""
        return cls(
            id=row["id"],
            patient_id=row["patient_id"],
            patient_name=row["patient_name"],
            alert_type=AlertType(row["alert_type"]),
            severity=AlertSeverity(row["severity"]),
            status=AlertStatus(row["status"]),
            title=row["title"] or "",
            description=row["description"] or "",
            related_reading_id=row["related_reading_id"],
            trigger_value=row["trigger_value"],
            created_at=parse_datetime(row["created_at"]),
            acknowledged_at=parse_datetime(row["acknowledged_at"]),
            acknowledged_by=row["acknowledged_by"],
            resolved_at=parse_datetime(row["resolved_at"]),
            resolved_by=row["resolved_by"],
            resolution=row["resolution"],
        )


@dataclass
class AlertAuditEntry:
    """Audit log entry for alert actions."""
    id: int
    alert_id: str
    action: AuditAction
    performed_by: str | None
    performed_at: datetime
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "alertId": self.alert_id,
            "action": self.action.value,
            "performedBy": self.performed_by,
            "performedAt": _iso(self.performed_at),
            "details": self.details,
        }

    @classmethod
    def from_row(cls, row) -> "AlertAuditEntry":
        return cls(
            id=row["id"],
            alert_id=row["alert_id"],
            action=AuditAction(row["action"]),
            performed_by=row["performed_by"],
            performed_at=parse_datetime(row["performed_at"]),
            details=row["details"],
        )


@dataclass
class Patient:
    """Patient profile as managed by the care team."""
    id: str
    first_name: str
    last_name: str
    date_of_birth: str
    phone: str
    gender: str = "other"
    email: str | None = None
    address: dict | None = None
    emergency_contact: dict | None = None

    # Clinical info
    diagnosis: list[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.MODERATE
    target_systolic: int = 130
    target_diastolic: int = 80
    medications: list[dict] = field(default_factory=list)

    assigned_clinician_id: str | None = None
    status: PatientStatus = PatientStatus.ACTIVE

    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    last_contact: datetime | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return _compact(
            {
                "id": self.id,
                "firstName": self.first_name,
                "lastName": self.last_name,
                "dateOfBirth": self.date_of_birth,
                "gender": self.gender,
                "phone": self.phone,
                "email": self.email,
                "address": self.address,
                "emergencyContact": self.emergency_contact,
                "diagnosis": list(self.diagnosis),
                "riskLevel": self.risk_level.value,
                "targetSystolic": self.target_systolic,
                "targetDiastolic": self.target_diastolic,
                "medications": list(self.medications),
                "assignedClinicianId": self.assigned_clinician_id,
                "status": self.status.value,
                "createdAt": _iso(self.created_at),
                "updatedAt": _iso(self.updated_at),
                "lastContact": _iso(self.last_contact),
            },
            optional=("email", "address", "emergencyContact", "lastContact"),
        )

    @classmethod
    def from_row(cls, row) -> "Patient":
        """Create from a database row (sqlite3.Row or mapping)."""
        return cls(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            date_of_birth=row["date_of_birth"],
            gender=row["gender"] or "other",
            phone=row["phone"],
            email=row["email"],
            address=_load_json(row["address"], None),
            emergency_contact=_load_json(row["emergency_contact"], None),
            diagnosis=_load_json(row["diagnosis"], []),
            risk_level=RiskLevel(row["risk_level"]),
            target_systolic=row["target_systolic"],
            target_diastolic=row["target_diastolic"],
            medications=_load_json(row["medications"], []),
            assigned_clinician_id=row["assigned_clinician_id"],
            status=PatientStatus(row["status"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
            last_contact=parse_datetime(row["last_contact"]),
        )


@dataclass
class ClinicianNote:
    """Free-text note written by a clinician about a patient."""
    id: str
    patient_id: str
    clinician_id: str
    clinician_name: str
    content: str
    note_type: NoteType = NoteType.GENERAL
    related_reading_id: str | None = None
    related_alert_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "patientId": self.patient_id,
                "clinicianId": self.clinician_id,
                "clinicianName": self.clinician_name,
                "content": self.content,
                "noteType": self.note_type.value,
                "relatedReadingId": self.related_reading_id,
                "relatedAlertId": self.related_alert_id,
                "createdAt": _iso(self.created_at),
                "updatedAt": _iso(self.updated_at),
            },
            optional=("relatedReadingId", "relatedAlertId"),
        )

    @classmethod
    def from_row(cls, row) -> "ClinicianNote":
        return cls(
            id=row["id"],
            patient_id=row["patient_id"],
            clinician_id=row["clinician_id"],
            clinician_name=row["clinician_name"],
            content=row["content"],
            note_type=NoteType(row["note_type"]),
            related_reading_id=row["related_reading_id"],
            related_alert_id=row["related_alert_id"],
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )


@dataclass
class TreatmentPlan:
    """Per-patient treatment plan edited from the dashboard drawer."""
    patient_id: str
    medications: list[dict] = field(default_factory=list)
    monitoring: dict = field(default_factory=dict)
    alert_thresholds: dict = field(default_factory=dict)
    lifestyle: dict = field(default_factory=dict)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "patientId": self.patient_id,
            "medications": self.medications,
            "monitoring": self.monitoring,
            "alertThresholds": self.alert_thresholds,
            "lifestyle": self.lifestyle,
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_row(cls, row) -> "TreatmentPlan":
        return cls(
            patient_id=row["patient_id"],
            medications=_load_json(row["medications"], []),
            monitoring=_load_json(row["monitoring"], {}),
            alert_thresholds=_load_json(row["alert_thresholds"], {}),
            lifestyle=_load_json(row["lifestyle"], {}),
            updated_at=parse_datetime(row["updated_at"]),
        )


@dataclass
class ReadingStats:
    """Summary statistics over a list of readings."""
    avg_systolic: int = 0
    avg_diastolic: int = 0
    total_readings: int = 0
    critical_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "avgSystolic": self.avg_systolic,
            "avgDiastolic": self.avg_diastolic,
            "totalReadings": self.total_readings,
            "criticalCount": self.critical_count,
        }


def calculate_stats(readings: list[Reading]) -> ReadingStats:
    """Average BP and count of high/critical readings."""
    if not readings:
        return ReadingStats()

    total = len(readings)
    return ReadingStats(
        avg_systolic=round(sum(r.systolic for r in readings) / total),
        avg_diastolic=round(sum(r.diastolic for r in readings) / total),
        total_readings=total,
        critical_count=sum(
            1 for r in readings
            if r.status in (ReadingStatus.CRITICAL, ReadingStatus.HIGH)
        ),
    )
