"""Core of the remote BP monitoring backend."""

from .classifier import classify_reading, should_alert
from .alerting import AlertingPipeline, UNKNOWN_PATIENT
from .lifecycle import AlertLifecycle, ALLOWED_TRANSITIONS
from .ingest import ReadingIngestor, IngestResult
from .errors import (
    MonitoringError,
    ValidationError,
    NotFoundError,
    AlertNotFoundError,
    PatientNotFoundError,
    NoteNotFoundError,
    DuplicateRecordError,
    PatientExistsError,
    InvalidTransitionError,
)
from .models import (
    Alert,
    AlertAuditEntry,
    AlertSeverity,
    AlertStatus,
    AlertType,
    AuditAction,
    ClinicianNote,
    NoteType,
    Patient,
    PatientStatus,
    Reading,
    ReadingSource,
    ReadingStatus,
    RiskLevel,
    TreatmentPlan,
)
from .store import BaseStore, MemoryStore, SQLiteStore, create_store

__all__ = [
    # Core logic
    "classify_reading",
    "should_alert",
    "AlertingPipeline",
    "UNKNOWN_PATIENT",
    "AlertLifecycle",
    "ALLOWED_TRANSITIONS",
    "ReadingIngestor",
    "IngestResult",
    # Errors
    "MonitoringError",
    "ValidationError",
    "NotFoundError",
    "AlertNotFoundError",
    "PatientNotFoundError",
    "NoteNotFoundError",
    "DuplicateRecordError",
    "PatientExistsError",
    "InvalidTransitionError",
    # Models
    "Alert",
    "AlertAuditEntry",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "AuditAction",
    "ClinicianNote",
    "NoteType",
    "Patient",
    "PatientStatus",
    "Reading",
    "ReadingSource",
    "ReadingStatus",
    "RiskLevel",
    "TreatmentPlan",
    # Storage
    "BaseStore",
    "MemoryStore",
    "SQLiteStore",
    "create_store",
]
