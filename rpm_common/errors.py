"""Exceptions raised by the monitoring core."""


class MonitoringError(Exception):
    """Base class for all monitoring errors."""

    kind = "error"


class ValidationError(MonitoringError):
    """Malformed or out-of-range input. Raised before anything is persisted."""

    kind = "validation"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(MonitoringError):
    """A referenced record does not exist."""

    kind = "not_found"
    entity = "Record"

    def __init__(self, record_id: str):
        super().__init__(f"{self.entity} not found: {record_id}")
        self.record_id = record_id


class AlertNotFoundError(NotFoundError):
    entity = "Alert"


class PatientNotFoundError(NotFoundError):
    entity = "Patient"


class NoteNotFoundError(NotFoundError):
    entity = "Note"


class DuplicateRecordError(MonitoringError):
    """A record with the given ID already exists."""

    kind = "conflict"
    entity = "Record"

    def __init__(self, record_id: str):
        super().__init__(f"{self.entity} already exists: {record_id}")
        self.record_id = record_id


class PatientExistsError(DuplicateRecordError):
    entity = "Patient"


class InvalidTransitionError(MonitoringError):
    """An alert status change that would move the lifecycle backward."""

    kind = "invalid_transition"

    def __init__(self, alert_id: str, current, target):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"Alert {alert_id} cannot move from {current_value} to {target_value}"
        )
        self.alert_id = alert_id
        self.current = current
        self.target = target
