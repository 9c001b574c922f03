"""Blood pressure reading ingestion.

validate -> classify -> store reading -> raise alert (best effort)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .alerting import AlertingPipeline
from .classifier import classify_reading
from .errors import ValidationError
from .models import Alert, Reading, ReadingSource
from .store import BaseStore

logger = logging.getLogger(__name__)

SYSTOLIC_RANGE = (60, 300)
DIASTOLIC_RANGE = (40, 200)
DEFAULT_SOURCE = ReadingSource.PATIENT_APP


@dataclass
class IngestResult:
    """Outcome of a reading submission."""
    reading: Reading
    alert: Alert | None = None


def _require_int(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None:
        raise ValidationError(f"{key} is required", field=key)
    # bool is an int subclass; reject it along with 120.5 and "120"
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", field=key)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer", field=key)
    return value


def _check_range(value: int, key: str, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if value < low or value > high:
        raise ValidationError(f"Invalid {key} value (must be {low}-{high})", field=key)


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", field=key)
    return value


def validate_reading_payload(payload: Any) -> dict[str, Any]:
    """Check a submission and normalize it to model field names.

    Raises:
        ValidationError: Missing, malformed or out-of-range fields.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    patient_id = payload.get("patientId")
    if not patient_id or not isinstance(patient_id, str):
        raise ValidationError("patientId is required", field="patientId")

    systolic = _require_int(payload, "systolic")
    diastolic = _require_int(payload, "diastolic")
    _check_range(systolic, "systolic", SYSTOLIC_RANGE)
    _check_range(diastolic, "diastolic", DIASTOLIC_RANGE)

    pulse = None
    if payload.get("pulse") is not None:
        pulse = _require_int(payload, "pulse")
        if pulse <= 0:
            raise ValidationError("pulse must be positive", field="pulse")

    source = DEFAULT_SOURCE
    if payload.get("source"):
        try:
            source = ReadingSource(payload["source"])
        except ValueError:
            allowed = ", ".join(s.value for s in ReadingSource)
            raise ValidationError(
                f"Invalid source: {payload['source']} (expected one of {allowed})",
                field="source",
            ) from None

    return {
        "patient_id": patient_id,
        "systolic": systolic,
        "diastolic": diastolic,
        "pulse": pulse,
        "source": source,
        "device_id": _optional_str(payload, "deviceId"),
        "patient_note": _optional_str(payload, "patientNote"),
    }


class ReadingIngestor:
    """Accepts readings from patient devices and the mobile app."""

    def __init__(
        self,
        store: BaseStore,
        pipeline: AlertingPipeline | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.pipeline = pipeline or AlertingPipeline(store)
        self.clock = clock or datetime.now

    def submit(self, payload: dict[str, Any]) -> IngestResult:
        """Validate, classify and store a reading, then raise an alert if needed.

        Succeeds once validation passes, whatever happens to the alert.

        Raises:
            ValidationError: The payload was rejected; nothing was stored.
        """
        fields = validate_reading_payload(payload)
        status = classify_reading(fields["systolic"], fields["diastolic"])

        reading = self.store.add_reading(Reading(
            id="",
            timestamp=self.clock(),
            status=status,
            **fields,
        ))
        logger.info(
            f"Reading {reading.id} stored for patient {reading.patient_id}: "
            f"{reading.display_value} ({status.value})"
        )

        alert = self.pipeline.process_reading(reading)
        return IngestResult(reading=reading, alert=alert)
