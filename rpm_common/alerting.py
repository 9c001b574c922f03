"""Raise clinician alerts for high and critical BP readings.

Alert creation is a best-effort side effect of a reading write. A failure
here is logged and never propagates to the caller that stored the reading.
Every qualifying reading gets its own alert; there is no deduplication.
"""

import logging
from datetime import datetime
from typing import Callable, Protocol

from .classifier import should_alert
from .models import (
    Alert,
    AlertSeverity,
    AlertStatus,
    AlertType,
    AuditAction,
    Reading,
    ReadingStatus,
)
from .store import BaseStore

logger = logging.getLogger(__name__)

UNKNOWN_PATIENT = "Unknown Patient"

NameResolver = Callable[[str], str | None]


class AlertNotifier(Protocol):
    def notify_new_alert(self, alert: Alert) -> bool:
        ...


def store_name_resolver(store: BaseStore) -> NameResolver:
    """Resolve display names from the store's patient records."""
    def resolve(patient_id: str) -> str | None:
        patient = store.get_patient(patient_id)
        return patient.display_name if patient else None
    return resolve


def build_alert(reading: Reading, patient_name: str, created_at: datetime) -> Alert:
    """Build the (unsaved) alert for a high or critical reading."""
    critical = reading.status == ReadingStatus.CRITICAL

    return Alert(
        id="",
        patient_id=reading.patient_id,
        patient_name=patient_name,
        alert_type=AlertType.CRITICAL_BP if critical else AlertType.HIGH_BP,
        severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
        status=AlertStatus.NEW,
        title="Critical Blood Pressure Alert" if critical else "High Blood Pressure Alert",
        description=(
            f"Blood pressure reading of {reading.systolic}/{reading.diastolic} "
            "mmHg requires attention."
        ),
        related_reading_id=reading.id,
        trigger_value=reading.display_value,
        created_at=created_at,
    )


class AlertingPipeline:
    """Decides whether a stored reading raises an alert, and saves it."""

    def __init__(
        self,
        store: BaseStore,
        name_resolver: NameResolver | None = None,
        notifier: AlertNotifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.name_resolver = name_resolver or store_name_resolver(store)
        self.notifier = notifier
        self.clock = clock or datetime.now

    def resolve_patient_name(self, patient_id: str) -> str:
        """Look up the display name, falling back to "Unknown Patient"."""
        try:
            name = self.name_resolver(patient_id)
        except Exception as e:
            logger.warning(f"Patient name lookup failed for {patient_id}: {e}")
            return UNKNOWN_PATIENT
        return name or UNKNOWN_PATIENT

    def process_reading(self, reading: Reading) -> Alert | None:
        """Create an alert if the reading's tier requires one.

        Returns:
            The saved alert, or None if no alert was needed or saving failed.
        """
        if not should_alert(reading.status):
            return None

        patient_name = self.resolve_patient_name(reading.patient_id)
        alert = build_alert(reading, patient_name, created_at=self.clock())

        try:
            saved = self.store.add_alert(alert)
        except Exception as e:
            # Reading is already committed; alerting must not fail it
            logger.error(f"Failed to create alert for reading {reading.id}: {e}")
            return None

        try:
            self.store.add_audit_entry(
                saved.id,
                AuditAction.CREATED,
                details=f"Reading {reading.id}: {reading.display_value}",
                performed_at=saved.created_at,
            )
        except Exception as e:
            logger.error(f"Failed to write audit entry for alert {saved.id}: {e}")

        logger.info(
            f"{saved.alert_type.value} alert {saved.id} raised for patient "
            f"{saved.patient_id} ({saved.trigger_value})"
        )
        self._notify(saved)
        return saved

    def _notify(self, alert: Alert) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify_new_alert(alert)
        except Exception as e:
            logger.error(f"Failed to send notification for alert {alert.id}: {e}")
