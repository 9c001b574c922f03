"""Alert lifecycle: new -> acknowledged -> resolved.

Only acknowledge() and resolve() write an alert's status. Calls and messages
to the patient are recorded in the audit log and never change status.
"""

import logging
from datetime import datetime
from typing import Callable

from .errors import AlertNotFoundError, InvalidTransitionError, ValidationError
from .models import Alert, AlertStatus, AuditAction
from .store import BaseStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.NEW: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
}

CONTACT_ACTIONS = {
    "call": AuditAction.CALLED,
    "message": AuditAction.MESSAGED,
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _optional_text(value, field: str) -> str | None:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return value


class AlertLifecycle:
    """Applies status transitions to stored alerts."""

    def __init__(self, store: BaseStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self.clock = clock or datetime.now

    def _get(self, alert_id: str) -> Alert:
        alert = self.store.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def _audit(self, alert_id: str, action: AuditAction, **kwargs) -> None:
        """Audit a status change that is already committed."""
        try:
            self.store.add_audit_entry(alert_id, action, **kwargs)
        except Exception as e:
            logger.error(f"Failed to write {action.value} audit entry for alert {alert_id}: {e}")

    def acknowledge(self, alert_id: str, acknowledged_by: str | None = None) -> Alert:
        """Mark the clinician as aware of an alert.

        Re-acknowledging an acknowledged alert returns it unchanged.

        Raises:
            AlertNotFoundError: Unknown alert ID
            InvalidTransitionError: Alert is already resolved
        """
        # A lost conditional write means another request changed the
        # status in between; re-read and apply the rules once more.
        for _ in range(2):
            alert = self._get(alert_id)
            if alert.status == AlertStatus.ACKNOWLEDGED:
                return alert
            if not can_transition(alert.status, AlertStatus.ACKNOWLEDGED):
                raise InvalidTransitionError(alert_id, alert.status, AlertStatus.ACKNOWLEDGED)

            now = self.clock()
            updated = self.store.update_alert(
                alert_id,
                expected_status=alert.status,
                status=AlertStatus.ACKNOWLEDGED,
                acknowledged_at=now,
                acknowledged_by=acknowledged_by,
            )
            if updated is not None:
                self._audit(
                    alert_id, AuditAction.ACKNOWLEDGED,
                    performed_by=acknowledged_by, performed_at=now,
                )
                logger.info(f"Alert {alert_id} acknowledged by {acknowledged_by}")
                return updated

        alert = self._get(alert_id)
        if alert.status == AlertStatus.ACKNOWLEDGED:
            return alert
        raise InvalidTransitionError(alert_id, alert.status, AlertStatus.ACKNOWLEDGED)

    def resolve(
        self,
        alert_id: str,
        resolved_by: str | None = None,
        resolution: str | None = None,
    ) -> Alert:
        """Close an alert. Terminal.

        Raises:
            ValidationError: resolution is not a string
            AlertNotFoundError: Unknown alert ID
            InvalidTransitionError: Alert is already resolved
        """
        resolution = _optional_text(resolution, "resolution")

        for _ in range(2):
            alert = self._get(alert_id)
            if not can_transition(alert.status, AlertStatus.RESOLVED):
                raise InvalidTransitionError(alert_id, alert.status, AlertStatus.RESOLVED)

            now = self.clock()
            fields = {
                "status": AlertStatus.RESOLVED,
                "resolved_at": now,
                "resolved_by": resolved_by,
            }
            if resolution:
                fields["resolution"] = resolution

            updated = self.store.update_alert(alert_id, expected_status=alert.status, **fields)
            if updated is not None:
                self._audit(
                    alert_id, AuditAction.RESOLVED,
                    performed_by=resolved_by, performed_at=now,
                    details=resolution[:200] if resolution else None,
                )
                logger.info(f"Alert {alert_id} resolved by {resolved_by}")
                return updated

        alert = self._get(alert_id)
        raise InvalidTransitionError(alert_id, alert.status, AlertStatus.RESOLVED)

    def transition(
        self,
        alert_id: str,
        target: AlertStatus | str,
        user: str | None = None,
        resolution: str | None = None,
    ) -> Alert:
        """Route a requested target status to acknowledge() or resolve()."""
        if not isinstance(target, AlertStatus):
            try:
                target = AlertStatus(target)
            except ValueError:
                raise ValidationError(f"Invalid status: {target}", field="status") from None

        if target == AlertStatus.ACKNOWLEDGED:
            return self.acknowledge(alert_id, acknowledged_by=user)
        if target == AlertStatus.RESOLVED:
            return self.resolve(alert_id, resolved_by=user, resolution=resolution)

        current = self._get(alert_id)
        raise InvalidTransitionError(alert_id, current.status, target)

    def record_contact(
        self,
        alert_id: str,
        method: str,
        performed_by: str | None = None,
        details: str | None = None,
    ) -> Alert:
        """Log a call or message to the patient about an alert.

        The alert's status is left as it is.
        """
        action = CONTACT_ACTIONS.get(method) if isinstance(method, str) else None
        if action is None:
            raise ValidationError(
                f"Invalid contact method: {method} (expected call or message)",
                field="method",
            )
        details = _optional_text(details, "details")

        alert = self._get(alert_id)
        now = self.clock()
        # The audit entry is the record of the contact; its failure propagates
        self.store.add_audit_entry(
            alert_id, action,
            performed_by=performed_by, performed_at=now, details=details,
        )
        try:
            if self.store.get_patient(alert.patient_id):
                self.store.update_patient(alert.patient_id, {"last_contact": now})
        except Exception as e:
            logger.error(f"Failed to update last contact for patient {alert.patient_id}: {e}")
        logger.info(f"Alert {alert_id}: {method} recorded by {performed_by}")
        return alert
