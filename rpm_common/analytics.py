"""Population-level summary for the analytics view."""

from datetime import datetime, timedelta
from typing import Any

from .models import ReadingStatus, RiskLevel, calculate_stats
from .store import BaseStore

# Tiers counted as "in control" for the BP control rate
CONTROLLED_STATUSES = (ReadingStatus.NORMAL, ReadingStatus.ELEVATED)


def population_summary(
    store: BaseStore,
    days: int = 30,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Aggregate patients, readings and alerts over a time window.

    Args:
        store: Storage backend
        days: Number of days of readings to include
        now: End of the window (defaults to current time)
    """
    now = now or datetime.now()
    since = now - timedelta(days=days)

    patients = store.list_patients()
    by_risk = {level.value: 0 for level in RiskLevel}
    for patient in patients:
        by_risk[patient.risk_level.value] += 1

    readings = store.list_readings(since=since)
    by_tier = {status.value: 0 for status in ReadingStatus}
    for reading in readings:
        by_tier[reading.status.value] += 1

    stats = calculate_stats(readings)
    controlled = sum(by_tier[s.value] for s in CONTROLLED_STATUSES)
    control_rate = round(controlled / len(readings) * 100, 1) if readings else 0

    return {
        "periodDays": days,
        "totalPatients": len(patients),
        "patientsByRiskLevel": by_risk,
        "readingsByStatus": by_tier,
        "readingStats": stats.to_dict(),
        "patientsReporting": len({r.patient_id for r in readings}),
        "bpControlRate": control_rate,
        "alerts": store.get_alert_stats(),
    }
