"""Tests for reading statistics and the population summary."""

from datetime import datetime, timedelta

from rpm_common.analytics import population_summary
from rpm_common.models import (
    Reading,
    ReadingSource,
    ReadingStatus,
    RiskLevel,
    calculate_stats,
)

from .conftest import make_patient

NOW = datetime(2025, 3, 10, 12, 0)


def reading(systolic, diastolic, status, patient_id="P-2025-001", days_ago=1):
    return Reading(
        id="",
        patient_id=patient_id,
        systolic=systolic,
        diastolic=diastolic,
        timestamp=NOW - timedelta(days=days_ago),
        source=ReadingSource.PATIENT_APP,
        status=status,
    )


class TestCalculateStats:

    def test_empty(self):
        assert calculate_stats([]).to_dict() == {
            "avgSystolic": 0,
            "avgDiastolic": 0,
            "totalReadings": 0,
            "criticalCount": 0,
        }

    def test_averages_and_counts(self):
        stats = calculate_stats([
            reading(120, 80, ReadingStatus.ELEVATED),
            reading(150, 95, ReadingStatus.HIGH),
            reading(186, 111, ReadingStatus.CRITICAL),
        ])

        assert stats.avg_systolic == 152
        assert stats.avg_diastolic == 95
        assert stats.total_readings == 3
        assert stats.critical_count == 2


class TestPopulationSummary:

    def test_summary(self, store):
        store.add_patient(make_patient("P-2025-001"))
        store.add_patient(make_patient("P-2025-002", risk_level=RiskLevel.STABLE))

        store.add_reading(reading(120, 78, ReadingStatus.NORMAL))
        store.add_reading(reading(132, 84, ReadingStatus.ELEVATED, patient_id="P-2025-002"))
        store.add_reading(reading(150, 96, ReadingStatus.HIGH))
        store.add_reading(reading(190, 120, ReadingStatus.CRITICAL, days_ago=45))

        summary = population_summary(store, days=30, now=NOW)

        assert summary["periodDays"] == 30
        assert summary["totalPatients"] == 2
        assert summary["patientsByRiskLevel"]["high"] == 1
        assert summary["patientsByRiskLevel"]["stable"] == 1
        assert summary["readingsByStatus"] == {
            "normal": 1, "elevated": 1, "high": 1, "critical": 0,
        }
        assert summary["readingStats"]["totalReadings"] == 3
        assert summary["patientsReporting"] == 2
        assert summary["bpControlRate"] == 66.7
        assert summary["alerts"]["total"] == 0

    def test_empty_store(self, memory_store):
        summary = population_summary(memory_store, now=NOW)

        assert summary["totalPatients"] == 0
        assert summary["bpControlRate"] == 0
        assert summary["readingStats"]["totalReadings"] == 0
