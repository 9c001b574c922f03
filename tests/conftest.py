"""Shared fixtures for monitoring tests."""

from datetime import datetime, timedelta

import pytest

from rpm_common.models import Patient, RiskLevel
from rpm_common.store import MemoryStore, SQLiteStore
from rpm_dashboard.app import create_app


class FakeClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 10, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Run the test against both storage backends."""
    if request.param == "sqlite":
        return SQLiteStore(db_path=str(tmp_path / "test_monitoring.db"))
    return MemoryStore()


def make_patient(patient_id: str = "P-2025-001", **overrides) -> Patient:
    fields = dict(
        id=patient_id,
        first_name="Maria",
        last_name="Rodriguez",
        date_of_birth="1958-04-12",
        phone="(555) 010-2000",
        diagnosis=["Hypertension Stage 2"],
        risk_level=RiskLevel.HIGH,
    )
    fields.update(overrides)
    return Patient(**fields)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "STORE_BACKEND": "memory",
        "DASHBOARD_API_KEY": "",
        "TEAMS_WEBHOOK_URL": "",
        "DEFAULT_CLINICIAN_ID": "clinician-001",
        "DEFAULT_CLINICIAN_NAME": "Dr. Sarah Chen",
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()
