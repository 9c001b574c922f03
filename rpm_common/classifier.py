"""Blood pressure severity classification.

Thresholds are evaluated top-down and the first matching band wins, so a
reading that satisfies more than one band gets the worse tier.
"""

from .models import ReadingStatus

# (tier, systolic at or above, diastolic at or above), worst first
BP_THRESHOLDS: tuple[tuple[ReadingStatus, int, int], ...] = (
    (ReadingStatus.CRITICAL, 180, 120),
    (ReadingStatus.HIGH, 140, 90),
    (ReadingStatus.ELEVATED, 130, 80),
)

# Tiers that raise a clinician alert
ALERTING_STATUSES = frozenset({ReadingStatus.CRITICAL, ReadingStatus.HIGH})


def classify_reading(systolic: int, diastolic: int) -> ReadingStatus:
    """Map a systolic/diastolic pair to a severity tier.

    Any integer is classified. Range checks happen at ingestion, before this
    is called.
    """
    for status, systolic_min, diastolic_min in BP_THRESHOLDS:
        if systolic >= systolic_min or diastolic >= diastolic_min:
            return status
    return ReadingStatus.NORMAL


def should_alert(status: ReadingStatus) -> bool:
    """Check if a reading tier must raise an alert."""
    return status in ALERTING_STATUSES
