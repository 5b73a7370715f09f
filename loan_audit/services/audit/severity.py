"""
Loan Audit Engine - Severity Scaling

Maps a measured value onto a severity tier. Rules decide whether to emit a
finding at all; these helpers only decide how severe it is.
"""
from typing import Optional

from ...models import Severity


def scale_severity(
    value: float,
    moderate: float,
    high: float,
    low: Optional[float] = None,
    critical: Optional[float] = None,
) -> Optional[Severity]:
    """
    Highest tier whose threshold the value meets or exceeds.

    Returns LOW only when a low threshold is given and met; otherwise a value
    under the moderate threshold gives None.
    """
    if critical is not None and value >= critical:
        return Severity.CRITICAL
    if value >= high:
        return Severity.HIGH
    if value >= moderate:
        return Severity.MODERATE
    if low is not None and value >= low:
        return Severity.LOW
    return None


def duration_severity(value: float, moderate: float, high: float) -> Severity:
    """Severity for an already-triggered finding; never below LOW."""
    return scale_severity(value, moderate=moderate, high=high) or Severity.LOW


def evaluate_duration(actual_months: int, maximum_months: int, severe_months: int) -> Optional[Severity]:
    """
    Severity of a duration that must not exceed maximum_months.

    None while the duration is within the maximum. Past it, MODERATE from the
    maximum and HIGH from severe_months.
    """
    if actual_months <= maximum_months:
        return None
    return duration_severity(actual_months, moderate=maximum_months, high=severe_months)
