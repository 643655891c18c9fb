"""
Time utilities for the baseline drift engine.

Timestamps throughout the engine are unix seconds as floats (UTC).
"""

from datetime import datetime, timezone
from typing import Callable

from baseline_drift.core.constants import SECONDS_PER_DAY

Clock = Callable[[], float]


def now() -> float:
    """
    Get current UTC time as a unix timestamp.

    Returns:
        Seconds since epoch
    """
    return datetime.now(timezone.utc).timestamp()


def timestamp_to_datetime(timestamp: float) -> datetime:
    """
    Convert unix timestamp to timezone-aware datetime.

    Example:
        >>> timestamp_to_datetime(1609459200).year
        2021
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def datetime_to_timestamp(dt: datetime) -> float:
    """Convert datetime to unix timestamp (naive datetimes assumed UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def days_between(start: float, end: float) -> float:
    """Signed number of days from ``start`` to ``end``."""
    return (end - start) / SECONDS_PER_DAY


def age_in_days(timestamp: float, reference: float) -> float:
    """Days elapsed between ``timestamp`` and ``reference``, never negative."""
    return max(0.0, days_between(timestamp, reference))


class StreamClock:
    """
    Clock that follows the timestamps of a replayed stream.

    Calling the instance returns the latest timestamp it was advanced to,
    so age and decay computations read the recording's time rather than
    the wall clock.
    """

    def __init__(self, start: float = 0.0):
        self._current = start

    def advance(self, timestamp: float) -> None:
        """Move forward to ``timestamp``; earlier timestamps are ignored."""
        if timestamp > self._current:
            self._current = timestamp

    def __call__(self) -> float:
        return self._current
