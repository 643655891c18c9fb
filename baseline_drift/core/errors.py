"""
Error taxonomy for the analytics engines.

These exceptions are raised inside the engines and converted to reason codes
at each public boundary; callers only ever see the reason codes.
"""

from typing import Optional

from baseline_drift.core.constants import ReasonCode


class BaselineDriftError(Exception):
    """Base class for engine errors carrying a machine-readable reason."""

    reason: ReasonCode = ReasonCode.COMPUTATION_ERROR

    def __init__(self, message: str = "", reason: Optional[ReasonCode] = None):
        super().__init__(message or self.reason.value)
        if reason is not None:
            self.reason = reason


class InsufficientDataError(BaselineDriftError):
    """Not enough (quality) history to build a baseline. Retry later."""

    reason = ReasonCode.INSUFFICIENT_DATA


class InsufficientRecentDataError(BaselineDriftError):
    """An adaptive update was attempted before enough new data arrived."""

    reason = ReasonCode.INSUFFICIENT_RECENT_DATA


class NoSnapshotDataError(BaselineDriftError):
    """The subject has no buffered snapshots at all."""

    reason = ReasonCode.NO_SNAPSHOT_DATA


class UpdateFailedError(BaselineDriftError):
    """Re-aggregation produced no usable baseline."""

    reason = ReasonCode.UPDATE_FAILED


class ComputationFailure(BaselineDriftError):
    """Unexpected failure during scoring, drift analysis or confidence estimation."""

    reason = ReasonCode.COMPUTATION_ERROR


class NotYetEvaluable(BaselineDriftError):
    """The drift window has not filled yet. Not an error for callers."""

    reason = ReasonCode.NOT_YET_EVALUABLE
