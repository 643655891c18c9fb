"""Utilities package initialization."""

from baseline_drift.utils.stats import (
    LinearFit,
    clamp,
    linear_regression,
    mean_std,
    sigmoid,
    trimmed_mean,
)
from baseline_drift.utils.time import Clock, StreamClock, age_in_days, days_between, now

__all__ = [
    "LinearFit",
    "clamp",
    "linear_regression",
    "mean_std",
    "sigmoid",
    "trimmed_mean",
    "Clock",
    "StreamClock",
    "age_in_days",
    "days_between",
    "now",
]
