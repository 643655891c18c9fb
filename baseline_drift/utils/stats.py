"""Numeric helpers shared by the analysis engines."""

import math
from typing import NamedTuple, Sequence, Tuple

import numpy as np


class LinearFit(NamedTuple):
    """Least-squares line through (x, y) points."""

    slope: float
    intercept: float
    r_squared: float


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp a value into [lower, upper]. NaN clamps to ``lower``."""
    if math.isnan(value):
        return lower
    return max(lower, min(upper, value))


def sigmoid(x: float) -> float:
    """Logistic function, safe for large magnitudes."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def mean(values: Sequence[float], default: float = 0.0) -> float:
    """Arithmetic mean, or ``default`` for an empty sequence."""
    if len(values) == 0:
        return default
    return float(np.mean(np.asarray(values, dtype=float)))


def trimmed_mean(values: Sequence[float], trim_fraction: float = 0.1) -> float:
    """
    Mean after discarding the extreme tails of the sample.

    ``floor(n * trim_fraction)`` values are removed from each end of the
    sorted sample. Samples shorter than four values are not trimmed.

    Args:
        values: Observations
        trim_fraction: Fraction removed from each tail

    Returns:
        Robust mean (0.0 for an empty sample)
    """
    if len(values) == 0:
        return 0.0
    arr = np.sort(np.asarray(values, dtype=float))
    if arr.size < 4:
        return float(arr.mean())

    trim = int(math.floor(arr.size * trim_fraction))
    if trim > 0:
        arr = arr[trim:arr.size - trim]
    return float(arr.mean())


def mean_std(values: Sequence[float]) -> Tuple[float, float]:
    """Population mean and standard deviation (ddof=0)."""
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    return float(arr.mean()), float(arr.std())


def variance(values: Sequence[float]) -> float:
    """Population variance."""
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float)))


def mean_abs_successive_difference(values: Sequence[float]) -> float:
    """Average absolute change between consecutive values."""
    if len(values) < 2:
        return 0.0
    return float(np.mean(np.abs(np.diff(np.asarray(values, dtype=float)))))


def linear_regression(xs: Sequence[float], ys: Sequence[float]) -> LinearFit:
    """
    Ordinary least squares fit of ys against xs.

    X values are centred before fitting so large unix timestamps do not
    lose precision. R-squared is floored at 0; a flat series or a series
    with a single distinct x yields zero slope and zero R-squared.

    Args:
        xs: Independent values (e.g. timestamps)
        ys: Dependent values

    Returns:
        LinearFit with slope, intercept (in the original x scale) and R-squared
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if x.size != y.size:
        raise ValueError(f"xs and ys differ in length: {x.size} != {y.size}")
    if x.size == 0:
        return LinearFit(0.0, 0.0, 0.0)

    x_mean = x.mean()
    y_mean = y.mean()
    dx = x - x_mean
    sxx = float(np.dot(dx, dx))
    if sxx == 0.0:
        return LinearFit(0.0, float(y_mean), 0.0)

    slope = float(np.dot(dx, y - y_mean)) / sxx
    intercept = float(y_mean - slope * x_mean)

    residuals = y - (slope * dx + y_mean)
    total = float(np.dot(y - y_mean, y - y_mean))
    if total == 0.0:
        return LinearFit(slope, intercept, 0.0)
    r_squared = 1.0 - float(np.dot(residuals, residuals)) / total
    return LinearFit(slope, intercept, max(0.0, r_squared))
