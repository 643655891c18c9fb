"""
Unit tests for statistics and time utilities.
"""

from datetime import datetime, timezone

import pytest

from baseline_drift.utils.stats import (
    clamp,
    linear_regression,
    mean,
    mean_abs_successive_difference,
    mean_std,
    sigmoid,
    trimmed_mean,
    variance,
)
from baseline_drift.utils.time import (
    StreamClock,
    age_in_days,
    datetime_to_timestamp,
    days_between,
    timestamp_to_datetime,
)


class TestTrimmedMean:
    """Tests for trimmed_mean()."""

    def test_empty_returns_zero(self):
        """Test that an empty sample yields 0."""
        assert trimmed_mean([]) == 0.0

    def test_short_sample_not_trimmed(self):
        """Test that fewer than four values use the plain mean."""
        assert trimmed_mean([1.0, 2.0, 100.0]) == pytest.approx(103.0 / 3)

    def test_outliers_removed_from_each_tail(self):
        """Test that floor(n * fraction) values are dropped per side."""
        values = [10.0] * 8 + [-1000.0, 1000.0]
        assert trimmed_mean(values, 0.1) == pytest.approx(10.0)

    def test_zero_fraction_is_plain_mean(self):
        """Test that a zero trim fraction keeps every value."""
        values = [1.0, 2.0, 3.0, 10.0]
        assert trimmed_mean(values, 0.0) == pytest.approx(4.0)


class TestDescriptiveStats:
    """Tests for mean/std/variance helpers."""

    def test_population_std(self):
        """Test that std uses the population formula (ddof=0)."""
        mu, sd = mean_std([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        assert mu == pytest.approx(5.0)
        assert sd == pytest.approx(2.0)

    def test_empty_inputs(self):
        """Test neutral results for empty input."""
        assert mean_std([]) == (0.0, 0.0)
        assert variance([]) == 0.0
        assert mean([], default=0.5) == 0.5

    def test_volatility(self):
        """Test mean absolute successive difference."""
        assert mean_abs_successive_difference([1.0, 3.0, 2.0]) == pytest.approx(1.5)
        assert mean_abs_successive_difference([1.0]) == 0.0

    def test_clamp(self):
        """Test clamping into the unit interval by default."""
        assert clamp(1.5) == 1.0
        assert clamp(-0.2) == 0.0
        assert clamp(5.0, -1.0, 1.0) == 1.0

    def test_clamp_nan_goes_low(self):
        """Test that NaN never clamps to a perfect score."""
        assert clamp(float("nan")) == 0.0
        assert clamp(float("nan"), -1.0, 1.0) == -1.0

    def test_sigmoid_is_stable(self):
        """Test that large magnitudes do not overflow."""
        assert sigmoid(0.0) == pytest.approx(0.5)
        assert sigmoid(1000.0) == pytest.approx(1.0)
        assert sigmoid(-1000.0) == pytest.approx(0.0)


class TestLinearRegression:
    """Tests for linear_regression()."""

    def test_perfect_line(self):
        """Test slope and R-squared for a perfect fit."""
        fit = linear_regression([0.0, 1.0, 2.0, 3.0], [1.0, 3.0, 5.0, 7.0])
        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)
        assert fit.r_squared == pytest.approx(1.0)

    def test_large_timestamps_keep_precision(self):
        """Test that unix-scale x values still give the exact slope."""
        xs = [1_700_000_000.0 + i * 86400 for i in range(5)]
        ys = [0.9 - i * 0.1 for i in range(5)]
        fit = linear_regression(xs, ys)
        assert fit.slope * 86400 == pytest.approx(-0.1)
        assert fit.r_squared == pytest.approx(1.0)

    def test_flat_series(self):
        """Test that a constant series has zero slope and R-squared."""
        fit = linear_regression([0.0, 1.0, 2.0], [0.5, 0.5, 0.5])
        assert fit.slope == 0.0
        assert fit.r_squared == 0.0

    def test_single_distinct_x(self):
        """Test that identical x values yield no slope."""
        fit = linear_regression([5.0, 5.0, 5.0], [1.0, 2.0, 3.0])
        assert fit.slope == 0.0
        assert fit.intercept == pytest.approx(2.0)

    def test_length_mismatch_raises(self):
        """Test that mismatched inputs are rejected."""
        with pytest.raises(ValueError):
            linear_regression([1.0, 2.0], [1.0])


class TestTimeHelpers:
    """Tests for time conversion helpers."""

    def test_timestamp_round_trip_is_utc(self):
        """Test conversion to an aware UTC datetime."""
        dt = timestamp_to_datetime(1609459200)
        assert dt == datetime(2021, 1, 1, tzinfo=timezone.utc)
        assert datetime_to_timestamp(datetime(2021, 1, 1)) == 1609459200

    def test_days_between_is_signed(self):
        """Test that days_between keeps the sign."""
        assert days_between(0.0, 86400.0 * 2) == pytest.approx(2.0)
        assert days_between(86400.0, 0.0) == pytest.approx(-1.0)

    def test_age_never_negative(self):
        """Test that future timestamps have zero age."""
        assert age_in_days(86400.0 * 3, 0.0) == 0.0
        assert age_in_days(0.0, 86400.0 * 3) == pytest.approx(3.0)


class TestStreamClock:
    """Tests for StreamClock."""

    def test_follows_stream(self):
        """Test that the clock reports the latest timestamp seen."""
        clock = StreamClock(100.0)
        clock.advance(250.0)
        assert clock() == 250.0

    def test_never_moves_backwards(self):
        """Test that out-of-order timestamps are ignored."""
        clock = StreamClock(100.0)
        clock.advance(50.0)
        assert clock() == 100.0
