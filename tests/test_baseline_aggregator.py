"""Tests for BaselineAggregator."""

import json
import math

import pytest

from baseline_drift.analysis.baseline_aggregator import BaselineAggregator
from baseline_drift.config import Settings
from baseline_drift.core.constants import CreationMethod, Modality

from conftest import DAY, HOUR, SUBJECT, T0


class TestInitialBaseline:
    """Test initial baseline creation."""

    def test_scenario_a_baseline_created(self, aggregator, snapshot_factory):
        """Test that 25 snapshots of meanDwell ~ N(120, 5) build a baseline."""
        for i in range(25):
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i))

        baseline = aggregator.get_baseline(SUBJECT)
        assert baseline is not None
        assert 20 <= baseline.statistics.sample_count <= 25
        assert baseline.statistics.confidence > 0
        assert baseline.metadata.creation_method == CreationMethod.INITIAL

    def test_no_result_before_minimum(self, aggregator, snapshot_factory):
        """Test that nothing is attempted while the buffer is short."""
        for i in range(19):
            assert aggregator.add_snapshot(SUBJECT, snapshot_factory(i)) is None
        assert aggregator.get_baseline(SUBJECT) is None

    def test_created_on_minimum(self, aggregator, snapshot_factory):
        """Test that the 20th snapshot creates the baseline."""
        result = None
        for i in range(20):
            result = aggregator.add_snapshot(SUBJECT, snapshot_factory(i))

        assert result is not None
        assert result.success
        assert result.significant_changes == ["baseline_created"]
        assert result.confidence_change == pytest.approx(result.baseline.confidence)

    def test_insufficient_data_reason(self, aggregator, snapshot_factory):
        """Test explicit creation with too few snapshots."""
        for i in range(5):
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i))

        result = aggregator.create_initial(SUBJECT)
        assert not result.success
        assert result.warnings == ["insufficient_data"]
        assert result.baseline is None

    def test_low_quality_history_rejected(self, aggregator, snapshot_factory):
        """Test that low-quality snapshots do not count toward a baseline."""
        result = None
        for i in range(20):
            result = aggregator.add_snapshot(SUBJECT, snapshot_factory(i, quality=0.5))

        assert not result.success
        assert result.warnings == ["insufficient_data"]
        assert aggregator.get_baseline(SUBJECT) is None

    def test_robust_point_estimate_and_variability(self, baseline):
        """Test trimmed mean, population std and variability bounds."""
        assert baseline.get(Modality.KEYBOARD, "meanDwell") == pytest.approx(120.0)

        variability = baseline.variability_for(Modality.KEYBOARD, "meanDwell")
        assert variability.mean == pytest.approx(120.0)
        assert variability.std == pytest.approx(math.sqrt(26.0))
        assert variability.lower_bound == pytest.approx(120.0 - 2.5 * math.sqrt(26.0))
        assert variability.upper_bound == pytest.approx(120.0 + 2.5 * math.sqrt(26.0))

    def test_sparse_feature_excluded(self, aggregator, snapshot_factory):
        """Test that features seen fewer than three times get no estimate."""
        for i in range(20):
            extra = {"mouse": {"meanVelocity": 400.0}} if i < 2 else None
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i, features=extra))

        baseline = aggregator.get_baseline(SUBJECT)
        assert baseline.get(Modality.MOUSE, "meanVelocity") is None
        assert baseline.variability_for(Modality.MOUSE, "meanVelocity") is None
        assert baseline.statistics.coverage[Modality.MOUSE]["meanVelocity"] is False

    def test_stable_history_is_stable(self, baseline):
        """Test that identical halves yield full stability."""
        assert baseline.stability == pytest.approx(1.0)

    def test_confidence_grows_with_sample_count(self, clock, snapshot_factory):
        """Test that more samples never lower baseline confidence."""
        small = BaselineAggregator(settings=Settings(min_snapshots_for_baseline=20), clock=clock)
        large = BaselineAggregator(settings=Settings(min_snapshots_for_baseline=40), clock=clock)
        for i in range(20):
            small.add_snapshot(SUBJECT, snapshot_factory(i))
        for i in range(40):
            large.add_snapshot(SUBJECT, snapshot_factory(i))

        assert large.get_baseline(SUBJECT).confidence > small.get_baseline(SUBJECT).confidence

    def test_to_dict_is_json_serializable(self, baseline):
        """Test that the profile serializes to JSON."""
        data = json.loads(json.dumps(baseline.to_dict()))
        assert data["features"]["keyboard"]["meanDwell"] == pytest.approx(120.0)
        assert data["metadata"]["creation_method"] == "initial"


class TestTemporalAndEnvironment:
    """Test temporal and environmental aggregation."""

    def test_activity_histograms(self, baseline):
        """Test hourly and weekday histograms in UTC."""
        temporal = baseline.temporal
        assert sum(temporal.hourly_activity) == 20
        assert sum(temporal.weekly_activity) == 20
        # First two snapshots fall on Tuesday 22:00 and 23:00 UTC
        assert temporal.weekly_activity[1] == 2
        assert temporal.weekly_activity[2] == 18
        assert temporal.optimal_window == (0, 23)

    def test_session_lengths(self, aggregator, snapshot_factory):
        """Test session length from keyboard then focus sessionDuration."""
        for i in range(20):
            if i % 2 == 0:
                extra = {"keyboard": {"sessionDuration": 600.0}}
            else:
                extra = {"focus": {"sessionDuration": 1200.0}}
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i, features=extra))

        temporal = aggregator.get_baseline(SUBJECT).temporal
        assert temporal.session_length_mean == pytest.approx(900.0)
        assert temporal.session_length_std == pytest.approx(300.0)

    def test_environment_merge(self, aggregator, snapshot_factory):
        """Test device merge (later wins) and quality conditions."""
        for i in range(20):
            env = {"device": "laptop" if i < 19 else "tablet", "os": "linux"}
            quality = 0.9 if i % 2 else 0.75
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i, quality=quality, environment=env))

        environment = aggregator.get_baseline(SUBJECT).environment
        assert environment.device_characteristics == {"device": "tablet", "os": "linux"}
        assert set(environment.typical_conditions) == {"optimal", "good"}
        assert environment.performance_modifiers["optimal"] == pytest.approx(0.9)
        assert environment.performance_modifiers["good"] == pytest.approx(0.75)


class TestAdaptiveUpdate:
    """Test adaptive baseline updates."""

    def test_update_without_baseline_creates(self, aggregator, snapshot_factory):
        """Test that update() delegates to creation when no baseline exists."""
        for i in range(19):
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i))
        assert aggregator.update(SUBJECT).warnings == ["insufficient_data"]
        assert aggregator.get_baseline(SUBJECT) is None

    def test_update_needs_recent_data(self, aggregator, baseline):
        """Test that an update without new snapshots is refused."""
        result = aggregator.update(SUBJECT)
        assert not result.success
        assert result.warnings == ["insufficient_recent_data"]
        assert aggregator.get_baseline(SUBJECT) is baseline

    def test_update_with_new_snapshots(self, aggregator, baseline, snapshot_factory):
        """Test a successful explicit update."""
        for i in range(20, 25):
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i))

        result = aggregator.update(SUBJECT)
        assert result.success
        updated = aggregator.get_baseline(SUBJECT)
        assert updated.statistics.sample_count == 25
        assert updated.metadata.creation_method == CreationMethod.ADAPTIVE
        assert updated.observation_end == T0 + 24 * HOUR
        assert result.confidence_change == pytest.approx(updated.confidence - baseline.confidence)

    def test_automatic_update_after_new_quality_snapshots(self, aggregator, baseline, snapshot_factory):
        """Test that ten new quality snapshots trigger an update."""
        results = [aggregator.add_snapshot(SUBJECT, snapshot_factory(i)) for i in range(20, 30)]

        assert all(r is None for r in results[:-1])
        assert results[-1].success
        assert aggregator.get_baseline(SUBJECT).metadata.creation_method == CreationMethod.ADAPTIVE

    def test_significant_change_reported(self, aggregator, baseline, snapshot_factory):
        """Test that a large meanDwell shift is listed as significant."""
        result = None
        for i in range(20, 30):
            result = aggregator.add_snapshot(SUBJECT, snapshot_factory(i, dwell=300.0))

        assert result.success
        assert "keyboard_meanDwell_change" in result.significant_changes

    def test_should_update_after_interval(self, aggregator, baseline, clock):
        """Test that an old baseline is due for an update."""
        assert not aggregator.should_update(SUBJECT)
        clock.advance(baseline.updated_at + 8 * DAY)
        assert aggregator.should_update(SUBJECT)

    def test_stale_history_fails_update(self, aggregator, baseline, snapshot_factory, clock):
        """Test that decay dropping most history yields update_failed."""
        later = T0 + 40 * DAY
        clock.advance(later)

        result = None
        for i in range(5):
            result = aggregator.add_snapshot(SUBJECT, snapshot_factory(i, timestamp=later + i * HOUR))

        assert not result.success
        assert result.warnings == ["update_failed"]
        assert aggregator.get_baseline(SUBJECT) is baseline

    def test_decayed_history_still_updates(self, aggregator, baseline, snapshot_factory, clock):
        """Test that decayed qualities below the initial threshold do not block an update."""
        later = T0 + 5 * DAY
        clock.advance(later)
        for i in range(5):
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i, timestamp=later + i * HOUR))

        result = aggregator.update(SUBJECT)
        assert result.success
        updated = aggregator.get_baseline(SUBJECT)
        assert updated.metadata.creation_method == CreationMethod.ADAPTIVE
        assert updated.statistics.sample_count == 25

    def test_no_snapshot_data(self, aggregator, baseline):
        """Test the reason code when the buffer is empty."""
        aggregator._snapshots[SUBJECT].clear()
        assert aggregator.update(SUBJECT).warnings == ["no_snapshot_data"]


class TestAggregatorBookkeeping:
    """Test accessors and statistics."""

    def test_clear_subject(self, aggregator, baseline):
        """Test that clearing forgets buffer and baseline."""
        aggregator.clear_subject(SUBJECT)
        assert aggregator.get_baseline(SUBJECT) is None
        assert aggregator.get_snapshots(SUBJECT) == []

    def test_buffer_is_bounded(self, clock, snapshot_factory):
        """Test FIFO eviction at buffer capacity."""
        aggregator = BaselineAggregator(
            settings=Settings(max_snapshots_per_subject=25), clock=clock
        )
        for i in range(30):
            aggregator.add_snapshot(SUBJECT, snapshot_factory(i))

        snapshots = aggregator.get_snapshots(SUBJECT)
        assert len(snapshots) == 25
        assert snapshots[0].session_id == "session_005"

    def test_get_stats(self, aggregator, baseline, snapshot_factory):
        """Test summary counts."""
        aggregator.add_snapshot("other", snapshot_factory(0))
        stats = aggregator.get_stats()
        assert stats["total_baselines"] == 1
        assert stats["total_subjects"] == 2
        assert stats["average_snapshots"] == pytest.approx(10.5)
        assert stats["high_confidence_baselines"] == 0
