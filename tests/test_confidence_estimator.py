"""Tests for ConfidenceEstimator."""

import json

import pytest

from baseline_drift.analysis.confidence_estimator import ConfidenceEstimator
from baseline_drift.analysis.drift_detector import DriftDetector
from baseline_drift.config import CONFIDENCE_COMPONENTS
from baseline_drift.core.constants import (
    Modality,
    ReasonCode,
    RecommendationType,
    RiskType,
    Severity,
)

from conftest import DAY, SUBJECT


@pytest.fixture
def estimator(test_settings, clock):
    return ConfidenceEstimator(settings=test_settings, clock=clock)


@pytest.fixture
def significant_drift(test_settings, clock, declining_scores):
    """A drifting verdict from the declining-score series."""
    detector = DriftDetector(settings=test_settings, clock=clock)
    verdicts = [detector.process_score(SUBJECT, s) for s in declining_scores]
    return verdicts[-1]


class TestAssessment:
    """Test overall assessment and its components."""

    def test_overall_is_weighted_sum(self, estimator, baseline, score_factory):
        """Test that overall combines components with the configured weights."""
        assessment = estimator.assess(SUBJECT, score_factory(), baseline)

        scores = assessment.components.scores()
        assert set(scores) == set(CONFIDENCE_COMPONENTS)
        expected = sum(estimator.weights[name] * value for name, value in scores.items())
        assert assessment.overall == pytest.approx(expected)
        assert all(0.0 <= value <= 1.0 for value in scores.values())
        assert assessment.reason is None

    def test_intervals_contain_overall(self, estimator, baseline, score_factory):
        """Test that every interval contains the overall confidence."""
        for overall, reliability in ((0.95, 0.9), (0.5, 0.5), (0.1, 0.1)):
            assessment = estimator.assess(
                SUBJECT, score_factory(overall=overall, reliability=reliability), baseline
            )
            combined = assessment.uncertainty.combined
            for low, high in (
                combined.confidence_interval,
                combined.prediction_interval,
                combined.reliability_bounds,
            ):
                assert 0.0 <= low <= assessment.overall <= high <= 1.0

    def test_data_quality_component(self, estimator, baseline, score_factory):
        """Test data quality factors and issues."""
        component = estimator.assess(SUBJECT, score_factory(), baseline).components.data_quality

        assert component.factors["signal_to_noise"] == pytest.approx(0.96)
        assert component.factors["completeness"] == pytest.approx(0.4)
        assert component.factors["artifact_level"] == 1.0
        assert component.score == pytest.approx(0.96 * 0.3 + 0.4 * 0.3 + 0.8 * 0.25 + 0.15)
        assert component.issues == ["Incomplete feature coverage"]

    def test_baseline_reliability_uses_age(self, estimator, baseline, score_factory, clock):
        """Test that the timespan factor grows with baseline age."""
        fresh = estimator.assess(SUBJECT, score_factory(), baseline).components.baseline_reliability
        assert fresh.factors["timespan"] == 0.0
        assert fresh.factors["sample_size"] == pytest.approx(20 / 50)
        assert "Baseline timespan too short for reliable patterns" in fresh.issues
        assert "Insufficient baseline data samples" in fresh.issues

        clock.advance(baseline.created_at + 14 * DAY)
        aged = estimator.assess(SUBJECT, score_factory(), baseline).components.baseline_reliability
        assert aged.factors["timespan"] == 1.0
        assert aged.score > fresh.score

    def test_feature_coverage_issues(self, estimator, baseline, score_factory):
        """Test missing modality, density and critical feature issues."""
        score = score_factory(feature_count=0)
        score.modalities[Modality.KEYBOARD].feature_count = 1

        component = estimator.assess(SUBJECT, score, baseline).components.feature_coverage
        assert component.factors["modality_coverage"] == pytest.approx(0.2)
        assert component.issues == [
            "Missing modalities: mouse, scroll, focus, composite",
            "Low feature density",
            "Critical features missing",
        ]

    def test_longitudinal_consistency(self, estimator, baseline, score_factory):
        """Test that recent scores drive longitudinal consistency."""
        score = score_factory()
        alone = estimator.assess(SUBJECT, score, baseline).components.temporal_consistency
        assert alone.factors["longitudinal_consistency"] == 0.5

        recent = [score_factory(confidence=0.8) for _ in range(5)]
        steady = estimator.assess(SUBJECT, score, baseline, recent).components.temporal_consistency
        assert steady.factors["longitudinal_consistency"] == pytest.approx(0.8)

    def test_medical_validity_with_drift(self, estimator, baseline, score_factory, significant_drift):
        """Test progression consistency from the drift verdict."""
        component = estimator.assess(
            SUBJECT, score_factory(), baseline, drift=significant_drift
        ).components.medical_validity

        assert component.factors["progression_consistency"] == pytest.approx(
            significant_drift.confidence * 0.9
        )
        assert component.factors["differential_diagnosis"] == 1.0

    def test_uses_clock_and_times_itself(self, estimator, baseline, score_factory, clock):
        """Test timestamps and computation time."""
        assessment = estimator.assess(SUBJECT, score_factory(), baseline)
        assert assessment.timestamp == clock()
        assert assessment.last_updated == clock()
        assert assessment.computation_time_ms >= 0.0

    def test_to_dict_is_json_serializable(self, estimator, baseline, score_factory, significant_drift):
        """Test that the assessment serializes to JSON."""
        assessment = estimator.assess(SUBJECT, score_factory(), baseline, drift=significant_drift)
        data = json.loads(json.dumps(assessment.to_dict()))
        assert data["subject_id"] == SUBJECT


class TestRisksAndRecommendations:
    """Test rule-based risk factors and recommendations."""

    def test_poor_inputs_raise_sorted_risks(self, estimator, baseline, score_factory):
        """Test that risks are ordered by impact."""
        score = score_factory(reliability=0.2, coverage=0.1, confidence=0.2)
        assessment = estimator.assess(SUBJECT, score, baseline)

        risks = assessment.risk_factors
        assert {r.type for r in risks} == {RiskType.DATA, RiskType.BASELINE, RiskType.TEMPORAL}
        assert risks[0].type == RiskType.DATA
        assert risks[0].severity == Severity.HIGH
        impacts = [r.impact for r in risks]
        assert impacts == sorted(impacts, reverse=True)

    def test_recommendations_sorted_by_priority(self, estimator, baseline, score_factory):
        """Test that urgent recommendations come first."""
        score = score_factory(reliability=0.2, coverage=0.1, confidence=0.2)
        recommendations = estimator.assess(SUBJECT, score, baseline).recommendations

        assert recommendations[0].type == RecommendationType.MEDICAL_CONSULTATION
        ranks = [r.priority.rank for r in recommendations]
        assert ranks == sorted(ranks, reverse=True)
        assert RecommendationType.DATA_COLLECTION in {r.type for r in recommendations}

    def test_drift_adds_medical_risk(self, estimator, baseline, score_factory, significant_drift):
        """Test that a confident significant drift is a high medical risk."""
        risks = estimator.assess(
            SUBJECT, score_factory(), baseline, drift=significant_drift
        ).risk_factors

        medical = [r for r in risks if r.type == RiskType.MEDICAL]
        assert len(medical) == 1
        assert medical[0].severity == Severity.HIGH
        assert medical[0].impact == pytest.approx(significant_drift.magnitude * 0.6)
        assert medical[0].description.endswith("gradual_decline")


class TestFailurePath:
    """Test the all-zero assessment on failure."""

    def test_scenario_e_invalid_score(self, estimator, baseline):
        """Test that invalid input yields the technical failure assessment."""
        assessment = estimator.assess(SUBJECT, None, baseline)

        assert assessment.overall == 0.0
        assert assessment.reason == ReasonCode.COMPUTATION_ERROR
        assert assessment.uncertainty.combined.confidence_interval == (0.0, 1.0)
        assert len(assessment.risk_factors) == 1
        risk = assessment.risk_factors[0]
        assert risk.type == RiskType.TECHNICAL
        assert risk.severity == Severity.CRITICAL
        assert risk.mitigation == "Check system configuration and data integrity"

    def test_failure_not_recorded(self, estimator, score_factory):
        """Test that failed assessments do not enter the history."""
        estimator.assess(SUBJECT, score_factory(), None)
        assert estimator.get_confidence_history(SUBJECT) is None
        assert estimator.get_stats()["total_assessments"] == 0


class TestWeights:
    """Test weight overrides."""

    def test_update_weights(self, estimator, baseline, score_factory):
        """Test that a single non-zero weight selects that component."""
        estimator.update_weights(
            data_quality=1.0,
            baseline_reliability=0.0,
            feature_coverage=0.0,
            temporal_consistency=0.0,
            medical_validity=0.0,
        )
        assessment = estimator.assess(SUBJECT, score_factory(), baseline)
        assert assessment.overall == pytest.approx(assessment.components.data_quality.score)

    @pytest.mark.parametrize("weights", [
        {"speed": 0.5},
        {"data_quality": -0.1},
        {
            "data_quality": 0.0,
            "baseline_reliability": 0.0,
            "feature_coverage": 0.0,
            "temporal_consistency": 0.0,
            "medical_validity": 0.0,
        },
    ])
    def test_invalid_weights_rejected(self, estimator, weights):
        """Test unknown, negative and all-zero weights."""
        before = dict(estimator.weights)
        with pytest.raises(ValueError):
            estimator.update_weights(**weights)
        assert estimator.weights == before


class TestHistory:
    """Test per-subject history, trends and stats."""

    def test_trends_after_improvement(self, estimator, baseline, score_factory):
        """Test that rising score confidence shows an improving trend."""
        for confidence in [0.1] * 5 + [1.0] * 5:
            estimator.assess(SUBJECT, score_factory(confidence=confidence), baseline)

        history = estimator.get_confidence_history(SUBJECT)
        assert len(history.assessments) == 10
        assert history.trends.overall > 0.05
        assert history.trends.data_quality > 0
        assert estimator.get_stats()["confidence_trends"]["improving"] == 1

    def test_no_trends_with_few_assessments(self, estimator, baseline, score_factory):
        """Test that trends stay zero up to five assessments."""
        for confidence in (0.1, 0.3, 0.5, 0.7, 0.9):
            estimator.assess(SUBJECT, score_factory(confidence=confidence), baseline)
        assert estimator.get_confidence_history(SUBJECT).trends.overall == 0.0

    def test_history_bounded(self, test_settings, clock, baseline, score_factory):
        """Test that history keeps the most recent assessments only."""
        estimator = ConfidenceEstimator(
            settings=test_settings.model_copy(update={"max_confidence_history": 3}), clock=clock
        )
        for _ in range(6):
            estimator.assess(SUBJECT, score_factory(), baseline)
        assert len(estimator.get_confidence_history(SUBJECT).assessments) == 3

    def test_get_stats(self, estimator, baseline, score_factory):
        """Test estimator-wide summary."""
        first = estimator.assess(SUBJECT, score_factory(), baseline)
        second = estimator.assess("other", score_factory(confidence=0.5), baseline)

        stats = estimator.get_stats()
        assert stats["total_subjects"] == 2
        assert stats["total_assessments"] == 2
        assert stats["average_confidence"] == pytest.approx((first.overall + second.overall) / 2)
        assert stats["confidence_trends"]["stable"] == 2
