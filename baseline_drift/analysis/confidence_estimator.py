"""
Confidence estimation for similarity and drift results.

Combines five independent sub-confidences into a weighted overall score,
decomposes uncertainty into epistemic and aleatoric parts, and derives
risk factors and recommendations from threshold rules.
"""

import logging
import math
import time
from typing import Dict, List, Optional, Sequence

from baseline_drift.config import CONFIDENCE_COMPONENTS, Settings, get_settings
from baseline_drift.core.constants import (
    DriftSeverity,
    Effort,
    Modality,
    Priority,
    ReasonCode,
    RecommendationType,
    RiskType,
    Severity,
)
from baseline_drift.core.errors import ComputationFailure
from baseline_drift.features.catalog import CRITICAL_FEATURES
from baseline_drift.models.baseline import BaselineProfile
from baseline_drift.models.confidence import (
    AleatoricUncertainty,
    CombinedUncertainty,
    ComponentConfidence,
    ConfidenceAssessment,
    ConfidenceComponents,
    ConfidenceHistory,
    ConfidenceRecommendation,
    ConfidenceTrends,
    EpistemicUncertainty,
    RiskFactor,
    UncertaintyQuantification,
)
from baseline_drift.models.drift import DriftDetection
from baseline_drift.models.similarity import SimilarityScore
from baseline_drift.utils.stats import clamp, mean, mean_std
from baseline_drift.utils.time import Clock, age_in_days, now

logger = logging.getLogger(__name__)

# Fixed uncertainty and evidence constants
MODEL_UNCERTAINTY = 0.15
INTERPRETATION_UNCERTAINTY = 0.2
BIOLOGICAL_VARIABILITY = 0.1
EVIDENCE_SUPPORT = 0.8
Z_95 = 1.96

BASELINE_SAMPLE_TARGET = 50
BASELINE_TIMESPAN_DAYS = 14.0
REDUNDANCY_START = 20
TREND_THRESHOLD = 0.05

_FAILURE_ISSUE = "Assessment failed due to error"


class ConfidenceEstimator:
    """
    Estimates how far a similarity score and drift verdict can be trusted.

    Example:
        >>> estimator = ConfidenceEstimator()
        >>> assessment = estimator.assess("subject-1", score, baseline)
        >>> assessment.uncertainty.combined.confidence_interval
        (0.52, 0.91)
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None):
        self.settings = settings or get_settings()
        self._clock = clock or now
        self.weights: Dict[str, float] = dict(self.settings.confidence_weights)
        self._histories: Dict[str, ConfidenceHistory] = {}
        logger.info("ConfidenceEstimator initialized")

    # ─── Public API ──────────────────────────────────────────────────────

    def assess(
        self,
        subject_id: str,
        score: SimilarityScore,
        baseline: BaselineProfile,
        recent_scores: Optional[Sequence[SimilarityScore]] = None,
        drift: Optional[DriftDetection] = None,
    ) -> ConfidenceAssessment:
        """
        Assess confidence in a similarity score.

        Never raises: on any internal failure the all-zero assessment with a
        critical technical risk is returned instead.

        Args:
            subject_id: Subject identifier
            score: Similarity score to assess
            baseline: Baseline the score was computed against
            recent_scores: Recent scores for the longitudinal check
            drift: Latest drift verdict, if any

        Returns:
            ConfidenceAssessment
        """
        started = time.perf_counter()
        try:
            if not isinstance(score, SimilarityScore):
                raise ComputationFailure(f"expected SimilarityScore, got {type(score).__name__}")
            if not isinstance(baseline, BaselineProfile):
                raise ComputationFailure(f"expected BaselineProfile, got {type(baseline).__name__}")

            assessment = self._assess(subject_id, score, baseline, list(recent_scores or []), drift)
        except Exception as e:
            logger.error(
                f"Confidence assessment failed for subject {subject_id}: {e}",
                exc_info=True
            )
            return self._error_assessment(subject_id)

        assessment.computation_time_ms = (time.perf_counter() - started) * 1000
        self._record(subject_id, assessment)

        logger.debug(
            f"Assessed confidence for subject {subject_id}",
            extra={
                "subject_id": subject_id,
                "overall": assessment.overall,
                "risk_factors": len(assessment.risk_factors),
            }
        )
        return assessment

    def get_confidence_history(self, subject_id: str) -> Optional[ConfidenceHistory]:
        return self._histories.get(subject_id)

    def update_weights(self, **weights: float) -> Dict[str, float]:
        """
        Override component weights.

        Raises:
            ValueError: Unknown component, negative weight or all-zero weights
        """
        unknown = [name for name in weights if name not in CONFIDENCE_COMPONENTS]
        if unknown:
            raise ValueError(f"Unknown confidence components: {', '.join(unknown)}")
        negative = [name for name, value in weights.items() if value < 0]
        if negative:
            raise ValueError(f"Weights must be non-negative: {', '.join(negative)}")

        merged = {**self.weights, **{k: float(v) for k, v in weights.items()}}
        if sum(merged.values()) <= 0:
            raise ValueError("At least one confidence weight must be positive")

        self.weights = merged
        logger.info("Confidence weights updated", extra={"weights": merged})
        return dict(self.weights)

    def get_stats(self) -> Dict[str, object]:
        histories = [h for h in self._histories.values() if h.assessments]
        trends = [h.trends.overall for h in histories]
        return {
            "total_subjects": len(histories),
            "total_assessments": sum(len(h.assessments) for h in histories),
            "average_confidence": mean([h.assessments[-1].overall for h in histories]),
            "confidence_trends": {
                "improving": sum(1 for t in trends if t > TREND_THRESHOLD),
                "stable": sum(1 for t in trends if -TREND_THRESHOLD <= t <= TREND_THRESHOLD),
                "declining": sum(1 for t in trends if t < -TREND_THRESHOLD),
            },
        }

    # ─── Assessment ──────────────────────────────────────────────────────

    def _assess(
        self,
        subject_id: str,
        score: SimilarityScore,
        baseline: BaselineProfile,
        recent_scores: List[SimilarityScore],
        drift: Optional[DriftDetection],
    ) -> ConfidenceAssessment:
        components = ConfidenceComponents(
            data_quality=self._data_quality(score),
            baseline_reliability=self._baseline_reliability(baseline),
            feature_coverage=self._feature_coverage(score),
            temporal_consistency=self._temporal_consistency(score, baseline, recent_scores),
            medical_validity=self._medical_validity(score, drift),
        )
        overall = clamp(sum(
            self.weights[name] * value for name, value in components.scores().items()
        ))

        uncertainty = self._quantify_uncertainty(score, baseline, components, overall)
        risks = self._risk_factors(components, drift)
        recommendations = self._recommendations(components, risks)

        timestamp = self._clock()
        return ConfidenceAssessment(
            subject_id=subject_id,
            overall=overall,
            timestamp=timestamp,
            components=components,
            uncertainty=uncertainty,
            risk_factors=risks,
            recommendations=recommendations,
            last_updated=timestamp,
        )

    @staticmethod
    def _data_quality(score: SimilarityScore) -> ComponentConfidence:
        compared = score.compared_feature_count
        anomalies = len(score.all_anomalies())
        factors = {
            "signal_to_noise": min(1.0, score.reliability * 1.2),
            "completeness": score.coverage,
            "consistency": score.confidence,
            "artifact_level": clamp(1.0 - anomalies / compared) if compared else 1.0,
        }
        issues = []
        if factors["signal_to_noise"] < 0.6:
            issues.append("Low signal-to-noise ratio in measurements")
        if factors["completeness"] < 0.7:
            issues.append("Incomplete feature coverage")
        if factors["consistency"] < 0.6:
            issues.append("Inconsistent data quality across sessions")
        if factors["artifact_level"] < 0.8:
            issues.append("High level of measurement artifacts detected")

        value = (
            factors["signal_to_noise"] * 0.3
            + factors["completeness"] * 0.3
            + factors["consistency"] * 0.25
            + factors["artifact_level"] * 0.15
        )
        return ComponentConfidence(score=clamp(value), factors=factors, issues=issues)

    def _baseline_reliability(self, baseline: BaselineProfile) -> ComponentConfidence:
        age = age_in_days(baseline.created_at, self._clock())
        factors = {
            "sample_size": min(1.0, baseline.statistics.sample_count / BASELINE_SAMPLE_TARGET),
            "timespan": min(1.0, age / BASELINE_TIMESPAN_DAYS),
            "stability": baseline.stability,
            "representativeness": baseline.confidence,
        }
        issues = []
        if factors["sample_size"] < 0.5:
            issues.append("Insufficient baseline data samples")
        if factors["timespan"] < 0.5:
            issues.append("Baseline timespan too short for reliable patterns")
        if factors["stability"] < 0.6:
            issues.append("Baseline shows high variability")
        if factors["representativeness"] < 0.7:
            issues.append("Baseline may not be representative")

        value = (
            factors["sample_size"] * 0.3
            + factors["timespan"] * 0.2
            + factors["stability"] * 0.3
            + factors["representativeness"] * 0.2
        )
        return ComponentConfidence(score=clamp(value), factors=factors, issues=issues)

    def _feature_coverage(self, score: SimilarityScore) -> ComponentConfidence:
        active = _active_modalities(score)
        compared = score.compared_feature_count
        critical_seen = {
            c.feature for c in score.all_contributions() if c.feature in CRITICAL_FEATURES
        }
        factors = {
            "modality_coverage": len(active) / len(Modality),
            "feature_density": min(1.0, compared / self.settings.expected_feature_count),
            "critical_features": min(1.0, len(critical_seen) / len(CRITICAL_FEATURES)),
            "redundancy": (
                min(1.0, (compared - REDUNDANCY_START) / REDUNDANCY_START)
                if compared > REDUNDANCY_START else 0.0
            ),
        }
        issues = []
        if factors["modality_coverage"] < 0.8:
            missing = [m.value for m in Modality if m not in active]
            issues.append(f"Missing modalities: {', '.join(missing)}")
        if factors["feature_density"] < 0.5:
            issues.append("Low feature density")
        if factors["critical_features"] < 0.5:
            issues.append("Critical features missing")

        value = (
            factors["modality_coverage"] * 0.3
            + factors["feature_density"] * 0.3
            + factors["critical_features"] * 0.3
            + factors["redundancy"] * 0.1
        )
        return ComponentConfidence(score=clamp(value), factors=factors, issues=issues)

    @staticmethod
    def _temporal_consistency(
        score: SimilarityScore,
        baseline: BaselineProfile,
        recent_scores: List[SimilarityScore],
    ) -> ComponentConfidence:
        if len(recent_scores) > 1:
            mu, sd = mean_std([s.confidence for s in recent_scores])
            longitudinal = clamp(mu * (1.0 - sd))
        else:
            longitudinal = 0.5

        factors = {
            "time_alignment": score.reliability,
            "session_quality": score.confidence,
            "longitudinal_consistency": longitudinal,
            "environmental_stability": baseline.confidence,
        }
        issues = []
        if factors["time_alignment"] < 0.6:
            issues.append("Poor temporal alignment of measurements")
        if factors["session_quality"] < 0.6:
            issues.append("Variable session quality over time")
        if factors["longitudinal_consistency"] < 0.6:
            issues.append("Inconsistent patterns over multiple sessions")
        if factors["environmental_stability"] < 0.6:
            issues.append("Unstable environmental conditions")

        value = (
            factors["time_alignment"] * 0.25
            + factors["session_quality"] * 0.25
            + factors["longitudinal_consistency"] * 0.3
            + factors["environmental_stability"] * 0.2
        )
        return ComponentConfidence(score=clamp(value), factors=factors, issues=issues)

    @staticmethod
    def _medical_validity(
        score: SimilarityScore, drift: Optional[DriftDetection]
    ) -> ComponentConfidence:
        flags = score.interpretation.medical_flags
        if flags:
            serious = sum(1 for f in flags if f.severity in (Severity.HIGH, Severity.CRITICAL))
            relevance = 0.3 + 0.7 * serious / len(flags)
        else:
            relevance = 0.5

        if drift is not None:
            progression = drift.confidence * (0.9 if drift.likely_progression else 0.6)
        else:
            progression = 0.7

        factors = {
            "clinical_relevance": relevance,
            "evidence_support": EVIDENCE_SUPPORT,
            "differential_diagnosis": min(1.0, len(_active_modalities(score)) / 4),
            "progression_consistency": progression,
        }
        issues = []
        if factors["clinical_relevance"] < 0.6:
            issues.append("Limited clinical relevance of detected patterns")
        if factors["differential_diagnosis"] < 0.6:
            issues.append("Insufficient data for differential diagnosis")
        if factors["progression_consistency"] < 0.6:
            issues.append("Patterns inconsistent with known disease progression")

        value = (
            factors["clinical_relevance"] * 0.3
            + factors["evidence_support"] * 0.2
            + factors["differential_diagnosis"] * 0.25
            + factors["progression_consistency"] * 0.25
        )
        return ComponentConfidence(score=clamp(value), factors=factors, issues=issues)

    # ─── Uncertainty ─────────────────────────────────────────────────────

    @staticmethod
    def _quantify_uncertainty(
        score: SimilarityScore,
        baseline: BaselineProfile,
        components: ConfidenceComponents,
        overall: float,
    ) -> UncertaintyQuantification:
        """
        Split uncertainty into epistemic and aleatoric parts.

        Intervals are centred on the overall confidence and clamped to [0, 1],
        so they always contain it.
        """
        epistemic = EpistemicUncertainty(
            model=MODEL_UNCERTAINTY,
            feature=1.0 - score.reliability,
            baseline=1.0 - baseline.confidence,
            interpretation=INTERPRETATION_UNCERTAINTY,
        )
        aleatoric = AleatoricUncertainty(
            measurement_noise=1.0 - components.data_quality.factors["signal_to_noise"],
            biological_variability=BIOLOGICAL_VARIABILITY,
            environmental_variability=(
                1.0 - components.temporal_consistency.factors["environmental_stability"]
            ),
            behavioral_variability=max(0.0, 1.0 - score.overall) * 0.5,
        )

        total = math.sqrt(epistemic.total ** 2 + aleatoric.total ** 2)
        margin = Z_95 * total
        combined = CombinedUncertainty(
            total=total,
            point_estimate=overall,
            confidence_interval=(clamp(overall - margin * 0.7), clamp(overall + margin * 0.7)),
            prediction_interval=(clamp(overall - margin), clamp(overall + margin)),
            reliability_bounds=(clamp(overall - total), clamp(overall + total)),
        )
        return UncertaintyQuantification(epistemic=epistemic, aleatoric=aleatoric, combined=combined)

    # ─── Risks and Recommendations ───────────────────────────────────────

    @staticmethod
    def _risk_factors(
        components: ConfidenceComponents, drift: Optional[DriftDetection]
    ) -> List[RiskFactor]:
        risks = []

        data_quality = components.data_quality.score
        if data_quality < 0.6:
            risks.append(RiskFactor(
                type=RiskType.DATA,
                severity=Severity.HIGH if data_quality < 0.4 else Severity.MEDIUM,
                description="Poor data quality affecting measurement reliability",
                impact=(0.8 - data_quality) * 0.5,
                mitigation="Improve data collection environment and procedures",
            ))

        reliability = components.baseline_reliability.score
        if reliability < 0.7:
            risks.append(RiskFactor(
                type=RiskType.BASELINE,
                severity=Severity.HIGH if reliability < 0.5 else Severity.MEDIUM,
                description="Baseline reliability concerns affecting comparison accuracy",
                impact=(0.9 - reliability) * 0.4,
                mitigation="Collect additional baseline data over longer time period",
            ))

        coverage = components.feature_coverage.score
        if coverage < 0.6:
            risks.append(RiskFactor(
                type=RiskType.DATA,
                severity=Severity.MEDIUM,
                description="Incomplete feature coverage limiting assessment scope",
                impact=(0.8 - coverage) * 0.3,
                mitigation="Enable additional data collection modalities",
            ))

        temporal = components.temporal_consistency.score
        if temporal < 0.6:
            risks.append(RiskFactor(
                type=RiskType.TEMPORAL,
                severity=Severity.MEDIUM,
                description="Temporal inconsistencies affecting longitudinal assessment",
                impact=(0.7 - temporal) * 0.3,
                mitigation="Standardize measurement timing and environmental conditions",
            ))

        if drift is not None and drift.is_drifting and drift.confidence > 0.7:
            if drift.severity == DriftSeverity.SEVERE:
                severity = Severity.CRITICAL
            elif drift.severity == DriftSeverity.SIGNIFICANT:
                severity = Severity.HIGH
            else:
                severity = Severity.MEDIUM
            risks.append(RiskFactor(
                type=RiskType.MEDICAL,
                severity=severity,
                description=f"Significant pattern drift detected: {drift.drift_type.value}",
                impact=drift.magnitude * 0.6,
                mitigation="Medical evaluation recommended for pattern changes",
            ))

        return sorted(risks, key=lambda r: r.impact, reverse=True)

    @staticmethod
    def _recommendations(
        components: ConfidenceComponents, risks: List[RiskFactor]
    ) -> List[ConfidenceRecommendation]:
        recommendations = []

        data_quality = components.data_quality.score
        if data_quality < 0.7:
            recommendations.append(ConfidenceRecommendation(
                type=RecommendationType.DATA_COLLECTION,
                priority=Priority.HIGH if data_quality < 0.5 else Priority.MEDIUM,
                description="Improve data collection environment and reduce measurement artifacts",
                expected_improvement=(0.8 - data_quality) * 0.5,
                effort=Effort.MODERATE,
            ))

        reliability = components.baseline_reliability.score
        if reliability < 0.8:
            recommendations.append(ConfidenceRecommendation(
                type=RecommendationType.BASELINE_IMPROVEMENT,
                priority=Priority.HIGH if reliability < 0.6 else Priority.MEDIUM,
                description="Collect additional baseline data to improve reliability",
                expected_improvement=(0.9 - reliability) * 0.4,
                effort=Effort.SUBSTANTIAL,
            ))

        coverage = components.feature_coverage.score
        if coverage < 0.8:
            recommendations.append(ConfidenceRecommendation(
                type=RecommendationType.FEATURE_ENHANCEMENT,
                priority=Priority.MEDIUM,
                description="Enable additional measurement modalities for better coverage",
                expected_improvement=(0.85 - coverage) * 0.3,
                effort=Effort.MODERATE,
            ))

        validity = components.medical_validity.score
        if validity < 0.7:
            recommendations.append(ConfidenceRecommendation(
                type=RecommendationType.VALIDATION,
                priority=Priority.MEDIUM,
                description="Validate findings with clinical assessment",
                expected_improvement=(0.8 - validity) * 0.3,
                effort=Effort.EXTENSIVE,
            ))

        if any(r.severity in (Severity.HIGH, Severity.CRITICAL) for r in risks):
            recommendations.append(ConfidenceRecommendation(
                type=RecommendationType.MEDICAL_CONSULTATION,
                priority=Priority.URGENT,
                description="Immediate medical consultation recommended due to high-risk findings",
                expected_improvement=0.2,
                effort=Effort.MINIMAL,
            ))

        return sorted(recommendations, key=lambda r: r.priority.rank, reverse=True)

    # ─── History ─────────────────────────────────────────────────────────

    def _record(self, subject_id: str, assessment: ConfidenceAssessment) -> None:
        history = self._histories.get(subject_id)
        if history is None:
            history = ConfidenceHistory.create(subject_id, self.settings.max_confidence_history)
            self._histories[subject_id] = history

        history.assessments.append(assessment)
        assessments = list(history.assessments)
        if len(assessments) <= 5:
            return

        latest = assessments[-5:]
        older = assessments[-10:-5]

        def shift(value_of) -> float:
            return mean([value_of(a) for a in latest]) - mean([value_of(a) for a in older])

        history.trends = ConfidenceTrends(
            overall=shift(lambda a: a.overall),
            data_quality=shift(lambda a: a.components.data_quality.score),
            baseline=shift(lambda a: a.components.baseline_reliability.score),
            feature=shift(lambda a: a.components.feature_coverage.score),
        )

    # ─── Failure Result ──────────────────────────────────────────────────

    def _error_assessment(self, subject_id: str) -> ConfidenceAssessment:
        """All-zero assessment flagging a technical failure."""

        def failed(names, issues=None, **overrides) -> ComponentConfidence:
            factors = {name: 0.0 for name in names}
            factors.update(overrides)
            return ComponentConfidence(score=0.0, factors=factors, issues=list(issues or []))

        components = ConfidenceComponents(
            data_quality=failed(
                ("signal_to_noise", "completeness", "consistency", "artifact_level"),
                [_FAILURE_ISSUE],
                artifact_level=1.0,
            ),
            baseline_reliability=failed(
                ("sample_size", "timespan", "stability", "representativeness"),
                [_FAILURE_ISSUE],
            ),
            feature_coverage=failed(
                ("modality_coverage", "feature_density", "critical_features", "redundancy"),
            ),
            temporal_consistency=failed(
                ("time_alignment", "session_quality", "longitudinal_consistency",
                 "environmental_stability"),
            ),
            medical_validity=failed(
                ("clinical_relevance", "evidence_support", "differential_diagnosis",
                 "progression_consistency"),
                [_FAILURE_ISSUE],
            ),
        )
        uncertainty = UncertaintyQuantification(
            epistemic=EpistemicUncertainty(model=1.0, feature=1.0, baseline=1.0, interpretation=1.0),
            aleatoric=AleatoricUncertainty(
                measurement_noise=1.0,
                biological_variability=1.0,
                environmental_variability=1.0,
                behavioral_variability=1.0,
            ),
            combined=CombinedUncertainty(
                total=1.0,
                point_estimate=0.0,
                confidence_interval=(0.0, 1.0),
                prediction_interval=(0.0, 1.0),
                reliability_bounds=(0.0, 0.0),
            ),
        )
        timestamp = self._clock()
        return ConfidenceAssessment(
            subject_id=subject_id,
            overall=0.0,
            timestamp=timestamp,
            components=components,
            uncertainty=uncertainty,
            risk_factors=[RiskFactor(
                type=RiskType.TECHNICAL,
                severity=Severity.CRITICAL,
                description="Confidence assessment failed",
                impact=1.0,
                mitigation="Check system configuration and data integrity",
            )],
            recommendations=[ConfidenceRecommendation(
                type=RecommendationType.VALIDATION,
                priority=Priority.URGENT,
                description="Technical issue requires immediate attention",
                expected_improvement=0.0,
                effort=Effort.EXTENSIVE,
            )],
            last_updated=timestamp,
            reason=ReasonCode.COMPUTATION_ERROR,
        )


def _active_modalities(score: SimilarityScore) -> List[Modality]:
    """Modalities with at least one compared feature."""
    return [m for m, result in score.modalities.items() if result.feature_count > 0]
