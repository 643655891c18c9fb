"""
Scores a snapshot against a subject's baseline.

Per-feature similarity uses the baseline's variability (z-score mapped
through exp(-z/2)) and falls back to relative difference when no spread is
known. Feature scores roll up into modality scores and a weighted overall
score, together with anomalies and a domain-level interpretation.
"""

import logging
import math
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from baseline_drift.config import Settings, get_settings
from baseline_drift.core.constants import (
    ANOMALY_SEVERITY_ORDER,
    MedicalFlagType,
    Modality,
    ReasonCode,
    Severity,
)
from baseline_drift.core.errors import ComputationFailure
from baseline_drift.features.catalog import (
    COGNITIVE_FEATURES,
    NEUROMOTOR_FEATURES,
    TEMPORAL_FEATURES,
    TREMOR_FEATURES,
    feature_importance,
    medical_relevance,
)
from baseline_drift.models.baseline import BaselineProfile, FeatureVariability
from baseline_drift.models.similarity import (
    FeatureAnomaly,
    FeatureContribution,
    Interpretation,
    InterpretationSection,
    MedicalFlag,
    ModalitySimilarity,
    SimilarityScore,
)
from baseline_drift.models.snapshot import FeatureSnapshot
from baseline_drift.utils.stats import clamp, mean

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
MAX_CONCERNS = 5
MAX_KEY_FINDINGS = 3

Modalities = Dict[Modality, ModalitySimilarity]


class SimilarityEngine:
    """Compares feature snapshots against baseline profiles."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize engine with settings."""
        self.settings = settings or get_settings()
        logger.info("SimilarityEngine initialized")

    # ─── Public API ──────────────────────────────────────────────────────

    def compute_similarity(
        self, snapshot: FeatureSnapshot, baseline: BaselineProfile
    ) -> SimilarityScore:
        """
        Compare one snapshot against a baseline.

        Args:
            snapshot: Snapshot to score
            baseline: Subject's current baseline

        Returns:
            SimilarityScore. On any internal failure a neutral degraded score
            (overall 0.5, confidence 0, reason ``computation_error``) is
            returned instead of raising.
        """
        try:
            if not isinstance(snapshot, FeatureSnapshot):
                raise ComputationFailure(f"expected FeatureSnapshot, got {type(snapshot).__name__}")
            if not isinstance(baseline, BaselineProfile):
                raise ComputationFailure(f"expected BaselineProfile, got {type(baseline).__name__}")

            modalities = {
                modality: self._score_modality(snapshot, baseline, modality)
                for modality in Modality
            }
            overall = self._overall_score(modalities)

            score = SimilarityScore(
                overall=overall,
                confidence=self._confidence(snapshot, baseline, modalities),
                timestamp=snapshot.timestamp,
                modalities=modalities,
                interpretation=self._interpret(modalities, overall),
                reliability=self._reliability(modalities, baseline),
                coverage=self._coverage(modalities),
            )

            logger.debug(
                "Similarity score computed",
                extra={
                    "subject_id": baseline.subject_id,
                    "overall": score.overall,
                    "confidence": score.confidence,
                    "anomaly_count": len(score.all_anomalies()),
                }
            )
            return score

        except Exception as e:
            logger.error(f"Failed to compute similarity score: {e}", exc_info=True)
            return self._error_score(getattr(snapshot, "timestamp", 0.0))

    def get_configuration(self) -> Dict[str, object]:
        return {
            "modality_weights": dict(self.settings.modality_weights),
            "anomaly_thresholds": dict(self.settings.anomaly_thresholds),
            "expected_feature_count": self.settings.expected_feature_count,
            "default_feature_reliability": self.settings.default_feature_reliability,
        }

    def update_configuration(self, **overrides) -> Settings:
        """
        Replace scoring settings with validated overrides.

        Raises:
            pydantic.ValidationError: If the overrides are invalid
        """
        merged = {**self.settings.model_dump(), **overrides}
        self.settings = type(self.settings)(**merged)
        logger.info(
            "Similarity scoring configuration updated",
            extra={"overrides": sorted(overrides)}
        )
        return self.settings

    # ─── Feature / Modality Scoring ──────────────────────────────────────

    def _score_modality(
        self, snapshot: FeatureSnapshot, baseline: BaselineProfile, modality: Modality
    ) -> ModalitySimilarity:
        weight = self.settings.modality_weights[modality.value]
        current = snapshot.modality(modality)
        reference = baseline.modality(modality)
        common = [name for name in current if name in reference]
        if not common:
            return ModalitySimilarity(score=NEUTRAL_SCORE, weight=weight)

        scores = []
        anomalies = []
        contributions = []
        for name in common:
            value = current[name]
            baseline_value = reference[name]
            score, zscore, reliability = self._score_feature(
                value, baseline_value, baseline.variability_for(modality, name)
            )
            scores.append(score)

            if zscore is not None:
                anomaly = self._detect_anomaly(name, value, baseline_value, zscore)
                if anomaly:
                    anomalies.append(anomaly)

            contributions.append(FeatureContribution(
                feature=name,
                contribution=score - 0.5,
                importance=feature_importance(name),
                reliability=reliability,
            ))

        return ModalitySimilarity(
            score=self._weighted_score(scores, contributions),
            weight=weight,
            feature_count=len(common),
            anomalies=anomalies,
            contributions=contributions,
        )

    def _score_feature(
        self,
        value: float,
        baseline_value: float,
        variability: Optional[FeatureVariability],
    ) -> Tuple[float, Optional[float], float]:
        """Return (score, zscore or None, reliability) for one feature."""
        if variability is None or variability.std == 0:
            if baseline_value == 0:
                relative = 0.0 if value == 0 else 1.0
            else:
                relative = abs(value - baseline_value) / abs(baseline_value)
            return max(0.0, 1.0 - relative), None, self.settings.default_feature_reliability

        zscore = abs(value - variability.mean) / variability.std
        score = math.exp(-zscore / 2)
        if variability.mean == 0:
            reliability = 0.0
        else:
            reliability = min(1.0, 1.0 / (1.0 + variability.std / abs(variability.mean)))
        return score, zscore, reliability

    def _detect_anomaly(
        self, feature: str, value: float, baseline_value: float, zscore: float
    ) -> Optional[FeatureAnomaly]:
        thresholds = self.settings.anomaly_thresholds
        severity = None
        for level in reversed(ANOMALY_SEVERITY_ORDER):
            if zscore >= thresholds[level.value]:
                severity = level
                break
        if severity is None:
            return None

        return FeatureAnomaly(
            feature=feature,
            severity=severity,
            current_value=value,
            baseline_value=baseline_value,
            zscore=zscore,
            medical_relevance=medical_relevance(feature),
            description=self._describe_anomaly(feature, value, baseline_value, zscore),
        )

    @staticmethod
    def _describe_anomaly(feature: str, value: float, baseline_value: float, zscore: float) -> str:
        direction = "increased" if value > baseline_value else "decreased"
        if zscore >= 3:
            magnitude = "substantially"
        elif zscore >= 2:
            magnitude = "significantly"
        else:
            magnitude = "moderately"
        return f"{feature} {direction} {magnitude} ({value:.2f} vs baseline {baseline_value:.2f})"

    @staticmethod
    def _weighted_score(scores: List[float], contributions: List[FeatureContribution]) -> float:
        """Importance x reliability weighted mean of feature scores."""
        weighted_sum = 0.0
        total_weight = 0.0
        for score, contribution in zip(scores, contributions):
            weight = contribution.importance * contribution.reliability
            weighted_sum += score * weight
            total_weight += weight
        if total_weight <= 0:
            return NEUTRAL_SCORE
        return clamp(weighted_sum / total_weight)

    # ─── Aggregate Metrics ───────────────────────────────────────────────

    @staticmethod
    def _overall_score(modalities: Modalities) -> float:
        weighted_sum = 0.0
        total_weight = 0.0
        for entry in modalities.values():
            if entry.feature_count > 0:
                weighted_sum += entry.score * entry.weight
                total_weight += entry.weight
        if total_weight <= 0:
            return NEUTRAL_SCORE
        return clamp(weighted_sum / total_weight)

    def _confidence(
        self, snapshot: FeatureSnapshot, baseline: BaselineProfile, modalities: Modalities
    ) -> float:
        reliabilities = [
            c.reliability
            for entry in modalities.values()
            for c in entry.contributions
            if c.reliability > 0
        ]
        avg_reliability = mean(reliabilities, default=0.5)
        return clamp(
            snapshot.quality * 0.3
            + baseline.confidence * 0.3
            + self._coverage(modalities) * 0.2
            + avg_reliability * 0.2
        )

    @staticmethod
    def _reliability(modalities: Modalities, baseline: BaselineProfile) -> float:
        weighted = [
            c.reliability * c.importance
            for entry in modalities.values()
            for c in entry.contributions
            if c.reliability * c.importance > 0
        ]
        return clamp(min(mean(weighted, default=0.5), baseline.confidence))

    def _coverage(self, modalities: Modalities) -> float:
        compared = sum(entry.feature_count for entry in modalities.values())
        return min(1.0, compared / self.settings.expected_feature_count)

    # ─── Interpretation ──────────────────────────────────────────────────

    def _interpret(self, modalities: Modalities, overall: float) -> Interpretation:
        return Interpretation(
            overall_assessment=_overall_assessment(overall),
            primary_concerns=self._primary_concerns(modalities),
            neuromotor=self._domain_section(
                modalities,
                NEUROMOTOR_FEATURES,
                _NEUROMOTOR_SUMMARIES,
                lambda a: a.severity in (Severity.HIGH, Severity.CRITICAL),
            ),
            cognitive=self._domain_section(
                modalities,
                COGNITIVE_FEATURES,
                _COGNITIVE_SUMMARIES,
                lambda a: a.medical_relevance in (Severity.HIGH, Severity.CRITICAL),
            ),
            temporal=self._domain_section(
                modalities,
                TEMPORAL_FEATURES,
                _TEMPORAL_SUMMARIES,
                lambda a: a.severity in (Severity.HIGH, Severity.CRITICAL),
            ),
            behavioral_consistency=self._consistency_section(modalities),
            recommendations=self._recommendations(modalities, overall),
            medical_flags=self._medical_flags(modalities),
        )

    @staticmethod
    def _primary_concerns(modalities: Modalities) -> List[str]:
        serious = [
            a for entry in modalities.values() for a in entry.anomalies
            if a.severity in (Severity.HIGH, Severity.CRITICAL)
        ]
        serious.sort(key=lambda a: (a.severity.rank, a.zscore), reverse=True)
        return [
            f"{a.feature}: {a.severity.value} deviation detected"
            for a in serious[:MAX_CONCERNS]
        ]

    @staticmethod
    def _domain_section(
        modalities: Modalities,
        domain: Dict[Modality, FrozenSet[str]],
        summaries: Tuple[str, str, str, str],
        is_risk: Callable[[FeatureAnomaly], bool],
    ) -> InterpretationSection:
        relevant = [
            a
            for modality, names in domain.items()
            for a in modalities[modality].anomalies
            if a.feature in names
        ]
        avg = mean([modalities[m].score for m in domain], default=NEUTRAL_SCORE)
        score = max(0.0, avg - min(0.5, 0.1 * len(relevant)))

        findings = [f"{a.feature}: {a.description}" for a in relevant]
        return InterpretationSection(
            score=score,
            summary=_pick_summary(summaries, score, len(findings)),
            key_findings=findings[:MAX_KEY_FINDINGS],
            risk_factors=[a.feature for a in relevant if is_risk(a)],
        )

    @staticmethod
    def _consistency_section(modalities: Modalities) -> InterpretationSection:
        anomalies = [a for entry in modalities.values() for a in entry.anomalies]
        compared = sum(entry.feature_count for entry in modalities.values())
        score = clamp(1 - len(anomalies) / max(1, compared))

        if score >= 0.9:
            summary = "Behavior is highly consistent across all modalities"
        elif score >= 0.7:
            summary = f"Good behavioral consistency with {len(anomalies)} minor deviations"
        elif score >= 0.5:
            summary = f"Moderate consistency with {len(anomalies)} notable variations"
        else:
            summary = f"Low behavioral consistency with {len(anomalies)} significant deviations"

        return InterpretationSection(
            score=score,
            summary=summary,
            key_findings=[
                f"Total anomalies detected: {len(anomalies)}",
                f"Consistency across modalities: {score * 100:.1f}%",
            ],
            risk_factors=[a.feature for a in anomalies if a.severity == Severity.CRITICAL],
        )

    @staticmethod
    def _recommendations(modalities: Modalities, overall: float) -> List[str]:
        recommendations = []
        if overall < 0.5:
            recommendations.append(
                "Consider medical consultation for significant behavioral changes"
            )

        tremor_like = [
            a for entry in modalities.values() for a in entry.anomalies
            if "tremor" in a.feature.lower()
        ]
        if len(tremor_like) >= 2:
            recommendations.append(
                "Tremor patterns detected across multiple modalities - "
                "neurological evaluation recommended"
            )
        return recommendations

    @staticmethod
    def _medical_flags(modalities: Modalities) -> List[MedicalFlag]:
        tremor = [
            a for entry in modalities.values() for a in entry.anomalies
            if a.feature in TREMOR_FEATURES
        ]
        if len(tremor) < 2:
            return []

        severity = _average_severity(tremor)
        if severity in (Severity.HIGH, Severity.CRITICAL):
            action = "Consider neurological evaluation"
        else:
            action = "Monitor for progression"

        return [MedicalFlag(
            type=MedicalFlagType.TREMOR,
            severity=severity,
            confidence=min(0.9, len(tremor) * 0.25),
            description=f"Multiple tremor indicators detected across {len(tremor)} modalities",
            recommended_action=action,
        )]

    # ─── Failure Path ────────────────────────────────────────────────────

    def _error_score(self, timestamp) -> SimilarityScore:
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            timestamp = 0.0

        return SimilarityScore(
            overall=NEUTRAL_SCORE,
            confidence=0.0,
            timestamp=float(timestamp),
            modalities={
                modality: ModalitySimilarity(
                    score=NEUTRAL_SCORE,
                    weight=self.settings.modality_weights[modality.value],
                )
                for modality in Modality
            },
            interpretation=Interpretation(
                overall_assessment="Unable to compute similarity due to error",
                primary_concerns=[ReasonCode.COMPUTATION_ERROR.value],
                neuromotor=_unavailable_section(),
                cognitive=_unavailable_section(),
                temporal=_unavailable_section(),
                behavioral_consistency=_unavailable_section(),
            ),
            reliability=0.0,
            coverage=0.0,
            reason=ReasonCode.COMPUTATION_ERROR,
        )


# ─── Summary Text ────────────────────────────────────────────────────────
# Four templates per domain: >=0.8, >=0.6, >=0.4, below.

_NEUROMOTOR_SUMMARIES = (
    "Neuromotor function appears normal",
    "Mild neuromotor variations noted ({n} findings)",
    "Moderate neuromotor concerns identified ({n} findings)",
    "Significant neuromotor abnormalities detected ({n} findings)",
)

_COGNITIVE_SUMMARIES = (
    "Cognitive function appears normal",
    "Mild cognitive variations noted ({n} findings)",
    "Moderate cognitive concerns identified ({n} findings)",
    "Significant cognitive abnormalities detected ({n} findings)",
)

_TEMPORAL_SUMMARIES = (
    "Temporal patterns are consistent",
    "Minor timing irregularities noted ({n} findings)",
    "Moderate timing disruptions identified ({n} findings)",
    "Significant temporal abnormalities detected ({n} findings)",
)


def _pick_summary(templates: Tuple[str, str, str, str], score: float, findings: int) -> str:
    if score >= 0.8:
        template = templates[0]
    elif score >= 0.6:
        template = templates[1]
    elif score >= 0.4:
        template = templates[2]
    else:
        template = templates[3]
    return template.format(n=findings)


def _unavailable_section() -> InterpretationSection:
    return InterpretationSection(score=0.0, summary="Analysis unavailable")


def _overall_assessment(score: float) -> str:
    if score >= 0.9:
        return "Behavioral patterns are highly consistent with established baseline"
    if score >= 0.7:
        return "Behavioral patterns show good consistency with minor variations"
    if score >= 0.5:
        return "Behavioral patterns show moderate deviations from baseline"
    if score >= 0.3:
        return "Behavioral patterns show significant changes from baseline"
    return "Behavioral patterns show substantial deviations requiring attention"


def _average_severity(anomalies: List[FeatureAnomaly]) -> Severity:
    avg = mean([a.severity.rank for a in anomalies])
    if avg >= 3.5:
        return Severity.CRITICAL
    if avg >= 2.5:
        return Severity.HIGH
    if avg >= 1.5:
        return Severity.MEDIUM
    return Severity.LOW
