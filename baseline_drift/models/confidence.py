"""
Confidence assessment models.

ConfidenceAssessment combines the five sub-confidences, an
epistemic/aleatoric uncertainty decomposition, risk factors and
recommendations into one report.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

from baseline_drift.core.constants import (
    Effort,
    Priority,
    ReasonCode,
    RecommendationType,
    RiskType,
    Severity,
)


@dataclass
class ComponentConfidence:
    """One sub-confidence with its factor breakdown and the issues it raised."""

    score: float
    factors: Dict[str, float]
    issues: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score must be between 0.0 and 1.0, got {self.score}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "factors": dict(self.factors),
            "issues": list(self.issues),
        }


@dataclass
class ConfidenceComponents:
    data_quality: ComponentConfidence
    baseline_reliability: ComponentConfidence
    feature_coverage: ComponentConfidence
    temporal_consistency: ComponentConfidence
    medical_validity: ComponentConfidence

    def scores(self) -> Dict[str, float]:
        """Component name -> score, keyed like the confidence weights."""
        return {name: component.score for name, component in self.items()}

    def items(self):
        return (
            ("data_quality", self.data_quality),
            ("baseline_reliability", self.baseline_reliability),
            ("feature_coverage", self.feature_coverage),
            ("temporal_consistency", self.temporal_consistency),
            ("medical_validity", self.medical_validity),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {name: component.to_dict() for name, component in self.items()}


@dataclass
class EpistemicUncertainty:
    model: float
    feature: float
    baseline: float
    interpretation: float

    @property
    def total(self) -> float:
        return (self.model + self.feature + self.baseline + self.interpretation) / 4

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_uncertainty": self.model,
            "feature_uncertainty": self.feature,
            "baseline_uncertainty": self.baseline,
            "interpretation_uncertainty": self.interpretation,
            "total": self.total,
        }


@dataclass
class AleatoricUncertainty:
    measurement_noise: float
    biological_variability: float
    environmental_variability: float
    behavioral_variability: float

    @property
    def total(self) -> float:
        return (
            self.measurement_noise
            + self.biological_variability
            + self.environmental_variability
            + self.behavioral_variability
        ) / 4

    def to_dict(self) -> Dict[str, Any]:
        return {
            "measurement_noise": self.measurement_noise,
            "biological_variability": self.biological_variability,
            "environmental_variability": self.environmental_variability,
            "behavioral_variability": self.behavioral_variability,
            "total": self.total,
        }


@dataclass
class CombinedUncertainty:
    """
    Combined uncertainty around a point estimate.

    Both intervals always contain ``point_estimate``.
    """

    total: float
    point_estimate: float
    confidence_interval: Tuple[float, float]
    prediction_interval: Tuple[float, float]
    reliability_bounds: Tuple[float, float]

    def __post_init__(self):
        for name in ("confidence_interval", "prediction_interval"):
            lower, upper = getattr(self, name)
            if not lower <= self.point_estimate <= upper:
                raise ValueError(
                    f"{name} [{lower}, {upper}] does not contain {self.point_estimate}"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_uncertainty": self.total,
            "point_estimate": self.point_estimate,
            "confidence_interval": list(self.confidence_interval),
            "prediction_interval": list(self.prediction_interval),
            "reliability_bounds": {
                "lower": self.reliability_bounds[0],
                "upper": self.reliability_bounds[1],
            },
        }


@dataclass
class UncertaintyQuantification:
    epistemic: EpistemicUncertainty
    aleatoric: AleatoricUncertainty
    combined: CombinedUncertainty

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epistemic": self.epistemic.to_dict(),
            "aleatoric": self.aleatoric.to_dict(),
            "combined": self.combined.to_dict(),
        }


@dataclass
class RiskFactor:
    type: RiskType
    severity: Severity
    description: str
    impact: float
    mitigation: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = RiskType(self.type)
        if isinstance(self.severity, str):
            self.severity = Severity(self.severity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "impact": self.impact,
            "mitigation": self.mitigation,
        }


@dataclass
class ConfidenceRecommendation:
    type: RecommendationType
    priority: Priority
    description: str
    expected_improvement: float
    effort: Effort

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = RecommendationType(self.type)
        if isinstance(self.priority, str):
            self.priority = Priority(self.priority)
        if isinstance(self.effort, str):
            self.effort = Effort(self.effort)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "priority": self.priority.value,
            "description": self.description,
            "expected_improvement": self.expected_improvement,
            "effort": self.effort.value,
        }


@dataclass
class ConfidenceAssessment:
    """
    Risk-facing report combining score, baseline and drift.

    An assessment with ``reason`` set is the all-zero failure result and
    must be read as "insufficient information", never as "zero risk".
    """

    subject_id: str
    overall: float
    timestamp: float
    components: ConfidenceComponents
    uncertainty: UncertaintyQuantification
    risk_factors: List[RiskFactor] = field(default_factory=list)
    recommendations: List[ConfidenceRecommendation] = field(default_factory=list)
    assessment_version: str = "1.0.0"
    computation_time_ms: float = 0.0
    last_updated: float = 0.0
    reason: Optional[ReasonCode] = None

    def __post_init__(self):
        if not 0.0 <= self.overall <= 1.0:
            raise ValueError(f"overall must be between 0.0 and 1.0, got {self.overall}")

    @property
    def is_degraded(self) -> bool:
        return self.reason is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "subject_id": self.subject_id,
            "overall": self.overall,
            "timestamp": self.timestamp,
            "components": self.components.to_dict(),
            "uncertainty": self.uncertainty.to_dict(),
            "risk_factors": [r.to_dict() for r in self.risk_factors],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "metadata": {
                "assessment_version": self.assessment_version,
                "computation_time_ms": self.computation_time_ms,
                "last_updated": self.last_updated,
            },
            "reason": self.reason.value if self.reason else None,
        }

    def __repr__(self) -> str:
        return (
            f"ConfidenceAssessment(subject={self.subject_id}, "
            f"overall={self.overall:.3f}, "
            f"risks={len(self.risk_factors)}, "
            f"recommendations={len(self.recommendations)})"
        )


@dataclass
class ConfidenceTrends:
    overall: float = 0.0
    data_quality: float = 0.0
    baseline: float = 0.0
    feature: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_trend": self.overall,
            "data_quality_trend": self.data_quality,
            "baseline_trend": self.baseline,
            "feature_trend": self.feature,
        }


@dataclass
class ConfidenceHistory:
    subject_id: str
    assessments: Deque[ConfidenceAssessment]
    trends: ConfidenceTrends = field(default_factory=ConfidenceTrends)

    @classmethod
    def create(cls, subject_id: str, max_assessments: int) -> "ConfidenceHistory":
        return cls(subject_id=subject_id, assessments=deque(maxlen=max_assessments))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "assessment_count": len(self.assessments),
            "trends": self.trends.to_dict(),
        }
