"""
Similarity scoring result models.

SimilarityScore: one snapshot compared against a baseline
FeatureAnomaly / FeatureContribution: per-feature evidence
Interpretation: domain analyses, concerns and medical flags
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from baseline_drift.core.constants import MedicalFlagType, Modality, ReasonCode, Severity


def _check_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")


@dataclass
class FeatureAnomaly:
    """A feature whose z-score reached at least the lowest anomaly threshold."""

    feature: str
    severity: Severity
    current_value: float
    baseline_value: float
    zscore: float
    medical_relevance: Severity
    description: str

    def __post_init__(self):
        if isinstance(self.severity, str):
            self.severity = Severity(self.severity)
        if isinstance(self.medical_relevance, str):
            self.medical_relevance = Severity(self.medical_relevance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature,
            "severity": self.severity.value,
            "current_value": self.current_value,
            "baseline_value": self.baseline_value,
            "zscore": self.zscore,
            "medical_relevance": self.medical_relevance.value,
            "description": self.description,
        }


@dataclass
class FeatureContribution:
    feature: str
    contribution: float  # feature score - 0.5
    importance: float
    reliability: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature,
            "contribution": self.contribution,
            "importance": self.importance,
            "reliability": self.reliability,
        }


@dataclass
class ModalitySimilarity:
    score: float
    weight: float
    feature_count: int = 0
    anomalies: List[FeatureAnomaly] = field(default_factory=list)
    contributions: List[FeatureContribution] = field(default_factory=list)

    def __post_init__(self):
        _check_unit("score", self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "weight": self.weight,
            "feature_count": self.feature_count,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "contributions": [c.to_dict() for c in self.contributions],
        }


@dataclass
class InterpretationSection:
    score: float
    summary: str
    key_findings: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "summary": self.summary,
            "key_findings": list(self.key_findings),
            "risk_factors": list(self.risk_factors),
        }


@dataclass
class MedicalFlag:
    type: MedicalFlagType
    severity: Severity
    confidence: float
    description: str
    recommended_action: str

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = MedicalFlagType(self.type)
        if isinstance(self.severity, str):
            self.severity = Severity(self.severity)
        _check_unit("confidence", self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "description": self.description,
            "recommended_action": self.recommended_action,
        }


@dataclass
class Interpretation:
    overall_assessment: str
    primary_concerns: List[str]
    neuromotor: InterpretationSection
    cognitive: InterpretationSection
    temporal: InterpretationSection
    behavioral_consistency: InterpretationSection
    recommendations: List[str] = field(default_factory=list)
    medical_flags: List[MedicalFlag] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_assessment": self.overall_assessment,
            "primary_concerns": list(self.primary_concerns),
            "detailed_analysis": {
                "neuromotor_function": self.neuromotor.to_dict(),
                "cognitive_function": self.cognitive.to_dict(),
                "temporal_patterns": self.temporal.to_dict(),
                "behavioral_consistency": self.behavioral_consistency.to_dict(),
            },
            "recommendations": list(self.recommendations),
            "medical_flags": [f.to_dict() for f in self.medical_flags],
        }


@dataclass
class SimilarityScore:
    """
    Result of comparing one snapshot against a baseline.

    A degraded score (``reason`` set, confidence 0) means the comparison
    failed and the score must not be trusted.
    """

    overall: float
    confidence: float
    timestamp: float
    modalities: Dict[Modality, ModalitySimilarity]
    interpretation: Interpretation
    reliability: float
    coverage: float
    reason: Optional[ReasonCode] = None

    def __post_init__(self):
        """Validate field values."""
        for name in ("overall", "confidence", "reliability", "coverage"):
            _check_unit(name, getattr(self, name))

    @property
    def is_degraded(self) -> bool:
        return self.reason is not None

    def all_anomalies(self) -> List[FeatureAnomaly]:
        return [a for m in self.modalities.values() for a in m.anomalies]

    def all_contributions(self) -> List[FeatureContribution]:
        return [c for m in self.modalities.values() for c in m.contributions]

    @property
    def compared_feature_count(self) -> int:
        return sum(m.feature_count for m in self.modalities.values())

    def modality_score(self, modality: Modality) -> float:
        entry = self.modalities.get(Modality(modality))
        return entry.score if entry else 0.5

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "overall": self.overall,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "modalities": {
                modality.value: entry.to_dict() for modality, entry in self.modalities.items()
            },
            "interpretation": self.interpretation.to_dict(),
            "reliability": self.reliability,
            "coverage": self.coverage,
            "reason": self.reason.value if self.reason else None,
        }

    def __repr__(self) -> str:
        return (
            f"SimilarityScore(overall={self.overall:.3f}, "
            f"confidence={self.confidence:.3f}, "
            f"anomalies={len(self.all_anomalies())})"
        )
