"""
Drift detection result models.

DriftDetection: longitudinal verdict over a window of similarity scores
PatternEvolution: per-score record of how behavior is evolving
RecognitionState: per-subject rolling state owned by the drift detector
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from baseline_drift.core.constants import (
    DriftDirection,
    DriftSeverity,
    DriftType,
    EvolutionType,
    MedicalSignificance,
    Modality,
    MonitoringMode,
    MonitoringPhase,
)
from baseline_drift.models.baseline import BaselineProfile
from baseline_drift.models.similarity import SimilarityScore


@dataclass
class TrendAnalysis:
    direction: float  # -1 (declining) to 1 (improving)
    magnitude: float  # |last - first|
    consistency: float  # R-squared, floored at 0
    acceleration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction,
            "magnitude": self.magnitude,
            "consistency": self.consistency,
            "acceleration": self.acceleration,
        }


@dataclass
class VariabilityAnalysis:
    variance: float
    volatility: float  # mean absolute successive difference
    stability: float  # 1 / (1 + coefficient of variation)


@dataclass
class ChangePoint:
    index: int
    pre_mean: float
    post_mean: float
    timestamp: float

    @property
    def shift(self) -> float:
        return abs(self.post_mean - self.pre_mean)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "pre_mean": self.pre_mean,
            "post_mean": self.post_mean,
            "timestamp": self.timestamp,
        }


@dataclass
class StabilityMetrics:
    variance: float
    trend: float
    volatility: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variance": self.variance,
            "trend": self.trend,
            "volatility": self.volatility,
        }


@dataclass
class DriftDetection:
    """
    Verdict for one full window of similarity scores.

    ``drift_type`` is None when ``is_drifting`` is False.
    """

    subject_id: str
    is_drifting: bool
    drift_type: Optional[DriftType]
    severity: DriftSeverity
    confidence: float
    detected_at: float
    affected_modalities: List[Modality]
    primary_features: List[str]
    direction: DriftDirection
    magnitude: float
    rate_per_day: float
    stability_metrics: StabilityMetrics
    medical_significance: MedicalSignificance = MedicalSignificance.NONE
    likely_progression: bool = False
    recommended_actions: List[str] = field(default_factory=list)
    change_point: Optional[ChangePoint] = None

    # Window metadata
    detection_method: str = "statistical_trend_analysis"
    baseline_id: Optional[str] = None
    observation_start: float = 0.0
    observation_end: float = 0.0
    sample_count: int = 0

    def __post_init__(self):
        """Validate field values."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be between 0.0 and 1.0, got {self.confidence}")

        if self.is_drifting and self.drift_type is None:
            raise ValueError("a drifting verdict needs a drift_type")

        # Convert strings to enums
        if isinstance(self.drift_type, str):
            self.drift_type = DriftType(self.drift_type)
        if isinstance(self.severity, str):
            self.severity = DriftSeverity(self.severity)
        if isinstance(self.direction, str):
            self.direction = DriftDirection(self.direction)
        if isinstance(self.medical_significance, str):
            self.medical_significance = MedicalSignificance(self.medical_significance)

    @property
    def is_severe(self) -> bool:
        return self.severity in (DriftSeverity.SEVERE, DriftSeverity.SIGNIFICANT)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "subject_id": self.subject_id,
            "is_drifting": self.is_drifting,
            "drift_type": self.drift_type.value if self.drift_type else None,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "detected_at": self.detected_at,
            "affected_modalities": [m.value for m in self.affected_modalities],
            "primary_features": list(self.primary_features),
            "direction": self.direction.value,
            "magnitude": self.magnitude,
            "rate_per_day": self.rate_per_day,
            "stability_metrics": self.stability_metrics.to_dict(),
            "medical_significance": self.medical_significance.value,
            "likely_progression": self.likely_progression,
            "recommended_actions": list(self.recommended_actions),
            "change_point": self.change_point.to_dict() if self.change_point else None,
            "metadata": {
                "detection_method": self.detection_method,
                "baseline_id": self.baseline_id,
                "observation_period": [self.observation_start, self.observation_end],
                "sample_count": self.sample_count,
            },
        }

    def __repr__(self) -> str:
        kind = self.drift_type.value if self.drift_type else "none"
        return (
            f"DriftDetection(subject={self.subject_id}, "
            f"drifting={self.is_drifting}, "
            f"type={kind}, "
            f"severity={self.severity.value}, "
            f"confidence={self.confidence:.3f})"
        )


@dataclass
class PatternEvolution:
    subject_id: str
    timepoint: float
    evolution_type: EvolutionType
    dominant_patterns: Dict[str, float]
    change_magnitude: float
    change_direction: str
    change_acceleration: float
    assessment_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "timepoint": self.timepoint,
            "evolution_type": self.evolution_type.value,
            "dominant_patterns": dict(self.dominant_patterns),
            "change_vector": {
                "magnitude": self.change_magnitude,
                "direction": self.change_direction,
                "acceleration": self.change_acceleration,
            },
            "assessment_confidence": self.assessment_confidence,
        }


@dataclass
class RecognitionStatistics:
    total_sessions: int = 0
    drift_detection_count: int = 0
    adaptation_count: int = 0
    avg_similarity_score: float = 0.5
    stability_trend: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "drift_detection_count": self.drift_detection_count,
            "adaptation_count": self.adaptation_count,
            "avg_similarity_score": self.avg_similarity_score,
            "stability_trend": self.stability_trend,
        }


@dataclass
class RecognitionState:
    """
    Mutable per-subject state for longitudinal recognition.

    All histories are bounded deques; the oldest entry is evicted first.
    """

    subject_id: str
    recent_scores: Deque[SimilarityScore]
    drift_history: Deque[DriftDetection]
    evolution_history: Deque[PatternEvolution]
    baseline: Optional[BaselineProfile] = None
    phase: MonitoringPhase = MonitoringPhase.UNINITIALIZED
    monitoring_mode: MonitoringMode = MonitoringMode.NORMAL
    last_check: Optional[float] = None
    adaptation_scheduled: bool = False
    last_trend: Optional[TrendAnalysis] = None
    statistics: RecognitionStatistics = field(default_factory=RecognitionStatistics)

    @classmethod
    def create(
        cls,
        subject_id: str,
        max_scores: int,
        max_drift_history: int,
        max_evolution_history: int,
        baseline: Optional[BaselineProfile] = None,
    ) -> "RecognitionState":
        return cls(
            subject_id=subject_id,
            recent_scores=deque(maxlen=max_scores),
            drift_history=deque(maxlen=max_drift_history),
            evolution_history=deque(maxlen=max_evolution_history),
            baseline=baseline,
        )

    @property
    def latest_verdict(self) -> Optional[DriftDetection]:
        return self.drift_history[-1] if self.drift_history else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "baseline_id": self.baseline.id if self.baseline else None,
            "phase": self.phase.value,
            "monitoring_mode": self.monitoring_mode.value,
            "last_check": self.last_check,
            "adaptation_scheduled": self.adaptation_scheduled,
            "recent_score_count": len(self.recent_scores),
            "drift_history_count": len(self.drift_history),
            "evolution_history_count": len(self.evolution_history),
            "statistics": self.statistics.to_dict(),
        }
