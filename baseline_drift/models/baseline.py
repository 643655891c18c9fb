"""
Baseline profile models.

BaselineProfile: the learned "normal" for one subject
BaselineUpdateResult: outcome of a create/update request
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from baseline_drift.core.constants import (
    CreationMethod,
    DataQualityTier,
    MedicalRelevanceTier,
    Modality,
    ReasonCode,
)


@dataclass
class FeatureVariability:
    """Natural spread of one feature, used for z-scores and anomaly bounds."""

    mean: float
    std: float
    lower_bound: float
    upper_bound: float

    def __post_init__(self):
        if self.std < 0:
            raise ValueError(f"std must be non-negative, got {self.std}")
        if self.lower_bound > self.upper_bound:
            raise ValueError(
                f"lower_bound {self.lower_bound} exceeds upper_bound {self.upper_bound}"
            )

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.lower_bound, self.upper_bound

    def contains(self, value: float) -> bool:
        return self.lower_bound <= value <= self.upper_bound

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": self.mean,
            "std": self.std,
            "bounds": [self.lower_bound, self.upper_bound],
        }


@dataclass
class BaselineStatistics:
    sample_count: int
    session_count: int
    total_duration: float
    confidence: float
    stability: float
    coverage: Dict[Modality, Dict[str, bool]] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be between 0.0 and 1.0, got {self.confidence}")
        if not 0.0 <= self.stability <= 1.0:
            raise ValueError(f"stability must be between 0.0 and 1.0, got {self.stability}")

    @property
    def covered_ratio(self) -> float:
        flags = [flag for features in self.coverage.values() for flag in features.values()]
        if not flags:
            return 0.0
        return sum(1 for flag in flags if flag) / len(flags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_count": self.sample_count,
            "session_count": self.session_count,
            "total_duration": self.total_duration,
            "confidence": self.confidence,
            "stability": self.stability,
            "coverage": {
                modality.value: dict(flags) for modality, flags in self.coverage.items()
            },
        }


@dataclass
class TemporalCharacteristics:
    """Activity histograms (UTC) and session-length distribution."""

    hourly_activity: List[int] = field(default_factory=lambda: [0] * 24)
    weekly_activity: List[int] = field(default_factory=lambda: [0] * 7)  # Monday = 0
    session_length_mean: float = 0.0
    session_length_std: float = 0.0
    optimal_window: Tuple[int, int] = (0, 23)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hourly_activity": list(self.hourly_activity),
            "weekly_activity": list(self.weekly_activity),
            "session_length": {
                "mean": self.session_length_mean,
                "std": self.session_length_std,
            },
            "optimal_window": {
                "start": self.optimal_window[0],
                "end": self.optimal_window[1],
            },
        }


@dataclass
class EnvironmentalContext:
    device_characteristics: Dict[str, Any] = field(default_factory=dict)
    typical_conditions: List[str] = field(default_factory=list)
    performance_modifiers: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_characteristics": dict(self.device_characteristics),
            "typical_conditions": list(self.typical_conditions),
            "performance_modifiers": dict(self.performance_modifiers),
        }


@dataclass
class BaselineMetadata:
    creation_method: CreationMethod
    data_quality: DataQualityTier
    medical_relevance: MedicalRelevanceTier
    last_updated: float

    def __post_init__(self):
        # Convert strings to enums
        if isinstance(self.creation_method, str):
            self.creation_method = CreationMethod(self.creation_method)
        if isinstance(self.data_quality, str):
            self.data_quality = DataQualityTier(self.data_quality)
        if isinstance(self.medical_relevance, str):
            self.medical_relevance = MedicalRelevanceTier(self.medical_relevance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "creation_method": self.creation_method.value,
            "data_quality": self.data_quality.value,
            "medical_relevance": self.medical_relevance.value,
            "last_updated": self.last_updated,
        }


@dataclass
class BaselineProfile:
    """
    A subject's statistical model of normal behavior.

    Point estimates are robust trimmed means; ``variability`` carries the
    mean/std/bounds used for z-scores. Owned by the baseline aggregator and
    read-only everywhere else.
    """

    id: str
    subject_id: str
    created_at: float
    features: Dict[Modality, Dict[str, float]]
    variability: Dict[Modality, Dict[str, FeatureVariability]]
    statistics: BaselineStatistics
    temporal: TemporalCharacteristics
    environment: EnvironmentalContext
    metadata: BaselineMetadata
    observation_end: float  # latest snapshot timestamp aggregated
    version: str = "1.0.0"

    @property
    def confidence(self) -> float:
        return self.statistics.confidence

    @property
    def stability(self) -> float:
        return self.statistics.stability

    @property
    def updated_at(self) -> float:
        return self.metadata.last_updated

    def modality(self, modality: Modality) -> Dict[str, float]:
        return self.features.get(Modality(modality), {})

    def get(self, modality: Modality, feature: str) -> Optional[float]:
        return self.modality(modality).get(feature)

    def variability_for(self, modality: Modality, feature: str) -> Optional[FeatureVariability]:
        return self.variability.get(Modality(modality), {}).get(feature)

    @property
    def feature_count(self) -> int:
        return sum(len(values) for values in self.features.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "version": self.version,
            "created_at": self.created_at,
            "observation_end": self.observation_end,
            "features": {
                modality.value: dict(values) for modality, values in self.features.items()
            },
            "variability": {
                modality.value: {name: v.to_dict() for name, v in entries.items()}
                for modality, entries in self.variability.items()
            },
            "statistics": self.statistics.to_dict(),
            "temporal": self.temporal.to_dict(),
            "environment": self.environment.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"BaselineProfile(subject={self.subject_id}, "
            f"samples={self.statistics.sample_count}, "
            f"confidence={self.confidence:.3f}, "
            f"stability={self.stability:.3f}, "
            f"method={self.metadata.creation_method.value})"
        )


@dataclass
class BaselineUpdateResult:
    """
    Outcome of creating or updating a baseline.

    Failures carry their reason codes in ``warnings``; ``baseline`` is None
    unless the request produced a new profile.
    """

    success: bool
    confidence_change: float = 0.0
    stability_change: float = 0.0
    significant_changes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    baseline: Optional[BaselineProfile] = None

    @classmethod
    def failure(cls, reason: ReasonCode) -> "BaselineUpdateResult":
        return cls(success=False, warnings=[ReasonCode(reason).value])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "confidence_change": self.confidence_change,
            "stability_change": self.stability_change,
            "significant_changes": list(self.significant_changes),
            "warnings": list(self.warnings),
            "baseline_id": self.baseline.id if self.baseline else None,
        }
