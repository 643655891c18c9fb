"""Engine constants."""

from enum import Enum


class Modality(str, Enum):
    """Behavioral input channels."""

    KEYBOARD = "keyboard"
    MOUSE = "mouse"
    SCROLL = "scroll"
    FOCUS = "focus"
    COMPOSITE = "composite"


class CreationMethod(str, Enum):
    """How a baseline profile was produced."""

    INITIAL = "initial"
    ADAPTIVE = "adaptive"
    MERGED = "merged"


class DataQualityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXCELLENT = "excellent"


class MedicalRelevanceTier(str, Enum):
    SCREENING = "screening"
    MONITORING = "monitoring"
    DIAGNOSTIC = "diagnostic"


class Severity(str, Enum):
    """Four-level severity used by anomalies, medical flags and risk factors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

ANOMALY_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


class MedicalFlagType(str, Enum):
    TREMOR = "tremor"
    BRADYKINESIA = "bradykinesia"
    COGNITIVE_DECLINE = "cognitive_decline"
    ATTENTION_DEFICIT = "attention_deficit"
    FATIGUE = "fatigue"
    OTHER = "other"


class DriftType(str, Enum):
    """Types of longitudinal drift."""

    GRADUAL_DECLINE = "gradual_decline"  # slow progressive deterioration
    SUDDEN_CHANGE = "sudden_change"  # abrupt shift in patterns
    CYCLIC_VARIATION = "cyclic_variation"
    ERRATIC_BEHAVIOR = "erratic_behavior"
    RECOVERY = "recovery"  # improvement after a decline
    ADAPTATION = "adaptation"
    ENVIRONMENTAL = "environmental"
    TECHNICAL = "technical"


class DriftSeverity(str, Enum):
    MINIMAL = "minimal"
    MILD = "mild"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    SEVERE = "severe"


class DriftDirection(str, Enum):
    IMPROVEMENT = "improvement"
    DETERIORATION = "deterioration"
    CHANGE = "change"


class MedicalSignificance(str, Enum):
    NONE = "none"
    MONITORING = "monitoring"
    CLINICAL_ATTENTION = "clinical_attention"
    IMMEDIATE_REVIEW = "immediate_review"

    @property
    def needs_clinician(self) -> bool:
        return self in (
            MedicalSignificance.CLINICAL_ATTENTION,
            MedicalSignificance.IMMEDIATE_REVIEW,
        )


class MonitoringPhase(str, Enum):
    """Per-subject recognition lifecycle."""

    UNINITIALIZED = "uninitialized"
    ACCUMULATING = "accumulating"
    MONITORING = "monitoring"


class MonitoringMode(str, Enum):
    NORMAL = "normal"
    ENHANCED = "enhanced"
    CLINICAL = "clinical"


class EvolutionType(str, Enum):
    BASELINE_ESTABLISHMENT = "baseline_establishment"
    STABLE_PERIOD = "stable_period"
    DRIFT_DETECTED = "drift_detected"
    ADAPTATION_COMPLETE = "adaptation_complete"


class RiskType(str, Enum):
    DATA = "data"
    BASELINE = "baseline"
    TEMPORAL = "temporal"
    MEDICAL = "medical"
    TECHNICAL = "technical"


class RecommendationType(str, Enum):
    DATA_COLLECTION = "data_collection"
    BASELINE_IMPROVEMENT = "baseline_improvement"
    FEATURE_ENHANCEMENT = "feature_enhancement"
    VALIDATION = "validation"
    MEDICAL_CONSULTATION = "medical_consultation"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}


class Effort(str, Enum):
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SUBSTANTIAL = "substantial"
    EXTENSIVE = "extensive"


class ReasonCode(str, Enum):
    """Machine-readable failure reasons embedded in results."""

    INSUFFICIENT_DATA = "insufficient_data"
    INSUFFICIENT_RECENT_DATA = "insufficient_recent_data"
    NO_SNAPSHOT_DATA = "no_snapshot_data"
    UPDATE_FAILED = "update_failed"
    COMPUTATION_ERROR = "computation_error"
    NOT_YET_EVALUABLE = "not_yet_evaluable"


SECONDS_PER_DAY = 86400.0
