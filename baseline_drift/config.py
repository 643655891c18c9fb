"""
Configuration module for the baseline drift engine.
Centralizes all weights, thresholds, window sizes and buffer capacities.
"""

from functools import lru_cache
from typing import Dict

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MODALITY_NAMES = ("keyboard", "mouse", "scroll", "focus", "composite")
ANOMALY_LEVELS = ("low", "medium", "high", "critical")
DRIFT_LEVELS = ("minimal", "mild", "moderate", "significant", "severe")
CONFIDENCE_COMPONENTS = (
    "data_quality",
    "baseline_reliability",
    "feature_coverage",
    "temporal_consistency",
    "medical_validity",
)


class Settings(BaseSettings):
    """Engine settings, overridable through BASELINE_DRIFT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BASELINE_DRIFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─── Application Settings ────────────────────────────────────────────
    app_name: str = "Baseline Drift Engine"
    app_version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"

    # ─── Baseline Aggregation ────────────────────────────────────────────
    max_snapshots_per_subject: int = Field(
        default=1000,
        ge=1,
        description="Capacity of the per-subject snapshot buffer (oldest evicted first)"
    )
    min_snapshots_for_baseline: int = Field(
        default=20,
        ge=1,
        description="Minimum snapshots required before a baseline can be built"
    )
    initial_quality_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Snapshot quality needed to count toward an initial baseline"
    )
    min_quality_fraction: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Fraction of min_snapshots_for_baseline that must pass the quality threshold"
    )
    update_quality_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Snapshot quality needed to count toward an adaptive update"
    )
    min_recent_snapshots_for_update: int = Field(
        default=5,
        ge=1,
        description="Minimum new quality snapshots required for an adaptive update"
    )
    auto_update_quality_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Quality of new snapshots counted when deciding on an automatic update"
    )
    auto_update_min_new_snapshots: int = Field(
        default=10,
        ge=1,
        description="New quality snapshots (among the last 20) that trigger an automatic update"
    )
    auto_update_interval_days: float = Field(
        default=7.0,
        gt=0.0,
        description="Days after which an automatic update is attempted regardless of volume"
    )
    decay_factor_per_day: float = Field(
        default=0.95,
        gt=0.0,
        le=1.0,
        description="Daily multiplicative recency weight for adaptive re-aggregation"
    )
    decay_horizon_days: float = Field(
        default=30.0,
        gt=0.0,
        description="Snapshots older than this are excluded from adaptive re-aggregation"
    )
    decayed_quality_floor: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Snapshots whose decayed quality is at or below this are dropped"
    )
    variability_bound_sigmas: float = Field(
        default=2.5,
        gt=0.0,
        description="Width of the variability bounds in standard deviations"
    )
    trim_fraction: float = Field(
        default=0.1,
        ge=0.0,
        lt=0.5,
        description="Fraction trimmed from each tail when computing robust means"
    )
    confidence_sample_midpoint: float = Field(
        default=50.0,
        description="Sample count at which the sample-size sigmoid reaches 0.5"
    )
    confidence_sample_scale: float = Field(
        default=20.0,
        gt=0.0,
        description="Scale of the sample-size sigmoid"
    )
    significant_change_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "keyboard.meanDwell": 0.20,
            "keyboard.typingRhythm": 0.15,
            "keyboard.motorSlowness": 0.10,
            "composite.globalTimingEntropy": 0.25,
            "composite.globalNeuromotorIndex": 0.15,
        },
        description="Relative shift (per modality.feature) reported as a significant baseline change"
    )

    # ─── Similarity Scoring ──────────────────────────────────────────────
    modality_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "keyboard": 0.3,
            "mouse": 0.25,
            "scroll": 0.15,
            "focus": 0.2,
            "composite": 0.1,
        },
        description="Weight of each modality in the overall similarity score"
    )
    anomaly_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "low": 1.5,
            "medium": 2.0,
            "high": 2.5,
            "critical": 3.0,
        },
        description="z-score at which a feature anomaly reaches each severity"
    )
    expected_feature_count: int = Field(
        default=50,
        ge=1,
        description="Number of compared features treated as full coverage"
    )
    default_feature_reliability: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Reliability assigned to features without baseline variability"
    )

    # ─── Drift Detection ─────────────────────────────────────────────────
    drift_window_size: int = Field(
        default=10,
        ge=3,
        description="Number of recent scores analyzed for drift"
    )
    drift_severity_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "minimal": 0.05,
            "mild": 0.10,
            "moderate": 0.20,
            "significant": 0.35,
            "severe": 0.50,
        },
        description="Change magnitude at which drift reaches each severity"
    )
    change_point_threshold: float = Field(
        default=0.15,
        ge=0.0,
        description="Mean shift across a split that marks a change point"
    )
    sudden_change_threshold: float = Field(
        default=0.30,
        ge=0.0,
        description="Change point shift classified as a sudden change"
    )
    trend_direction_threshold: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Normalized trend direction needed for a trend-based drift"
    )
    trend_consistency_threshold: float = Field(
        default=0.50,
        ge=0.0,
        le=1.0,
        description="R-squared needed for a trend-based drift"
    )
    volatility_threshold: float = Field(
        default=0.20,
        ge=0.0,
        description="Mean absolute successive difference that signals drift"
    )
    erratic_volatility_threshold: float = Field(
        default=0.25,
        ge=0.0,
        description="Volatility classified as erratic behavior"
    )
    stability_floor: float = Field(
        default=0.60,
        ge=0.0,
        le=1.0,
        description="Score stability below which drift is declared"
    )
    modality_variance_threshold: float = Field(
        default=0.10,
        ge=0.0,
        description="Score variance for a modality to count as affected"
    )
    max_drift_history: int = Field(default=50, ge=1)
    max_evolution_history: int = Field(default=100, ge=1)
    enhanced_mode_drift_count: int = Field(
        default=2,
        ge=1,
        description="Drifting verdicts among the lookback that escalate to enhanced monitoring"
    )
    mode_lookback: int = Field(
        default=3,
        ge=1,
        description="Number of most recent verdicts considered for monitoring mode"
    )
    consistent_drift_trigger: int = Field(
        default=5,
        ge=1,
        description="Matching verdicts (type and direction) among the last N that trigger adaptation"
    )

    # ─── Confidence Estimation ───────────────────────────────────────────
    confidence_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "data_quality": 0.25,
            "baseline_reliability": 0.25,
            "feature_coverage": 0.20,
            "temporal_consistency": 0.15,
            "medical_validity": 0.15,
        },
        description="Weight of each sub-confidence in the overall confidence"
    )
    max_confidence_history: int = Field(default=50, ge=1)

    # ─── Scheduling ──────────────────────────────────────────────────────
    tick_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Interval between pipeline ticks for each monitored subject"
    )

    # ─── Validators ──────────────────────────────────────────────────────

    @field_validator("modality_weights")
    @classmethod
    def validate_modality_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Require a non-negative weight for every modality."""
        return _complete_weights(v, MODALITY_NAMES, "modality_weights")

    @field_validator("confidence_weights")
    @classmethod
    def validate_confidence_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Require a non-negative weight for every confidence component."""
        return _complete_weights(v, CONFIDENCE_COMPONENTS, "confidence_weights")

    @field_validator("anomaly_thresholds")
    @classmethod
    def validate_anomaly_thresholds(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Anomaly z-thresholds must be present and strictly increasing."""
        return _ordered_ladder(v, ANOMALY_LEVELS, "anomaly_thresholds")

    @field_validator("drift_severity_thresholds")
    @classmethod
    def validate_drift_thresholds(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Drift severity cutoffs must be present and strictly increasing."""
        return _ordered_ladder(v, DRIFT_LEVELS, "drift_severity_thresholds")

    @model_validator(mode="after")
    def validate_change_thresholds(self) -> "Settings":
        if self.sudden_change_threshold < self.change_point_threshold:
            raise ValueError(
                "sudden_change_threshold must not be below change_point_threshold"
            )
        return self

    # ─── Helper Methods ──────────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def min_quality_snapshots(self) -> float:
        """Quality-passing snapshots needed for an initial baseline."""
        return self.min_snapshots_for_baseline * self.min_quality_fraction

    @property
    def max_recent_scores(self) -> int:
        """Capacity of the per-subject score window."""
        return self.drift_window_size * 2


def _complete_weights(value: Dict[str, float], names, field_name: str) -> Dict[str, float]:
    missing = [name for name in names if name not in value]
    if missing:
        raise ValueError(f"{field_name} missing entries: {', '.join(missing)}")
    negative = [name for name in names if value[name] < 0]
    if negative:
        raise ValueError(f"{field_name} must be non-negative: {', '.join(negative)}")
    return {name: float(value[name]) for name in names}


def _ordered_ladder(value: Dict[str, float], levels, field_name: str) -> Dict[str, float]:
    missing = [level for level in levels if level not in value]
    if missing:
        raise ValueError(f"{field_name} missing levels: {', '.join(missing)}")
    ordered = [float(value[level]) for level in levels]
    if any(lower >= upper for lower, upper in zip(ordered, ordered[1:])):
        raise ValueError(
            f"{field_name} must increase strictly in the order {', '.join(levels)}"
        )
    return dict(zip(levels, ordered))


@lru_cache
def get_settings() -> Settings:
    """
    Get cached engine settings.

    Uses LRU cache to ensure settings are loaded only once.

    Returns:
        Settings: Engine configuration object
    """
    return Settings()
