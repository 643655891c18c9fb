"""
Behavioral baseline and drift analytics engine.

Builds per-subject behavioral baselines from feature snapshots, scores new
snapshots against them, tracks longitudinal drift in those scores and
estimates how far each result can be trusted.
"""

from baseline_drift.analysis import (
    BaselineAggregator,
    ConfidenceEstimator,
    DriftDetector,
    SimilarityEngine,
)
from baseline_drift.config import Settings, get_settings
from baseline_drift.core.pipeline import MonitoringPipeline, TickResult
from baseline_drift.models import FeatureSnapshot

__version__ = "1.0.0"

__all__ = [
    "BaselineAggregator",
    "ConfidenceEstimator",
    "DriftDetector",
    "SimilarityEngine",
    "Settings",
    "get_settings",
    "MonitoringPipeline",
    "TickResult",
    "FeatureSnapshot",
]
