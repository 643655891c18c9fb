"""
Data models for the baseline drift engine.
"""

from baseline_drift.models.baseline import (
    BaselineProfile,
    BaselineUpdateResult,
    FeatureVariability,
)
from baseline_drift.models.confidence import ConfidenceAssessment, RiskFactor
from baseline_drift.models.drift import DriftDetection, RecognitionState
from baseline_drift.models.similarity import FeatureAnomaly, SimilarityScore
from baseline_drift.models.snapshot import FeatureSnapshot

__all__ = [
    "BaselineProfile",
    "BaselineUpdateResult",
    "FeatureVariability",
    "ConfidenceAssessment",
    "RiskFactor",
    "DriftDetection",
    "RecognitionState",
    "FeatureAnomaly",
    "SimilarityScore",
    "FeatureSnapshot",
]
