"""
Analysis engines.

- BaselineAggregator: builds and adapts per-subject baselines from snapshots
- SimilarityEngine: scores a snapshot against a baseline
- DriftDetector: longitudinal drift verdicts over similarity scores
- ConfidenceEstimator: confidence, uncertainty and risks for a score
"""

from baseline_drift.analysis.baseline_aggregator import BaselineAggregator
from baseline_drift.analysis.confidence_estimator import ConfidenceEstimator
from baseline_drift.analysis.drift_detector import DriftDetector
from baseline_drift.analysis.similarity_engine import SimilarityEngine

__all__ = [
    "BaselineAggregator",
    "ConfidenceEstimator",
    "DriftDetector",
    "SimilarityEngine",
]
