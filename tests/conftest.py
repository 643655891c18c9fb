"""
Pytest Configuration and Fixtures.

Provides shared fixtures for testing the baseline drift engine.
"""

from typing import Dict, Iterable, Optional

import pytest

from baseline_drift.analysis.baseline_aggregator import BaselineAggregator
from baseline_drift.config import Settings
from baseline_drift.core.constants import Modality, Severity
from baseline_drift.models.baseline import BaselineProfile
from baseline_drift.models.similarity import (
    FeatureAnomaly,
    Interpretation,
    InterpretationSection,
    ModalitySimilarity,
    SimilarityScore,
)
from baseline_drift.models.snapshot import FeatureSnapshot
from baseline_drift.utils.time import StreamClock

# 2023-11-14 22:13:20 UTC
T0 = 1_700_000_000.0
HOUR = 3600.0
DAY = 86400.0

SUBJECT = "subject_001"

# Cycling offsets around 120ms: mean 120, population std sqrt(26) ~ 5.1
DWELL_OFFSETS = (-7.0, -4.0, 0.0, 4.0, 7.0)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with default engine values."""
    return Settings(environment="test", log_level="DEBUG")


@pytest.fixture
def clock() -> StreamClock:
    """Clock fixed one day after the first synthetic snapshot."""
    return StreamClock(T0 + DAY)


# ============================================================================
# Snapshot Fixtures
# ============================================================================

@pytest.fixture
def snapshot_factory():
    """Factory producing hourly snapshots with keyboard.meanDwell around 120ms."""
    def _create_snapshot(
        index: int = 0,
        dwell: Optional[float] = None,
        quality: float = 0.8,
        features: Optional[Dict[str, Dict[str, float]]] = None,
        timestamp: Optional[float] = None,
        environment: Optional[Dict[str, object]] = None,
    ) -> FeatureSnapshot:
        if dwell is None:
            dwell = 120.0 + DWELL_OFFSETS[index % len(DWELL_OFFSETS)]

        bags: Dict[Modality, Dict[str, float]] = {Modality.KEYBOARD: {"meanDwell": dwell}}
        for modality, values in (features or {}).items():
            bags.setdefault(Modality(modality), {}).update(values)

        return FeatureSnapshot(
            timestamp=T0 + index * HOUR if timestamp is None else timestamp,
            session_id=f"session_{index:03d}",
            features=bags,
            environment=environment or {},
            quality=quality,
        )

    return _create_snapshot


@pytest.fixture
def aggregator(test_settings, clock) -> BaselineAggregator:
    return BaselineAggregator(settings=test_settings, clock=clock)


@pytest.fixture
def baseline(aggregator, snapshot_factory) -> BaselineProfile:
    """Baseline built from 20 snapshots of meanDwell ~ 120 +/- 5."""
    for i in range(20):
        aggregator.add_snapshot(SUBJECT, snapshot_factory(i))
    profile = aggregator.get_baseline(SUBJECT)
    assert profile is not None
    return profile


# ============================================================================
# Similarity Score Fixtures
# ============================================================================

def _section(score: float) -> InterpretationSection:
    return InterpretationSection(score=score, summary="synthetic")


@pytest.fixture
def anomaly_factory():
    """Factory to create feature anomalies."""
    def _create_anomaly(
        feature: str = "meanDwell",
        severity: Severity = Severity.HIGH,
        zscore: float = 2.7,
    ) -> FeatureAnomaly:
        return FeatureAnomaly(
            feature=feature,
            severity=severity,
            current_value=140.0,
            baseline_value=120.0,
            zscore=zscore,
            medical_relevance=Severity.MEDIUM,
            description=f"{feature} increased significantly",
        )

    return _create_anomaly


@pytest.fixture
def score_factory():
    """Factory to create similarity scores without running the engine."""
    def _create_score(
        overall: float = 0.85,
        timestamp: float = T0,
        confidence: float = 0.8,
        modality_scores: Optional[Dict[Modality, float]] = None,
        anomalies: Iterable[FeatureAnomaly] = (),
        feature_count: int = 4,
        reliability: float = 0.8,
        coverage: float = 0.4,
    ) -> SimilarityScore:
        modality_scores = modality_scores or {}
        modalities = {
            modality: ModalitySimilarity(
                score=modality_scores.get(modality, overall),
                weight=0.2,
                feature_count=feature_count,
            )
            for modality in Modality
        }
        modalities[Modality.KEYBOARD].anomalies = list(anomalies)

        return SimilarityScore(
            overall=overall,
            confidence=confidence,
            timestamp=timestamp,
            modalities=modalities,
            interpretation=Interpretation(
                overall_assessment="synthetic assessment",
                primary_concerns=[],
                neuromotor=_section(overall),
                cognitive=_section(overall),
                temporal=_section(overall),
                behavioral_consistency=_section(overall),
            ),
            reliability=reliability,
            coverage=coverage,
        )

    return _create_score


@pytest.fixture
def declining_scores(score_factory):
    """Ten daily scores declining linearly from 0.9 to 0.5."""
    return [
        score_factory(overall=0.9 - i * (0.4 / 9), timestamp=T0 + i * DAY)
        for i in range(10)
    ]
