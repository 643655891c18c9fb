"""Per-subject monitoring pipeline: snapshot -> baseline -> similarity -> drift -> confidence."""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from baseline_drift.analysis.baseline_aggregator import BaselineAggregator
from baseline_drift.analysis.confidence_estimator import ConfidenceEstimator
from baseline_drift.analysis.drift_detector import DriftDetector
from baseline_drift.analysis.similarity_engine import SimilarityEngine
from baseline_drift.config import Settings, get_settings
from baseline_drift.core.constants import ReasonCode
from baseline_drift.core.logging_config import get_logger
from baseline_drift.models.baseline import BaselineProfile, BaselineUpdateResult
from baseline_drift.models.confidence import ConfidenceAssessment
from baseline_drift.models.drift import DriftDetection
from baseline_drift.models.similarity import SimilarityScore
from baseline_drift.models.snapshot import FeatureSnapshot
from baseline_drift.utils.time import Clock, now

logger = get_logger(__name__)


@dataclass
class TickResult:
    """Everything one tick produced for a subject."""

    subject_id: str
    timestamp: float
    baseline_update: Optional[BaselineUpdateResult] = None
    baseline: Optional[BaselineProfile] = None
    score: Optional[SimilarityScore] = None
    drift: Optional[DriftDetection] = None
    confidence: Optional[ConfidenceAssessment] = None
    adaptation: Optional[BaselineUpdateResult] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def scored(self) -> bool:
        return self.score is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "subject_id": self.subject_id,
            "timestamp": self.timestamp,
            "baseline_id": self.baseline.id if self.baseline else None,
            "baseline_update": self.baseline_update.to_dict() if self.baseline_update else None,
            "score": self.score.to_dict() if self.score else None,
            "drift": self.drift.to_dict() if self.drift else None,
            "confidence": self.confidence.to_dict() if self.confidence else None,
            "adaptation": self.adaptation.to_dict() if self.adaptation else None,
            "warnings": list(self.warnings),
        }


class MonitoringPipeline:
    """
    Runs the four engines for one subject per tick.

    Ticks for the same subject are serialized by a per-subject lock;
    different subjects may tick concurrently.
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None):
        """
        Initialize pipeline with engines sharing one settings object and clock.

        Args:
            settings: Engine settings (defaults to the cached settings)
            clock: Callable returning the current unix time
        """
        self.settings = settings or get_settings()
        self._clock = clock or now

        self.aggregator = BaselineAggregator(self.settings, self._clock)
        self.similarity = SimilarityEngine(self.settings)
        self.detector = DriftDetector(
            self.settings, self._clock, adaptation_hook=self._adapt_baseline
        )
        self.estimator = ConfidenceEstimator(self.settings, self._clock)

        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._adaptations: Dict[str, BaselineUpdateResult] = {}

        logger.info("MonitoringPipeline initialized")

    def tick(self, subject_id: str, snapshot: FeatureSnapshot) -> TickResult:
        """
        Process one snapshot for a subject.

        Args:
            subject_id: Subject identifier
            snapshot: Newly extracted snapshot

        Returns:
            TickResult; before a baseline exists it carries
            ``warnings=["insufficient_data"]`` and no score
        """
        with self._lock_for(subject_id):
            try:
                return self._run(subject_id, snapshot)
            except Exception as e:
                logger.error(f"Tick failed for subject {subject_id}: {e}", exc_info=True)
                return TickResult(
                    subject_id=subject_id,
                    timestamp=self._clock(),
                    warnings=[ReasonCode.COMPUTATION_ERROR.value],
                )

    def reset_subject(self, subject_id: str) -> None:
        """Drop all state held for a subject."""
        with self._lock_for(subject_id):
            self.aggregator.clear_subject(subject_id)
            self.detector.reset_subject(subject_id)
            self._adaptations.pop(subject_id, None)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "baselines": self.aggregator.get_stats(),
            "drift": self.detector.get_stats(),
            "confidence": self.estimator.get_stats(),
        }

    def _lock_for(self, subject_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(subject_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[subject_id] = lock
            return lock

    def _run(self, subject_id: str, snapshot: FeatureSnapshot) -> TickResult:
        warnings: List[str] = []

        update = self.aggregator.add_snapshot(subject_id, snapshot)
        if update is not None and not update.success:
            warnings.extend(update.warnings)

        baseline = self.aggregator.get_baseline(subject_id)
        if baseline is None:
            if ReasonCode.INSUFFICIENT_DATA.value not in warnings:
                warnings.append(ReasonCode.INSUFFICIENT_DATA.value)
            return TickResult(
                subject_id=subject_id,
                timestamp=snapshot.timestamp,
                baseline_update=update,
                warnings=warnings,
            )

        score = self.similarity.compute_similarity(snapshot, baseline)
        drift = self.detector.process_score(subject_id, score, baseline)

        state = self.detector.get_state(subject_id)
        recent = list(state.recent_scores) if state else [score]
        confidence = self.estimator.assess(subject_id, score, baseline, recent, drift)

        for reason in (score.reason, confidence.reason):
            if reason is not None and reason.value not in warnings:
                warnings.append(reason.value)

        result = TickResult(
            subject_id=subject_id,
            timestamp=snapshot.timestamp,
            baseline_update=update,
            baseline=baseline,
            score=score,
            drift=drift,
            confidence=confidence,
            adaptation=self._adaptations.pop(subject_id, None),
            warnings=warnings,
        )
        logger.debug(
            f"Tick complete for subject {subject_id}",
            extra={
                "subject_id": subject_id,
                "overall": score.overall,
                "is_drifting": bool(drift and drift.is_drifting),
                "confidence": confidence.overall,
            }
        )
        return result

    def _adapt_baseline(self, subject_id: str, verdict: DriftDetection) -> None:
        """Adaptation hook: re-derive the baseline within the current tick."""
        result = self.aggregator.update(subject_id)
        self._adaptations[subject_id] = result
        if result.success:
            logger.info(
                f"Baseline adapted after {verdict.drift_type.value} drift for subject {subject_id}",
                extra={
                    "subject_id": subject_id,
                    "confidence_change": result.confidence_change,
                    "significant_changes": len(result.significant_changes),
                }
            )
        else:
            logger.info(
                f"Baseline adaptation deferred for subject {subject_id}",
                extra={"subject_id": subject_id, "warnings": result.warnings}
            )
