"""
Longitudinal drift detection over similarity score history.

Each subject gets a RecognitionState holding a rolling window of scores.
Once the window fills, every new score produces a structured verdict from
trend, variability and change-point analysis of the overall scores.
"""

import logging
from collections import Counter
from typing import Callable, Dict, List, Optional, Sequence

from baseline_drift.config import Settings, get_settings
from baseline_drift.core.constants import (
    SECONDS_PER_DAY,
    DriftDirection,
    DriftSeverity,
    DriftType,
    EvolutionType,
    MedicalSignificance,
    Modality,
    MonitoringMode,
    MonitoringPhase,
)
from baseline_drift.core.errors import NotYetEvaluable
from baseline_drift.features.catalog import NEUROLOGICAL_FEATURES
from baseline_drift.models.baseline import BaselineProfile
from baseline_drift.models.drift import (
    ChangePoint,
    DriftDetection,
    PatternEvolution,
    RecognitionState,
    StabilityMetrics,
    TrendAnalysis,
    VariabilityAnalysis,
)
from baseline_drift.models.similarity import SimilarityScore
from baseline_drift.utils.stats import (
    clamp,
    linear_regression,
    mean,
    mean_abs_successive_difference,
    mean_std,
    variance,
)
from baseline_drift.utils.time import Clock, now

logger = logging.getLogger(__name__)

AdaptationHook = Callable[[str, DriftDetection], None]

# Trend strength needed to classify as decline/recovery rather than detect drift
TREND_CLASSIFICATION_CONSISTENCY = 0.6
# |direction| below this reads as plain "change"
DIRECTION_DEADBAND = 0.2

MAX_AFFECTED_MODALITIES = 3
MAX_PRIMARY_FEATURES = 5
STATISTICS_WINDOW = 10

_MODE_ORDER = [MonitoringMode.NORMAL, MonitoringMode.ENHANCED, MonitoringMode.CLINICAL]
_SEVERITY_LADDER = [
    DriftSeverity.SEVERE,
    DriftSeverity.SIGNIFICANT,
    DriftSeverity.MODERATE,
    DriftSeverity.MILD,
]


class DriftDetector:
    """Tracks per-subject score history and issues drift verdicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        adaptation_hook: Optional[AdaptationHook] = None,
    ):
        """
        Initialize detector.

        Args:
            settings: Engine settings (defaults to the cached settings)
            clock: Callable returning the current unix time
            adaptation_hook: Called with (subject_id, verdict) when a verdict
                warrants re-deriving the subject's baseline
        """
        self.settings = settings or get_settings()
        self._clock = clock or now
        self.adaptation_hook = adaptation_hook
        self._states: Dict[str, RecognitionState] = {}
        logger.info("DriftDetector initialized")

    # ─── Public API ──────────────────────────────────────────────────────

    def process_score(
        self,
        subject_id: str,
        score: SimilarityScore,
        baseline: Optional[BaselineProfile] = None,
    ) -> Optional[DriftDetection]:
        """
        Add a score to the subject's window and evaluate drift.

        Args:
            subject_id: Subject identifier
            score: Latest similarity score
            baseline: Baseline the score was computed against, if known

        Returns:
            None while the window is still filling (or if the score could not
            be processed); otherwise a DriftDetection, which may have
            ``is_drifting=False``
        """
        if not isinstance(score, SimilarityScore):
            logger.error(
                f"Rejected malformed score for subject {subject_id}",
                extra={"subject_id": subject_id, "score_type": type(score).__name__}
            )
            return None

        try:
            return self._process(subject_id, score, baseline)
        except Exception as e:
            logger.error(
                f"Drift processing failed for subject {subject_id}: {e}",
                exc_info=True
            )
            return None

    def get_state(self, subject_id: str) -> Optional[RecognitionState]:
        return self._states.get(subject_id)

    def get_drift_history(self, subject_id: str) -> List[DriftDetection]:
        state = self._states.get(subject_id)
        return list(state.drift_history) if state else []

    def reset_subject(self, subject_id: str) -> None:
        self._states.pop(subject_id, None)
        logger.info(f"Reset recognition state for subject {subject_id}")

    def get_stats(self) -> Dict[str, object]:
        states = list(self._states.values())
        modes = Counter(s.monitoring_mode.value for s in states)
        return {
            "total_subjects": len(states),
            "subjects_with_drift": sum(1 for s in states if s.statistics.drift_detection_count > 0),
            "total_drift_detections": sum(s.statistics.drift_detection_count for s in states),
            "average_stability_trend": mean([s.statistics.stability_trend for s in states]),
            "monitoring_modes": {mode.value: modes.get(mode.value, 0) for mode in MonitoringMode},
        }

    # ─── Processing ──────────────────────────────────────────────────────

    def _process(
        self,
        subject_id: str,
        score: SimilarityScore,
        baseline: Optional[BaselineProfile],
    ) -> Optional[DriftDetection]:
        state = self._states.get(subject_id)
        if state is None:
            state = RecognitionState.create(
                subject_id,
                max_scores=self.settings.max_recent_scores,
                max_drift_history=self.settings.max_drift_history,
                max_evolution_history=self.settings.max_evolution_history,
                baseline=baseline,
            )
            self._states[subject_id] = state
        elif baseline is not None:
            state.baseline = baseline

        state.recent_scores.append(score)
        state.statistics.total_sessions += 1
        state.last_check = self._clock()
        if state.phase == MonitoringPhase.UNINITIALIZED:
            state.phase = MonitoringPhase.ACCUMULATING

        verdict = None
        adapted = False
        try:
            verdict = self._detect_drift(state)
        except NotYetEvaluable:
            logger.debug(
                f"Drift window for subject {subject_id} not full yet",
                extra={"subject_id": subject_id, "scores": len(state.recent_scores)}
            )
        else:
            state.phase = MonitoringPhase.MONITORING
            state.drift_history.append(verdict)
            if verdict.is_drifting:
                state.statistics.drift_detection_count += 1
                adapted = self._handle_drift(state, verdict)
            self._update_monitoring_mode(state)
        finally:
            # The window, statistics and evolution history advance together
            self._update_statistics(state)
            state.evolution_history.append(self._pattern_evolution(state, score, adapted))

        logger.debug(
            f"Processed similarity score for subject {subject_id}",
            extra={
                "subject_id": subject_id,
                "overall": score.overall,
                "is_drifting": bool(verdict and verdict.is_drifting),
                "monitoring_mode": state.monitoring_mode.value,
            }
        )
        return verdict

    def _detect_drift(self, state: RecognitionState) -> DriftDetection:
        window = list(state.recent_scores)[-self.settings.drift_window_size:]
        if len(window) < self.settings.drift_window_size:
            raise NotYetEvaluable(f"{len(window)} of {self.settings.drift_window_size} scores")

        scores = [s.overall for s in window]
        timestamps = [s.timestamp for s in window]

        trend = self.analyze_trend(scores, timestamps)
        variability = self.analyze_variability(scores)
        change_point = self.detect_change_point(scores, timestamps)
        state.last_trend = trend

        is_drifting = self._drift_conditions_met(trend, variability, change_point)
        affected = self._affected_modalities(window)
        primary = self._primary_features(window)

        drift_type = None
        severity = DriftSeverity.MINIMAL
        significance = MedicalSignificance.NONE
        progression = False
        actions: List[str] = []
        if is_drifting:
            drift_type = self._classify(trend, variability, change_point)
            severity = self._severity(trend.magnitude, variability.volatility)
            significance, progression, actions = self._medical_significance(
                drift_type, severity, affected, primary
            )

        return DriftDetection(
            subject_id=state.subject_id,
            is_drifting=is_drifting,
            drift_type=drift_type,
            severity=severity,
            confidence=self._confidence(trend, variability, window),
            detected_at=timestamps[-1],
            affected_modalities=affected,
            primary_features=primary,
            direction=self._direction(trend.direction),
            magnitude=abs(trend.magnitude),
            rate_per_day=self._rate_per_day(scores, timestamps),
            stability_metrics=StabilityMetrics(
                variance=variability.variance,
                trend=trend.direction,
                volatility=variability.volatility,
            ),
            medical_significance=significance,
            likely_progression=progression,
            recommended_actions=actions,
            change_point=change_point,
            baseline_id=state.baseline.id if state.baseline else None,
            observation_start=timestamps[0],
            observation_end=timestamps[-1],
            sample_count=len(window),
        )

    # ─── Analyses ────────────────────────────────────────────────────────

    @staticmethod
    def analyze_trend(scores: Sequence[float], timestamps: Sequence[float]) -> TrendAnalysis:
        """
        Linear trend of scores over time.

        Direction is the daily slope scaled by 10 and clamped to [-1, 1];
        consistency is the fit's R-squared.
        """
        if len(scores) < 3:
            return TrendAnalysis(direction=0.0, magnitude=0.0, consistency=0.0, acceleration=0.0)

        fit = linear_regression(timestamps, scores)
        direction = clamp(fit.slope * SECONDS_PER_DAY * 10, -1.0, 1.0)
        magnitude = abs(scores[-1] - scores[0])

        acceleration = 0.0
        if len(scores) >= 5:
            mid = len(scores) // 2
            halves = (scores[:mid], scores[mid:])
            first_rate, second_rate = (
                (half[-1] - half[0]) / len(half) if len(half) > 1 else 0.0
                for half in halves
            )
            acceleration = second_rate - first_rate

        return TrendAnalysis(
            direction=direction,
            magnitude=magnitude,
            consistency=fit.r_squared,
            acceleration=acceleration,
        )

    @staticmethod
    def analyze_variability(scores: Sequence[float]) -> VariabilityAnalysis:
        mu, sd = mean_std(scores)
        stability = 1.0 / (1.0 + sd / mu) if mu > 0 else 0.0
        return VariabilityAnalysis(
            variance=variance(scores),
            volatility=mean_abs_successive_difference(scores),
            stability=stability,
        )

    def detect_change_point(
        self, scores: Sequence[float], timestamps: Sequence[float]
    ) -> Optional[ChangePoint]:
        """Split maximizing the before/after mean shift, if that shift is large enough."""
        n = len(scores)
        if n < 6:
            return None

        best_index = -1
        best_shift = 0.0
        for i in range(2, n - 2):
            shift = abs(mean(scores[i:]) - mean(scores[:i]))
            if shift > best_shift:
                best_shift = shift
                best_index = i

        if best_index < 0 or best_shift <= self.settings.change_point_threshold:
            return None
        return ChangePoint(
            index=best_index,
            pre_mean=mean(scores[:best_index]),
            post_mean=mean(scores[best_index:]),
            timestamp=timestamps[best_index],
        )

    def _drift_conditions_met(
        self,
        trend: TrendAnalysis,
        variability: VariabilityAnalysis,
        change_point: Optional[ChangePoint],
    ) -> bool:
        s = self.settings
        significant_trend = (
            abs(trend.direction) > s.trend_direction_threshold
            and trend.consistency > s.trend_consistency_threshold
            and trend.magnitude > s.drift_severity_thresholds["mild"]
        )
        high_variability = (
            variability.volatility > s.volatility_threshold
            or variability.stability < s.stability_floor
        )
        return significant_trend or high_variability or change_point is not None

    def _classify(
        self,
        trend: TrendAnalysis,
        variability: VariabilityAnalysis,
        change_point: Optional[ChangePoint],
    ) -> DriftType:
        s = self.settings
        if change_point is not None and change_point.shift > s.sudden_change_threshold:
            return DriftType.SUDDEN_CHANGE

        if (abs(trend.direction) > s.trend_direction_threshold
                and trend.consistency > TREND_CLASSIFICATION_CONSISTENCY):
            if trend.direction < 0:
                return DriftType.GRADUAL_DECLINE
            return DriftType.RECOVERY

        if variability.volatility > s.erratic_volatility_threshold:
            return DriftType.ERRATIC_BEHAVIOR

        return DriftType.GRADUAL_DECLINE

    def _severity(self, magnitude: float, volatility: float) -> DriftSeverity:
        change = max(magnitude, volatility)
        thresholds = self.settings.drift_severity_thresholds
        for level in _SEVERITY_LADDER:
            if change >= thresholds[level.value]:
                return level
        return DriftSeverity.MINIMAL

    def _affected_modalities(self, window: Sequence[SimilarityScore]) -> List[Modality]:
        variances = []
        for modality in Modality:
            values = [s.modalities[modality].score for s in window if modality in s.modalities]
            if values:
                variances.append((modality, variance(values)))

        variances.sort(key=lambda item: item[1], reverse=True)
        return [
            modality for modality, spread in variances[:MAX_AFFECTED_MODALITIES]
            if spread > self.settings.modality_variance_threshold
        ]

    @staticmethod
    def _primary_features(window: Sequence[SimilarityScore]) -> List[str]:
        counts = Counter(a.feature for s in window for a in s.all_anomalies())
        return [feature for feature, _ in counts.most_common(MAX_PRIMARY_FEATURES)]

    @staticmethod
    def _direction(direction: float) -> DriftDirection:
        if direction < -DIRECTION_DEADBAND:
            return DriftDirection.DETERIORATION
        if direction > DIRECTION_DEADBAND:
            return DriftDirection.IMPROVEMENT
        return DriftDirection.CHANGE

    @staticmethod
    def _rate_per_day(scores: Sequence[float], timestamps: Sequence[float]) -> float:
        if len(scores) < 2:
            return 0.0
        elapsed = timestamps[-1] - timestamps[0]
        if elapsed == 0:
            return 0.0
        return (scores[-1] - scores[0]) / elapsed * SECONDS_PER_DAY

    @staticmethod
    def _medical_significance(
        drift_type: DriftType,
        severity: DriftSeverity,
        affected: List[Modality],
        primary: List[str],
    ):
        significance = MedicalSignificance.NONE
        progression = False
        actions = []

        if severity in (DriftSeverity.SEVERE, DriftSeverity.SIGNIFICANT):
            significance = MedicalSignificance.CLINICAL_ATTENTION
            actions.append("Clinical evaluation recommended")
        elif severity == DriftSeverity.MODERATE:
            significance = MedicalSignificance.MONITORING
            actions.append("Enhanced monitoring recommended")

        if drift_type in (DriftType.GRADUAL_DECLINE, DriftType.SUDDEN_CHANGE):
            progression = True
            if significance == MedicalSignificance.NONE:
                significance = MedicalSignificance.MONITORING
            actions.append("Monitor for disease progression")

        if len([f for f in primary if f in NEUROLOGICAL_FEATURES]) >= 2:
            significance = MedicalSignificance.CLINICAL_ATTENTION
            progression = True
            actions.append("Neurological evaluation recommended")

        if len(affected) >= 3:
            if significance == MedicalSignificance.NONE:
                significance = MedicalSignificance.MONITORING
            actions.append("Multi-modal changes detected")

        return significance, progression, actions

    @staticmethod
    def _confidence(
        trend: TrendAnalysis,
        variability: VariabilityAnalysis,
        window: Sequence[SimilarityScore],
    ) -> float:
        data_quality = mean([s.confidence for s in window])
        sample_size = min(1.0, len(window) / 10)
        steadiness = max(0.0, 1.0 - variability.volatility)
        return clamp(
            trend.consistency * 0.3
            + data_quality * 0.3
            + sample_size * 0.2
            + steadiness * 0.2
        )

    # ─── State Maintenance ───────────────────────────────────────────────

    def _handle_drift(self, state: RecognitionState, verdict: DriftDetection) -> bool:
        """Log a drifting verdict and fire the adaptation hook if warranted."""
        logger.info(
            f"Drift detected for subject {state.subject_id}",
            extra={
                "subject_id": state.subject_id,
                "drift_type": verdict.drift_type.value,
                "severity": verdict.severity.value,
                "confidence": verdict.confidence,
                "medical_significance": verdict.medical_significance.value,
            }
        )
        if not self._should_adapt(state, verdict):
            return False

        state.adaptation_scheduled = True
        state.statistics.adaptation_count += 1
        logger.info(
            f"Triggering adaptation for subject {state.subject_id}",
            extra={"subject_id": state.subject_id, "drift_type": verdict.drift_type.value}
        )
        if self.adaptation_hook is None:
            return False

        try:
            self.adaptation_hook(state.subject_id, verdict)
        except Exception as e:
            logger.error(
                f"Adaptation hook failed for subject {state.subject_id}: {e}",
                exc_info=True
            )
            return False

        state.adaptation_scheduled = False
        return True

    def _should_adapt(self, state: RecognitionState, verdict: DriftDetection) -> bool:
        if verdict.is_severe or verdict.medical_significance.needs_clinician:
            return True

        needed = self.settings.consistent_drift_trigger
        recent = list(state.drift_history)[-needed:]
        matching = [
            v for v in recent
            if v.is_drifting
            and v.drift_type == verdict.drift_type
            and v.direction == verdict.direction
        ]
        return len(matching) >= needed

    def _update_monitoring_mode(self, state: RecognitionState) -> None:
        """Escalate immediately; de-escalate one level per quiet verdict."""
        recent = [v for v in list(state.drift_history)[-self.settings.mode_lookback:] if v.is_drifting]

        if any(v.medical_significance.needs_clinician for v in recent):
            target = MonitoringMode.CLINICAL
        elif len(recent) >= self.settings.enhanced_mode_drift_count or any(v.is_severe for v in recent):
            target = MonitoringMode.ENHANCED
        else:
            target = MonitoringMode.NORMAL

        current = _MODE_ORDER.index(state.monitoring_mode)
        wanted = _MODE_ORDER.index(target)
        if wanted < current:
            wanted = current - 1

        new_mode = _MODE_ORDER[wanted]
        if new_mode != state.monitoring_mode:
            logger.info(
                f"Monitoring mode for subject {state.subject_id}: "
                f"{state.monitoring_mode.value} -> {new_mode.value}",
                extra={"subject_id": state.subject_id, "monitoring_mode": new_mode.value}
            )
            state.monitoring_mode = new_mode

    @staticmethod
    def _update_statistics(state: RecognitionState) -> None:
        recent = [s.overall for s in list(state.recent_scores)[-STATISTICS_WINDOW:]]
        stats = state.statistics
        stats.avg_similarity_score = mean(recent, default=0.5)

        if len(recent) >= 5:
            latest = recent[-5:]
            older = recent[:-5]
            if older:
                stats.stability_trend = mean(latest) - mean(older)

    @staticmethod
    def _pattern_evolution(
        state: RecognitionState, score: SimilarityScore, adapted: bool
    ) -> PatternEvolution:
        if len(state.recent_scores) < 5:
            evolution_type = EvolutionType.BASELINE_ESTABLISHMENT
        elif adapted:
            evolution_type = EvolutionType.ADAPTATION_COMPLETE
        elif state.latest_verdict is not None and state.latest_verdict.is_drifting:
            evolution_type = EvolutionType.DRIFT_DETECTED
        else:
            evolution_type = EvolutionType.STABLE_PERIOD

        return PatternEvolution(
            subject_id=state.subject_id,
            timepoint=score.timestamp,
            evolution_type=evolution_type,
            dominant_patterns={
                "neuromotor": (
                    score.modality_score(Modality.KEYBOARD) * 0.5
                    + score.modality_score(Modality.MOUSE) * 0.5
                ),
                "cognitive": score.modality_score(Modality.FOCUS),
                "temporal": score.modality_score(Modality.COMPOSITE),
                "behavioral": score.overall,
            },
            change_magnitude=1.0 - score.overall,
            change_direction=score.interpretation.overall_assessment,
            change_acceleration=state.last_trend.acceleration if state.last_trend else 0.0,
            assessment_confidence=score.confidence,
        )
