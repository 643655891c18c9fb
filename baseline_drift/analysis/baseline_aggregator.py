"""
Builds and adapts per-subject behavioral baselines.

Snapshots are buffered per subject (bounded, oldest evicted first). Once
enough quality history exists a BaselineProfile is aggregated from it using
robust statistics; later the profile is re-derived from recency-decayed
history.
"""

import dataclasses
import logging
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Deque, Dict, Iterable, List, Optional, Sequence

from baseline_drift.config import Settings, get_settings
from baseline_drift.core.constants import (
    CreationMethod,
    DataQualityTier,
    MedicalRelevanceTier,
    Modality,
    ReasonCode,
)
from baseline_drift.core.errors import (
    BaselineDriftError,
    InsufficientDataError,
    InsufficientRecentDataError,
    NoSnapshotDataError,
    UpdateFailedError,
)
from baseline_drift.features.catalog import SESSION_DURATION_SOURCES, STABILITY_FEATURES
from baseline_drift.models.baseline import (
    BaselineMetadata,
    BaselineProfile,
    BaselineStatistics,
    BaselineUpdateResult,
    EnvironmentalContext,
    FeatureVariability,
    TemporalCharacteristics,
)
from baseline_drift.models.snapshot import FeatureSnapshot
from baseline_drift.utils.stats import clamp, mean, mean_std, sigmoid, trimmed_mean
from baseline_drift.utils.time import Clock, age_in_days, days_between, now

logger = logging.getLogger(__name__)

# Minimum valid values before a feature gets a point estimate or variability record
MIN_FEATURE_SAMPLES = 3

# Automatic update looks at this many of the most recent buffered snapshots
RECENT_LOOKBACK = 20

FeatureValues = Dict[Modality, Dict[str, List[float]]]


def _collect_values(snapshots: Iterable[FeatureSnapshot]) -> FeatureValues:
    """Group observed values by modality and feature, preserving order."""
    collected: FeatureValues = defaultdict(lambda: defaultdict(list))
    for snapshot in snapshots:
        for modality, values in snapshot.features.items():
            for feature, value in values.items():
                collected[modality][feature].append(value)
    return collected


class BaselineAggregator:
    """Owns per-subject snapshot buffers and the baselines built from them."""

    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None):
        """
        Initialize the aggregator.

        Args:
            settings: Engine settings (defaults to the cached settings)
            clock: Callable returning the current unix time; drives decay and
                update scheduling
        """
        self.settings = settings or get_settings()
        self._clock = clock or now
        self._snapshots: Dict[str, Deque[FeatureSnapshot]] = {}
        self._baselines: Dict[str, BaselineProfile] = {}
        logger.info("BaselineAggregator initialized")

    # ─── Buffer ──────────────────────────────────────────────────────────

    def add_snapshot(
        self, subject_id: str, snapshot: FeatureSnapshot
    ) -> Optional[BaselineUpdateResult]:
        """
        Append a snapshot to the subject's buffer.

        Once the buffer holds at least ``min_snapshots_for_baseline`` entries
        this also evaluates whether the baseline should be created or updated.

        Args:
            subject_id: Subject identifier
            snapshot: Newly extracted snapshot

        Returns:
            Result of the create/update attempt if one was made, else None
        """
        buffer = self._snapshots.get(subject_id)
        if buffer is None:
            buffer = deque(maxlen=self.settings.max_snapshots_per_subject)
            self._snapshots[subject_id] = buffer
        buffer.append(snapshot)

        logger.debug(
            f"Added snapshot for subject {subject_id}",
            extra={
                "subject_id": subject_id,
                "session_id": snapshot.session_id,
                "quality": snapshot.quality,
                "total_snapshots": len(buffer),
            }
        )

        if len(buffer) < self.settings.min_snapshots_for_baseline:
            return None
        return self._evaluate_update(subject_id)

    def get_snapshots(self, subject_id: str) -> List[FeatureSnapshot]:
        return list(self._snapshots.get(subject_id, ()))

    def get_baseline(self, subject_id: str) -> Optional[BaselineProfile]:
        return self._baselines.get(subject_id)

    def clear_subject(self, subject_id: str) -> None:
        """Forget a subject's buffer and baseline."""
        self._snapshots.pop(subject_id, None)
        self._baselines.pop(subject_id, None)
        logger.info(f"Cleared baseline state for subject {subject_id}")

    # ─── Create / Update ─────────────────────────────────────────────────

    def create_initial(self, subject_id: str) -> BaselineUpdateResult:
        """
        Build the first baseline from quality-passing buffered snapshots.

        Args:
            subject_id: Subject identifier

        Returns:
            BaselineUpdateResult; on failure ``warnings`` holds
            ``insufficient_data``
        """
        try:
            baseline = self._create_initial(subject_id)
        except BaselineDriftError as e:
            logger.warning(
                f"Baseline creation skipped for subject {subject_id}: {e}",
                extra={"subject_id": subject_id, "reason": e.reason.value}
            )
            return BaselineUpdateResult.failure(e.reason)
        except Exception as e:
            logger.error(
                f"Unexpected error creating baseline for subject {subject_id}: {e}",
                exc_info=True
            )
            return BaselineUpdateResult.failure(ReasonCode.UPDATE_FAILED)

        self._baselines[subject_id] = baseline
        logger.info(
            f"Initial baseline created for subject {subject_id}",
            extra={
                "subject_id": subject_id,
                "confidence": baseline.confidence,
                "stability": baseline.stability,
                "sample_count": baseline.statistics.sample_count,
            }
        )
        return BaselineUpdateResult(
            success=True,
            confidence_change=baseline.confidence,
            stability_change=baseline.stability,
            significant_changes=["baseline_created"],
            baseline=baseline,
        )

    def update(self, subject_id: str) -> BaselineUpdateResult:
        """
        Adaptively re-derive the subject's baseline.

        Delegates to :meth:`create_initial` when no baseline exists yet.
        Otherwise requires enough new quality snapshots since the baseline's
        observation end, then re-aggregates the recency-decayed buffer.

        Args:
            subject_id: Subject identifier

        Returns:
            BaselineUpdateResult with confidence/stability deltas and the
            significant feature changes, or a failure carrying one of
            ``no_snapshot_data``, ``insufficient_recent_data``, ``update_failed``
        """
        current = self._baselines.get(subject_id)
        if current is None:
            return self.create_initial(subject_id)

        try:
            updated = self._adaptive_update(subject_id, current)
        except BaselineDriftError as e:
            logger.info(
                f"Baseline update skipped for subject {subject_id}: {e}",
                extra={"subject_id": subject_id, "reason": e.reason.value}
            )
            return BaselineUpdateResult.failure(e.reason)
        except Exception as e:
            logger.error(
                f"Unexpected error updating baseline for subject {subject_id}: {e}",
                exc_info=True
            )
            return BaselineUpdateResult.failure(ReasonCode.UPDATE_FAILED)

        confidence_change = updated.confidence - current.confidence
        stability_change = updated.stability - current.stability
        significant_changes = self._detect_significant_changes(current, updated)
        self._baselines[subject_id] = updated

        logger.info(
            f"Baseline updated for subject {subject_id}",
            extra={
                "subject_id": subject_id,
                "confidence_change": confidence_change,
                "stability_change": stability_change,
                "significant_changes": len(significant_changes),
            }
        )
        return BaselineUpdateResult(
            success=True,
            confidence_change=confidence_change,
            stability_change=stability_change,
            significant_changes=significant_changes,
            baseline=updated,
        )

    def should_update(self, subject_id: str) -> bool:
        """
        Decide whether an existing baseline is due for an adaptive update.

        Due when ``auto_update_interval_days`` have passed since the last
        update, or enough recent high-quality snapshots arrived after the
        baseline's observation end.
        """
        baseline = self._baselines.get(subject_id)
        buffer = self._snapshots.get(subject_id)
        if baseline is None or not buffer:
            return False

        elapsed_days = days_between(baseline.updated_at, self._clock())
        if elapsed_days >= self.settings.auto_update_interval_days:
            return True

        recent = list(buffer)[-RECENT_LOOKBACK:]
        new_quality = [
            s for s in recent
            if s.timestamp > baseline.observation_end
            and s.quality >= self.settings.auto_update_quality_threshold
        ]
        return len(new_quality) >= self.settings.auto_update_min_new_snapshots

    def get_stats(self) -> Dict[str, float]:
        """Summary counts across all subjects."""
        buffer_sizes = [len(b) for b in self._snapshots.values()]
        return {
            "total_baselines": len(self._baselines),
            "total_subjects": len(self._snapshots),
            "average_snapshots": mean(buffer_sizes),
            "high_confidence_baselines": sum(
                1 for b in self._baselines.values() if b.confidence >= 0.8
            ),
        }

    # ─── Internals ───────────────────────────────────────────────────────

    def _evaluate_update(self, subject_id: str) -> Optional[BaselineUpdateResult]:
        if subject_id not in self._baselines:
            return self.create_initial(subject_id)

        if self.should_update(subject_id):
            logger.debug(
                f"Triggering baseline update for subject {subject_id}",
                extra={"subject_id": subject_id}
            )
            return self.update(subject_id)
        return None

    def _create_initial(self, subject_id: str) -> BaselineProfile:
        snapshots = self._snapshots.get(subject_id)
        required = self.settings.min_snapshots_for_baseline
        if not snapshots or len(snapshots) < required:
            raise InsufficientDataError(
                f"{len(snapshots or ())} snapshots buffered, {required} required"
            )

        threshold = self.settings.initial_quality_threshold
        quality_snapshots = [s for s in snapshots if s.quality >= threshold]
        if len(quality_snapshots) < self.settings.min_quality_snapshots:
            raise InsufficientDataError(
                f"{len(quality_snapshots)} of {len(snapshots)} snapshots reach quality {threshold}"
            )
        if len(quality_snapshots) < required:
            raise InsufficientDataError(
                f"{len(quality_snapshots)} quality snapshots, {required} required"
            )

        return self._build_profile(subject_id, quality_snapshots, CreationMethod.INITIAL)

    def _adaptive_update(self, subject_id: str, current: BaselineProfile) -> BaselineProfile:
        snapshots = self._snapshots.get(subject_id)
        if not snapshots:
            raise NoSnapshotDataError(f"no buffered snapshots for subject {subject_id}")

        recent = [
            s for s in snapshots
            if s.timestamp > current.observation_end
            and s.quality >= self.settings.update_quality_threshold
        ]
        if len(recent) < self.settings.min_recent_snapshots_for_update:
            raise InsufficientRecentDataError(
                f"{len(recent)} new quality snapshots, "
                f"{self.settings.min_recent_snapshots_for_update} required"
            )

        weighted = self._apply_decay(snapshots)
        if len(weighted) < self.settings.min_snapshots_for_baseline:
            raise UpdateFailedError(
                f"{len(weighted)} snapshots survive recency decay, "
                f"{self.settings.min_snapshots_for_baseline} required"
            )
        return self._build_profile(subject_id, weighted, CreationMethod.ADAPTIVE)

    def _apply_decay(self, snapshots: Iterable[FeatureSnapshot]) -> List[FeatureSnapshot]:
        """Scale snapshot quality by daily exponential decay and drop stale ones."""
        reference = self._clock()
        decayed = []
        for snapshot in snapshots:
            age = age_in_days(snapshot.timestamp, reference)
            if age >= self.settings.decay_horizon_days:
                continue
            quality = snapshot.quality * self.settings.decay_factor_per_day ** age
            if quality <= self.settings.decayed_quality_floor:
                continue
            decayed.append(dataclasses.replace(snapshot, quality=quality))
        return decayed

    def _build_profile(
        self,
        subject_id: str,
        snapshots: Sequence[FeatureSnapshot],
        method: CreationMethod,
    ) -> BaselineProfile:
        ordered = sorted(snapshots, key=lambda s: s.timestamp)
        values = _collect_values(ordered)

        coverage = self._compute_coverage(values, len(ordered))
        statistics = BaselineStatistics(
            sample_count=len(ordered),
            session_count=len({s.session_id for s in ordered}),
            total_duration=sum(self._session_duration(s) for s in ordered),
            confidence=self._compute_confidence(ordered, coverage),
            stability=self._compute_stability(ordered),
            coverage=coverage,
        )

        created_at = self._clock()
        return BaselineProfile(
            id=f"baseline_{subject_id}_{uuid.uuid4().hex[:12]}",
            subject_id=subject_id,
            created_at=created_at,
            features=self._aggregate_features(values),
            variability=self._compute_variability(values),
            statistics=statistics,
            temporal=self._compute_temporal(ordered),
            environment=self._aggregate_environment(ordered),
            metadata=BaselineMetadata(
                creation_method=method,
                data_quality=self._assess_data_quality(
                    statistics.confidence, statistics.stability, statistics.sample_count
                ),
                medical_relevance=self._assess_medical_relevance(
                    statistics.confidence, statistics.stability
                ),
                last_updated=created_at,
            ),
            observation_end=ordered[-1].timestamp,
        )

    def _aggregate_features(self, values: FeatureValues) -> Dict[Modality, Dict[str, float]]:
        result = {}
        for modality, features in values.items():
            estimates = {
                name: trimmed_mean(observed, self.settings.trim_fraction)
                for name, observed in features.items()
                if len(observed) >= MIN_FEATURE_SAMPLES
            }
            if estimates:
                result[modality] = estimates
        return result

    def _compute_variability(
        self, values: FeatureValues
    ) -> Dict[Modality, Dict[str, FeatureVariability]]:
        sigmas = self.settings.variability_bound_sigmas
        result = {}
        for modality, features in values.items():
            entries = {}
            for name, observed in features.items():
                if len(observed) < MIN_FEATURE_SAMPLES:
                    continue
                mu, sd = mean_std(observed)
                entries[name] = FeatureVariability(
                    mean=mu,
                    std=sd,
                    lower_bound=max(0.0, mu - sigmas * sd),
                    upper_bound=max(0.0, mu + sigmas * sd),
                )
            if entries:
                result[modality] = entries
        return result

    @staticmethod
    def _compute_coverage(values: FeatureValues, sample_count: int) -> Dict[Modality, Dict[str, bool]]:
        threshold = max(MIN_FEATURE_SAMPLES, sample_count * 0.3)
        return {
            modality: {name: len(observed) >= threshold for name, observed in features.items()}
            for modality, features in values.items()
        }

    def _compute_confidence(
        self,
        snapshots: Sequence[FeatureSnapshot],
        coverage: Dict[Modality, Dict[str, bool]],
    ) -> float:
        """Weighted blend of mean quality, feature coverage and sample size."""
        quality_score = mean([s.quality for s in snapshots])

        flags = [flag for features in coverage.values() for flag in features.values()]
        coverage_score = sum(flags) / len(flags) if flags else 0.0

        sample_score = sigmoid(
            (len(snapshots) - self.settings.confidence_sample_midpoint)
            / self.settings.confidence_sample_scale
        )
        return clamp(quality_score * 0.4 + coverage_score * 0.35 + sample_score * 0.25)

    def _compute_stability(self, snapshots: Sequence[FeatureSnapshot]) -> float:
        """Agreement between first-half and second-half estimates of key features."""
        if len(snapshots) < 10:
            return 0.5

        mid = len(snapshots) // 2
        first = self._aggregate_features(_collect_values(snapshots[:mid]))
        second = self._aggregate_features(_collect_values(snapshots[mid:]))

        scores = []
        for modality, feature in STABILITY_FEATURES:
            before = first.get(modality, {}).get(feature)
            after = second.get(modality, {}).get(feature)
            if before is None or after is None or before <= 0:
                continue
            relative = abs(after - before) / before
            scores.append(max(0.0, 1.0 - relative * 2))

        return clamp(mean(scores, default=0.5))

    @staticmethod
    def _session_duration(snapshot: FeatureSnapshot) -> float:
        for modality, feature in SESSION_DURATION_SOURCES:
            value = snapshot.get(modality, feature)
            if value:
                return value
        return 0.0

    def _compute_temporal(self, snapshots: Sequence[FeatureSnapshot]) -> TemporalCharacteristics:
        hourly = [0] * 24
        weekly = [0] * 7
        durations = []

        for snapshot in snapshots:
            duration = self._session_duration(snapshot)
            if duration > 0:
                durations.append(duration)

            moment = datetime.fromtimestamp(snapshot.timestamp, tz=timezone.utc)
            hourly[moment.hour] += 1
            weekly[moment.weekday()] += 1

        length_mean, length_std = mean_std(durations)
        if len(durations) < 2:
            length_std = 0.0

        window = (0, 23)
        peak = max(hourly)
        if peak > 0:
            active = [hour for hour, count in enumerate(hourly) if count >= peak * 0.7]
            window = (min(active), max(active))

        return TemporalCharacteristics(
            hourly_activity=hourly,
            weekly_activity=weekly,
            session_length_mean=length_mean,
            session_length_std=length_std,
            optimal_window=window,
        )

    @staticmethod
    def _classify_condition(quality: float) -> str:
        if quality > 0.8:
            return "optimal"
        if quality > 0.6:
            return "good"
        if quality > 0.4:
            return "fair"
        return "poor"

    def _aggregate_environment(self, snapshots: Sequence[FeatureSnapshot]) -> EnvironmentalContext:
        device = {}
        conditions: Dict[str, List[float]] = {}
        for snapshot in snapshots:
            # Later snapshots win
            device.update(snapshot.environment)
            condition = self._classify_condition(snapshot.quality)
            conditions.setdefault(condition, []).append(snapshot.quality)

        return EnvironmentalContext(
            device_characteristics=device,
            typical_conditions=list(conditions),
            performance_modifiers={name: mean(q) for name, q in conditions.items()},
        )

    @staticmethod
    def _assess_data_quality(confidence: float, stability: float, sample_count: int) -> DataQualityTier:
        score = confidence * 0.5 + stability * 0.3 + min(1.0, sample_count / 100) * 0.2
        if score >= 0.8:
            return DataQualityTier.EXCELLENT
        if score >= 0.6:
            return DataQualityTier.HIGH
        if score >= 0.4:
            return DataQualityTier.MEDIUM
        return DataQualityTier.LOW

    @staticmethod
    def _assess_medical_relevance(confidence: float, stability: float) -> MedicalRelevanceTier:
        if confidence >= 0.8 and stability >= 0.8:
            return MedicalRelevanceTier.DIAGNOSTIC
        if confidence >= 0.6 and stability >= 0.6:
            return MedicalRelevanceTier.MONITORING
        return MedicalRelevanceTier.SCREENING

    def _detect_significant_changes(
        self, old: BaselineProfile, new: BaselineProfile
    ) -> List[str]:
        changes = []
        for key, threshold in self.settings.significant_change_thresholds.items():
            modality_name, _, feature = key.partition(".")
            try:
                modality = Modality(modality_name)
            except ValueError:
                logger.warning(f"Ignoring significant-change threshold for unknown modality: {key}")
                continue

            before = old.get(modality, feature)
            after = new.get(modality, feature)
            if before is None or after is None or before <= 0:
                continue
            if abs(after - before) / before >= threshold:
                changes.append(f"{modality.value}_{feature}_change")
        return changes
