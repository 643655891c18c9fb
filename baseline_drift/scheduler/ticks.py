"""
APScheduler configuration for per-subject monitoring ticks.

Each subject gets its own interval job (``tick_<subject_id>``). Jobs never
overlap for the same subject (``max_instances=1``) and missed runs are
coalesced into one, so a slow tick delays the next rather than stacking.
Stopping a subject means removing its job.
"""

import logging
from typing import Callable, Iterable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from baseline_drift.core.pipeline import MonitoringPipeline, TickResult
from baseline_drift.models.snapshot import FeatureSnapshot

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[str], Optional[FeatureSnapshot]]


def job_id_for(subject_id: str) -> str:
    return f"tick_{subject_id}"


def build_scheduler(
    pipeline: MonitoringPipeline,
    snapshot_source: SnapshotSource,
    subject_ids: Iterable[str],
    interval_seconds: Optional[float] = None,
) -> BackgroundScheduler:
    """
    Build a scheduler with one tick job per subject.

    Args:
        pipeline: Pipeline the jobs feed
        snapshot_source: Returns the subject's next snapshot, or None to skip
        subject_ids: Subjects to monitor
        interval_seconds: Tick interval (defaults to settings.tick_interval_seconds)

    Returns:
        BackgroundScheduler: Configured scheduler ready to start
    """
    interval = interval_seconds or pipeline.settings.tick_interval_seconds
    scheduler = BackgroundScheduler(timezone="UTC")

    subjects = list(subject_ids)
    for subject_id in subjects:
        scheduler.add_job(
            func=run_tick,
            trigger=IntervalTrigger(seconds=interval),
            args=[pipeline, snapshot_source, subject_id],
            id=job_id_for(subject_id),
            name=f"Monitor {subject_id}",
            replace_existing=True,
            max_instances=1,  # ticks for one subject never overlap
            coalesce=True,
        )

    logger.info(f"APScheduler configured with {len(subjects)} subject tick jobs every {interval}s")
    return scheduler


def stop_subject(scheduler: BackgroundScheduler, subject_id: str) -> bool:
    """Stop monitoring a subject. Returns False if it had no job."""
    try:
        scheduler.remove_job(job_id_for(subject_id))
    except JobLookupError:
        return False
    logger.info(f"Stopped monitoring subject {subject_id}")
    return True


def run_tick(
    pipeline: MonitoringPipeline,
    snapshot_source: SnapshotSource,
    subject_id: str,
) -> Optional[TickResult]:
    """
    Scheduled job: feed the subject's next snapshot through the pipeline.

    Returns None when the source has nothing new or fails.
    """
    try:
        snapshot = snapshot_source(subject_id)
    except Exception as e:
        logger.error(f"Snapshot source failed for subject {subject_id}: {e}", exc_info=True)
        return None

    if snapshot is None:
        logger.debug(f"No new snapshot for subject {subject_id}; tick skipped")
        return None

    result = pipeline.tick(subject_id, snapshot)
    if result.drift is not None and result.drift.is_drifting:
        logger.info(
            f"Drift verdict for subject {subject_id}: {result.drift.drift_type.value}",
            extra={
                "subject_id": subject_id,
                "severity": result.drift.severity.value,
                "medical_significance": result.drift.medical_significance.value,
            }
        )
    return result
