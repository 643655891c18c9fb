"""
Scheduler package for periodic pipeline ticks.

One APScheduler interval job per monitored subject drives
MonitoringPipeline.tick with the subject's next snapshot.
"""

from baseline_drift.scheduler.ticks import build_scheduler, stop_subject

__all__ = ["build_scheduler", "stop_subject"]
