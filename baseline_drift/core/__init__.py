"""Core module initialization."""

from baseline_drift.core.constants import (
    DriftType,
    Modality,
    MonitoringMode,
    ReasonCode,
    Severity,
)
from baseline_drift.core.errors import BaselineDriftError
from baseline_drift.core.logging_config import get_logger, setup_logging

__all__ = [
    "DriftType",
    "Modality",
    "MonitoringMode",
    "ReasonCode",
    "Severity",
    "BaselineDriftError",
    "get_logger",
    "setup_logging",
]
