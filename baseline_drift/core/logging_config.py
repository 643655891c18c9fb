"""Logging configuration for the engine."""

import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from baseline_drift.config import Settings, get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def __init__(self, *args, settings: Optional[Settings] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._settings = settings or get_settings()

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = self._settings.app_name
        log_record["environment"] = self._settings.environment
        log_record.setdefault("level", record.levelname)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure engine logging."""
    settings = settings or get_settings()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.log_level)

    # JSON formatting for production, simple format for development
    if settings.is_production:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            timestamp=True,
            settings=settings,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    # Replace handlers from a previous call instead of stacking duplicates
    for handler in list(root_logger.handlers):
        if getattr(handler, "_baseline_drift", False):
            root_logger.removeHandler(handler)
    console_handler._baseline_drift = True
    root_logger.addHandler(console_handler)

    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
