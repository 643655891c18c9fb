"""Tests for engine settings."""

import json
import logging

import pytest
from pydantic import ValidationError

from baseline_drift.config import Settings, get_settings
from baseline_drift.core.logging_config import CustomJsonFormatter, setup_logging


class TestSettings:
    """Test settings defaults, overrides and validation."""

    def test_defaults(self):
        """Test documented default values."""
        settings = Settings()
        assert settings.min_snapshots_for_baseline == 20
        assert settings.drift_window_size == 10
        assert settings.max_recent_scores == 20
        assert settings.modality_weights["keyboard"] == 0.3
        assert settings.anomaly_thresholds["critical"] == 3.0
        assert settings.confidence_weights["data_quality"] == 0.25
        assert settings.min_quality_snapshots == pytest.approx(14.0)

    def test_environment_override(self, monkeypatch):
        """Test that BASELINE_DRIFT_* variables override defaults."""
        monkeypatch.setenv("BASELINE_DRIFT_DRIFT_WINDOW_SIZE", "15")
        assert Settings().drift_window_size == 15

    def test_is_production(self):
        """Test production detection."""
        assert Settings(environment="Production").is_production
        assert not Settings(environment="development").is_production

    def test_window_minimum(self):
        """Test that windows below three scores are rejected."""
        with pytest.raises(ValidationError):
            Settings(drift_window_size=2)

    def test_missing_modality_weight_rejected(self):
        """Test that every modality needs a weight."""
        with pytest.raises(ValidationError):
            Settings(modality_weights={"keyboard": 1.0})

    def test_negative_weight_rejected(self):
        """Test that negative confidence weights are rejected."""
        weights = {
            "data_quality": -0.1,
            "baseline_reliability": 0.25,
            "feature_coverage": 0.2,
            "temporal_consistency": 0.15,
            "medical_validity": 0.15,
        }
        with pytest.raises(ValidationError):
            Settings(confidence_weights=weights)

    def test_anomaly_thresholds_must_increase(self):
        """Test that anomaly z-thresholds must be strictly increasing."""
        with pytest.raises(ValidationError):
            Settings(anomaly_thresholds={"low": 2.0, "medium": 1.5, "high": 2.5, "critical": 3.0})

    def test_drift_thresholds_must_increase(self):
        """Test that drift severity cutoffs must be strictly increasing."""
        with pytest.raises(ValidationError):
            Settings(drift_severity_thresholds={
                "minimal": 0.05,
                "mild": 0.10,
                "moderate": 0.40,
                "significant": 0.35,
                "severe": 0.50,
            })

    def test_sudden_change_not_below_change_point(self):
        """Test cross-field validation of change thresholds."""
        with pytest.raises(ValidationError):
            Settings(change_point_threshold=0.4, sudden_change_threshold=0.3)

    def test_get_settings_cached(self):
        """Test that get_settings returns one shared instance."""
        assert get_settings() is get_settings()


class TestLoggingSetup:
    """Test logging configuration."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_formatter_in_production(self):
        """Test that production logs are JSON with service fields."""
        settings = Settings(environment="production", log_level="WARNING")
        setup_logging(settings)

        handler = logging.getLogger().handlers[-1]
        assert isinstance(handler.formatter, CustomJsonFormatter)

        record = logging.LogRecord("baseline_drift.test", logging.WARNING, __file__, 1,
                                   "drift detected", None, None)
        payload = json.loads(handler.formatter.format(record))
        assert payload["message"] == "drift detected"
        assert payload["service"] == "Baseline Drift Engine"
        assert payload["environment"] == "production"

    def test_repeated_setup_does_not_stack_handlers(self):
        """Test that setup_logging replaces its own handler."""
        settings = Settings(environment="test", log_level="DEBUG")
        setup_logging(settings)
        setup_logging(settings)

        own = [h for h in logging.getLogger().handlers if getattr(h, "_baseline_drift", False)]
        assert len(own) == 1
        assert logging.getLogger().level == logging.DEBUG
