"""Tests for the replay script."""

import importlib.util
import json
import logging
import sys
from pathlib import Path

import pytest

from conftest import DWELL_OFFSETS, HOUR, T0

SCRIPT = Path(__file__).parent.parent / "scripts" / "run_monitoring.py"


@pytest.fixture
def run_monitoring():
    spec = importlib.util.spec_from_file_location("run_monitoring", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def stream(tmp_path):
    """JSON-lines file with 25 hourly sessions and one corrupt line."""
    lines = [
        json.dumps({
            "timestamp": T0 + i * HOUR,
            "sessionId": f"session_{i:03d}",
            "keyboard": {"meanDwell": 120.0 + DWELL_OFFSETS[i % len(DWELL_OFFSETS)]},
            "quality": 0.8,
        })
        for i in range(25)
    ]
    lines.insert(3, "{not json")
    path = tmp_path / "sessions.jsonl"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TestReplay:
    """Test replaying a recorded stream."""

    def test_replay_summary(self, run_monitoring, stream, monkeypatch, capsys):
        """Test that every parseable line is ticked and bad lines are skipped."""
        monkeypatch.setattr(sys, "argv", ["run_monitoring.py", "subject_001", str(stream)])

        assert run_monitoring.main() == 0
        out = capsys.readouterr().out
        assert "line 4: skipped" in out
        assert "Processed 25 snapshot(s)" in out
        assert "Monitoring mode: normal" in out

    def test_logging_configured_from_flags(self, run_monitoring, stream, monkeypatch):
        """Test that the engine logging setup is applied at the flag's level."""
        monkeypatch.setattr(
            sys, "argv", ["run_monitoring.py", "subject_001", str(stream), "--verbose"]
        )
        run_monitoring.main()

        root = logging.getLogger()
        own = [h for h in root.handlers if getattr(h, "_baseline_drift", False)]
        assert len(own) == 1
        assert root.level == logging.INFO

    def test_missing_file(self, run_monitoring, tmp_path, monkeypatch):
        """Test the exit code for a missing snapshot file."""
        missing = tmp_path / "absent.jsonl"
        monkeypatch.setattr(sys, "argv", ["run_monitoring.py", "subject_001", str(missing)])
        assert run_monitoring.main() == 1

    def test_log_level_for_flags(self, run_monitoring):
        """Test the verbosity to level mapping."""
        assert run_monitoring.log_level_for() == "WARNING"
        assert run_monitoring.log_level_for(verbose=True) == "INFO"
        assert run_monitoring.log_level_for(verbose=True, debug=True) == "DEBUG"
