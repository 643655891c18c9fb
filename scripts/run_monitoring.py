"""Replay a recorded snapshot stream through the monitoring pipeline."""

import argparse
import json
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from baseline_drift.config import Settings
from baseline_drift.core.logging_config import setup_logging
from baseline_drift.core.pipeline import MonitoringPipeline
from baseline_drift.models.snapshot import FeatureSnapshot
from baseline_drift.utils.time import StreamClock, timestamp_to_datetime


def log_level_for(verbose: bool = False, debug: bool = False) -> str:
    """Map verbosity flags to a log level."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return "WARNING"


def read_snapshots(path: Path):
    """Yield (line number, snapshot) for each parseable line of a JSONL file."""
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield line_number, FeatureSnapshot.from_dict(json.loads(line))
            except (json.JSONDecodeError, ValueError) as e:
                print(f"  ⚠️  line {line_number}: skipped ({e})")


def print_tick(line_number: int, result, verbose: bool = False):
    """Pretty-print one tick."""
    when = timestamp_to_datetime(result.timestamp).strftime("%Y-%m-%d %H:%M")
    if result.score is None:
        print(f"  [{line_number:>4}] {when}  building baseline ({', '.join(result.warnings)})")
        return

    line = (
        f"  [{line_number:>4}] {when}  "
        f"similarity={result.score.overall:.3f}  "
        f"confidence={result.confidence.overall:.3f}"
    )
    if result.drift is None:
        line += "  drift=pending"
    elif result.drift.is_drifting:
        line += (
            f"  drift={result.drift.drift_type.value}"
            f" ({result.drift.severity.value}, {result.drift.direction.value})"
        )
    else:
        line += "  drift=none"
    print(line)

    if verbose:
        for concern in result.score.interpretation.primary_concerns:
            print(f"         - {concern}")
        if result.drift is not None:
            for action in result.drift.recommended_actions:
                print(f"         → {action}")
        if result.adaptation is not None and result.adaptation.success:
            print("         ↺ baseline adapted")


def main():
    """Replay snapshots for one subject."""
    parser = argparse.ArgumentParser(
        description="Replay a JSON-lines snapshot stream through the monitoring pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_monitoring.py subject_001 sessions.jsonl
  python scripts/run_monitoring.py subject_001 sessions.jsonl --verbose
  python scripts/run_monitoring.py subject_001 sessions.jsonl --window 15 --debug
        """,
    )

    parser.add_argument("subject_id", help="Subject the stream belongs to")
    parser.add_argument("snapshots", type=Path, help="JSON-lines file, one snapshot per line")
    parser.add_argument(
        "--window",
        "-w",
        type=int,
        default=None,
        help="Drift detection window size (overrides settings)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output (show concerns and actions)",
    )
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    overrides = {"log_level": log_level_for(verbose=args.verbose, debug=args.debug)}
    if args.window is not None:
        overrides["drift_window_size"] = args.window
    settings = Settings(**overrides)
    setup_logging(settings)

    if not args.snapshots.is_file():
        print(f"❌ Snapshot file not found: {args.snapshots}")
        return 1

    clock = StreamClock()
    pipeline = MonitoringPipeline(settings=settings, clock=clock)

    print(f"\n🔍 Replaying {args.snapshots} for subject: {args.subject_id}\n")

    ticks = 0
    drifting = 0
    for line_number, snapshot in read_snapshots(args.snapshots):
        clock.advance(snapshot.timestamp)
        result = pipeline.tick(args.subject_id, snapshot)
        print_tick(line_number, result, verbose=args.verbose)
        ticks += 1
        if result.drift is not None and result.drift.is_drifting:
            drifting += 1

    if ticks == 0:
        print("No usable snapshots.\n")
        return 1

    state = pipeline.detector.get_state(args.subject_id)
    print(f"\nProcessed {ticks} snapshot(s); {drifting} drifting verdict(s).")
    if state is not None:
        print(f"Monitoring mode: {state.monitoring_mode.value}")
        print(f"Average similarity (last 10): {state.statistics.avg_similarity_score:.3f}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
