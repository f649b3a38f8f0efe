"""Command-line interface for the conversation pipeline.

Usage:
    chatlog-pipeline logs.json [--tier full] [--sort recency] [--log-level INFO]
    chatlog-pipeline - < logs.json
"""

import argparse
import json
import logging
import sys
import warnings
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from chatlog_pipeline.config import CapabilityTier
from chatlog_pipeline.errors import AnomalyWarning
from chatlog_pipeline.export import build_export_rows, export_metadata
from chatlog_pipeline.logging_manager import configure_logging
from chatlog_pipeline.metrics import assess_data_quality, performance_recommendations
from chatlog_pipeline.models import AppointmentLink
from chatlog_pipeline.pipeline import ConversationPipeline, PipelineResult
from chatlog_pipeline.ranking import SortKey

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _read_json(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    with open(Path(source), encoding="utf-8") as f:
        return json.load(f)


def parse_appointments(data: Any) -> dict[str, AppointmentLink]:
    """
    Read appointment links from a JSON mapping.

    Values may be booleans or appointment id strings; a string marks the
    session as linked to that appointment.

    Raises:
        ValueError: If the data is not a mapping
    """
    if not isinstance(data, dict):
        raise ValueError("Appointments must be a JSON object keyed by session id")

    links = {}
    for session_id, value in data.items():
        if isinstance(value, str):
            links[str(session_id)] = AppointmentLink(linked=bool(value), appointment_id=value or None)
        else:
            links[str(session_id)] = AppointmentLink(linked=bool(value))
    return links


def build_report(result: PipelineResult, now: datetime | None = None) -> dict[str, Any]:
    """Assemble the JSON report printed by the CLI."""
    return {
        "metadata": export_metadata(result.records, result.tier, now),
        "conversations": build_export_rows(result.records, result.tier),
        "metrics": asdict(result.metrics),
        "stats": asdict(result.stats) if result.stats is not None else None,
        "quality": asdict(assess_data_quality(result.records)),
        "recommendations": performance_recommendations(result.metrics, result.records),
        "validation_errors": list(result.validation.errors),
        "errors": [asdict(e) for e in result.errors],
    }


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatlog-pipeline",
        description="Aggregate, enrich and rank chat log conversations",
    )
    parser.add_argument("file", help="JSON array of log entries, or - for stdin")
    parser.add_argument(
        "--tier",
        default=CapabilityTier.STANDARD.value,
        help="Capability tier (constrained, standard, full); unknown tiers fall back to constrained",
    )
    parser.add_argument(
        "--sort",
        default=SortKey.RECENCY.value,
        choices=[key.value for key in SortKey],
        help="Display order of the admitted conversations",
    )
    parser.add_argument("--appointments", help="JSON object mapping session id to appointment")
    parser.add_argument("--now", help="Reference time (ISO 8601) for scoring")
    parser.add_argument("--log-level", default="WARNING", help="Console log level")
    parser.add_argument("--log-file", help="Write JSON Lines logs to this file")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return its exit code."""
    args = create_parser().parse_args(argv)

    try:
        configure_logging(args.log_level, args.log_file)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        entries = _read_json(args.file)
        appointments = parse_appointments(_read_json(args.appointments)) if args.appointments else None
        now = datetime.fromisoformat(args.now) if args.now else None
    except (OSError, ValueError) as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 2

    result = ConversationPipeline(args.tier).run(entries, appointments, sort_key=args.sort, now=now)

    for anomaly in result.anomalies:
        warnings.warn(anomaly, AnomalyWarning, stacklevel=1)

    print(json.dumps(build_report(result, now), indent=args.indent, default=_json_default))

    if not result.ok:
        logger.error("Pipeline finished with unrecoverable errors", extra={"errors": len(result.errors)})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
