"""Conversation duration formatting and parsing."""

import math
import re
from collections.abc import Sequence
from datetime import datetime

from chatlog_pipeline.config import DurationPrecision

UNDER_A_MINUTE = "<1m"

_HOURS_RE = re.compile(r"(\d+)\s*h")
_MINUTES_RE = re.compile(r"(\d+)\s*m")


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``round`` rounds to even)."""
    return math.floor(value + 0.5)


def _format_minutes(total_minutes: int) -> str:
    if total_minutes < 1:
        return UNDER_A_MINUTE
    if total_minutes < 60:
        return f"{total_minutes}m"
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h" if minutes == 0 else f"{hours}h {minutes}m"


def format_duration(seconds: float, precision: DurationPrecision) -> str:
    """
    Format an elapsed time in seconds.

    Approximate precision rounds to the nearest minute. Precise precision
    truncates to whole seconds and rounds the remainder up from 30 seconds.

    Args:
        seconds: Elapsed time; negative values are treated as zero
        precision: Rounding mode

    Returns:
        ``<1m``, ``Nm``, ``Hh`` or ``Hh Mm``
    """
    seconds = max(0.0, seconds)

    if DurationPrecision(precision) is DurationPrecision.APPROXIMATE:
        return _format_minutes(round_half_up(seconds / 60))

    whole_seconds = math.floor(seconds)
    if whole_seconds < 60:
        return UNDER_A_MINUTE
    minutes, remainder = divmod(whole_seconds, 60)
    if remainder >= 30:
        minutes += 1
    return _format_minutes(minutes)


def calculate_duration(
    timestamps: Sequence[datetime],
    last_activity: datetime | None,
    precision: DurationPrecision,
) -> str:
    """
    Format the span from the first message to the last activity.

    Args:
        timestamps: Message timestamps in ascending order
        last_activity: Latest activity; defaults to the last timestamp
        precision: Rounding mode

    Returns:
        Formatted duration; ``0m`` for fewer than two messages
    """
    if len(timestamps) < 2:
        return "0m"
    end = last_activity or timestamps[-1]
    return format_duration((end - timestamps[0]).total_seconds(), precision)


def parse_duration_to_minutes(duration: str | None) -> int:
    """Convert a formatted duration such as ``1h 30m`` back to whole minutes."""
    if not duration or not isinstance(duration, str):
        return 0
    text = duration.strip()
    if text.startswith("<"):
        return 0

    hours_match = _HOURS_RE.search(text)
    minutes_match = _MINUTES_RE.search(text)
    hours = int(hours_match.group(1)) if hours_match else 0
    minutes = int(minutes_match.group(1)) if minutes_match else 0
    return hours * 60 + minutes
