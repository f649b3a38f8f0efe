"""Processing metrics, statistics and recommendations.

Everything here is pure reporting: functions read pipeline inputs and outputs
and never modify them.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from chatlog_pipeline.config import ProcessingProfile
from chatlog_pipeline.enrichment.duration import round_half_up
from chatlog_pipeline.metrics.models import (
    DataQuality,
    PerformanceStatus,
    ProcessingMetrics,
    ProcessingStats,
)
from chatlog_pipeline.models import ConversationRecord, LogEntry

_DURATION_FORMAT_RE = re.compile(r"^(<1m|\d+m|\d+h( \d+m)?)$")

LOW_PROCESSING_RATIO = 0.8
LOW_QUALITY_SCORE = 80


def performance_status(total: int, profile: ProcessingProfile) -> PerformanceStatus:
    """Classify an input size against the tier thresholds."""
    if total > profile.critical_threshold:
        return PerformanceStatus.CRITICAL
    if total > profile.warning_threshold:
        return PerformanceStatus.WARNING
    return PerformanceStatus.GOOD


def estimate_processing_seconds(total: int, profile: ProcessingProfile) -> int:
    """Seconds needed for ``total`` entries at the tier's processing rate."""
    return math.ceil(total / profile.processing_rate)


def collect_metrics(
    total: int,
    profile: ProcessingProfile,
    invalid_count: int = 0,
    anomalies: Sequence[str] = (),
) -> ProcessingMetrics:
    """
    Build the metrics report for a run.

    Args:
        total: Number of raw entries supplied
        profile: Profile of the run
        invalid_count: Entries rejected by schema checks
        anomalies: Anomaly warnings from post-enrichment checks

    Returns:
        ProcessingMetrics for the run
    """
    total = max(0, total)
    processed = min(total, profile.max_events_processed)

    return ProcessingMetrics(
        total_count=total,
        processed_count=processed,
        skipped_count=total - processed,
        ratio=processed / total if total else 1.0,
        performance_status=performance_status(total, profile),
        estimated_seconds=estimate_processing_seconds(total, profile),
        recommend_virtualization=total > profile.warning_threshold,
        invalid_count=invalid_count,
        anomalies=tuple(anomalies),
    )


def collect_stats(
    entries: Sequence[LogEntry],
    records: Sequence[ConversationRecord],
    metrics: ProcessingMetrics,
) -> ProcessingStats:
    """Relate the entries supplied to the conversations produced."""
    unique_sessions = len({e.session_id for e in entries})
    produced = len(records)

    return ProcessingStats(
        total_messages=len(entries),
        unique_sessions=unique_sessions,
        processed_conversations=produced,
        processing_efficiency=round(produced / max(unique_sessions, 1), 2),
        average_messages_per_conversation=round(len(entries) / max(produced, 1), 1),
        metrics=metrics,
    )


def _percent(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def assess_data_quality(records: Sequence[ConversationRecord]) -> DataQuality:
    """
    Score completeness, validity and consistency of a record set.

    Returns:
        DataQuality; all zeros for an empty set
    """
    if not records:
        return DataQuality(completeness=0, validity=0, consistency=0, overall=0)

    total = len(records)
    complete = sum(
        1
        for r in records
        if r.session_id
        and r.participant_label
        and r.message_count > 0
        and r.first_significant_message
        and r.duration_estimate
        and r.messages
    )
    valid = sum(
        1
        for r in records
        if _DURATION_FORMAT_RE.match(r.duration_estimate or "")
        and r.message_count == len(r.messages)
    )
    consistent = sum(
        1 for r in records if r.messages and r.last_activity >= r.messages[0].timestamp
    )

    completeness = complete / total * 100
    validity = valid / total * 100
    consistency = consistent / total * 100

    return DataQuality(
        completeness=_percent(complete, total),
        validity=_percent(valid, total),
        consistency=_percent(consistent, total),
        overall=round_half_up((completeness + validity + consistency) / 3),
    )


def performance_recommendations(
    metrics: ProcessingMetrics, records: Sequence[ConversationRecord]
) -> list[str]:
    """Human-readable suggestions derived from the metrics and output quality."""
    recommendations = []

    if metrics.performance_status is PerformanceStatus.CRITICAL:
        recommendations.append("Consider implementing pagination or infinite scroll")
        recommendations.append("Enable data virtualization for improved performance")
        recommendations.append("Reduce the number of visible conversations")
    elif metrics.performance_status is PerformanceStatus.WARNING:
        recommendations.append("Monitor performance as data volume increases")
        recommendations.append("Consider implementing lazy loading")

    if metrics.ratio < LOW_PROCESSING_RATIO:
        recommendations.append(f"Only {round_half_up(metrics.ratio * 100)}% of logs are being processed")
        recommendations.append("Consider a higher capability tier to raise the processing limit")

    if records:
        quality = assess_data_quality(records)
        if quality.overall < LOW_QUALITY_SCORE:
            recommendations.append(f"Data quality score: {quality.overall}%")
            recommendations.append("Review data validation and sanitization processes")

    return recommendations
