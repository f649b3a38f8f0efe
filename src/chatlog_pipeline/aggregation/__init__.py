"""Aggregation of log entries into conversation records."""

from chatlog_pipeline.aggregation.aggregator import (
    AggregationResult,
    Aggregator,
    group_entries_by_session,
    iter_batches,
)
from chatlog_pipeline.aggregation.identity import resolve_participant_label
from chatlog_pipeline.aggregation.sessions import (
    deduplicate_records,
    filter_low_quality,
    merge_nearby_sessions,
    split_idle_sessions,
)

__all__ = [
    "AggregationResult",
    "Aggregator",
    "deduplicate_records",
    "filter_low_quality",
    "group_entries_by_session",
    "iter_batches",
    "merge_nearby_sessions",
    "resolve_participant_label",
    "split_idle_sessions",
]
