"""Criteria-based filtering of conversation records."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from chatlog_pipeline.enrichment.duration import parse_duration_to_minutes
from chatlog_pipeline.models import ConversationRecord, EngagementLevel, Sentiment


@dataclass(frozen=True)
class FilterCriteria:
    """
    Optional constraints on a record set. Unset fields don't filter.

    Attributes:
        appointment_linked: Keep only linked (True) or unlinked (False) records
        min_messages: Minimum message count
        max_messages: Maximum message count
        date_from: Earliest last activity, inclusive
        date_to: Latest last activity, inclusive
        engagement_level: Required engagement; records without analysis are dropped
        sentiment: Required sentiment; records without analysis are dropped
        name_search: Case-insensitive substring of the participant label
        session_search: Case-insensitive substring of the session id
        content_search: Case-insensitive substring of any message
        min_duration_minutes: Minimum duration
        max_duration_minutes: Maximum duration
    """

    appointment_linked: bool | None = None
    min_messages: int | None = None
    max_messages: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    engagement_level: EngagementLevel | None = None
    sentiment: Sentiment | None = None
    name_search: str | None = None
    session_search: str | None = None
    content_search: str | None = None
    min_duration_minutes: int | None = None
    max_duration_minutes: int | None = None


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def matches(record: ConversationRecord, criteria: FilterCriteria) -> bool:
    """Whether one record satisfies every set criterion."""
    c = criteria

    if c.appointment_linked is not None and record.appointment_linked != c.appointment_linked:
        return False
    if c.min_messages is not None and record.message_count < c.min_messages:
        return False
    if c.max_messages is not None and record.message_count > c.max_messages:
        return False
    if c.date_from is not None and record.last_activity < c.date_from:
        return False
    if c.date_to is not None and record.last_activity > c.date_to:
        return False

    if c.engagement_level is not None or c.sentiment is not None:
        if record.analysis is None:
            return False
        if c.engagement_level is not None and record.analysis.engagement_level != c.engagement_level:
            return False
        if c.sentiment is not None and record.analysis.sentiment != c.sentiment:
            return False

    if c.name_search and not _contains(record.participant_label, c.name_search):
        return False
    if c.session_search and not _contains(record.session_id, c.session_search):
        return False
    if c.content_search and not (
        _contains(record.first_significant_message, c.content_search)
        or any(_contains(m.content, c.content_search) for m in record.messages)
    ):
        return False

    if c.min_duration_minutes is not None or c.max_duration_minutes is not None:
        minutes = parse_duration_to_minutes(record.duration_estimate)
        if c.min_duration_minutes is not None and minutes < c.min_duration_minutes:
            return False
        if c.max_duration_minutes is not None and minutes > c.max_duration_minutes:
            return False

    return True


def apply_filters(
    records: Sequence[ConversationRecord], criteria: FilterCriteria
) -> tuple[ConversationRecord, ...]:
    """Keep the records matching ``criteria``, preserving order."""
    return tuple(r for r in records if matches(r, criteria))
