"""Stable ordering of conversation records by a selectable key."""

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from chatlog_pipeline.enrichment.duration import parse_duration_to_minutes
from chatlog_pipeline.models import ConversationRecord


class SortKey(str, Enum):
    """Available record orderings."""

    RECENCY = "recency"
    OLDEST = "oldest"
    MESSAGE_COUNT = "message_count"
    DURATION = "duration"
    NAME = "name"
    APPOINTMENT_FIRST = "appointment_first"
    PRIORITY = "priority"


# key function, descending
_SORT_SPECS: dict[SortKey, tuple[Callable[[ConversationRecord], Any], bool]] = {
    SortKey.RECENCY: (lambda r: r.last_activity, True),
    SortKey.OLDEST: (lambda r: r.last_activity, False),
    SortKey.MESSAGE_COUNT: (lambda r: r.message_count, True),
    SortKey.DURATION: (lambda r: parse_duration_to_minutes(r.duration_estimate), True),
    SortKey.NAME: (lambda r: r.participant_label.casefold(), False),
    SortKey.APPOINTMENT_FIRST: (lambda r: r.appointment_linked, True),
    SortKey.PRIORITY: (lambda r: r.priority_score, True),
}


def sort_records(
    records: Sequence[ConversationRecord], key: SortKey | str = SortKey.RECENCY
) -> tuple[ConversationRecord, ...]:
    """
    Sort records stably by the given key.

    Records that compare equal keep their input order, for descending keys too.

    Args:
        records: Records to order
        key: SortKey member or its value

    Returns:
        New tuple in the requested order

    Raises:
        ValueError: If the key is not a known SortKey
    """
    key_fn, descending = _SORT_SPECS[SortKey(key)]
    return tuple(sorted(records, key=key_fn, reverse=descending))
