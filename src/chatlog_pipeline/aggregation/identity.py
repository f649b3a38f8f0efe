"""Participant label resolution."""

import re
from collections import Counter
from collections.abc import Iterable

from chatlog_pipeline.models import ANONYMOUS_LABEL, LogEntry

_FULL_NAME_RE = re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+$")


def resolve_participant_label(entry: LogEntry) -> str:
    """
    Resolve a display label for the author of a log entry.

    Priority: explicit display name, given + family name, given name, a
    "Firstname Lastname" user message, then the anonymous placeholder.
    """
    meta = entry.actor_meta
    if meta is not None:
        if meta.display_name:
            return meta.display_name
        if meta.given_name and meta.family_name:
            return f"{meta.given_name} {meta.family_name}"
        if meta.given_name:
            return meta.given_name

    if entry.is_user:
        content = entry.content.strip()
        if _FULL_NAME_RE.match(content):
            return content

    return ANONYMOUS_LABEL


def sticky_label(current: str | None, candidate: str) -> str:
    """
    Combine the session's current label with a newly resolved one.

    A resolved name is never replaced: the first non-anonymous label wins and
    the anonymous placeholder can only be upgraded.
    """
    if current and current != ANONYMOUS_LABEL:
        return current
    return candidate


def extract_all_names(entries: Iterable[LogEntry]) -> list[str]:
    """Distinct non-anonymous labels in first-seen order."""
    names = (resolve_participant_label(e) for e in entries)
    return list(dict.fromkeys(n for n in names if n != ANONYMOUS_LABEL))


def most_common_name(entries: Iterable[LogEntry]) -> str:
    """The most frequent non-anonymous label; ties go to the first seen."""
    counts = Counter(
        name for name in (resolve_participant_label(e) for e in entries) if name != ANONYMOUS_LABEL
    )
    if not counts:
        return ANONYMOUS_LABEL
    return counts.most_common(1)[0][0]
