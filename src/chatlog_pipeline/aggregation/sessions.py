"""Opt-in session merge/split helpers and record-set cleanup."""

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import timedelta

from chatlog_pipeline.models import ConversationRecord, LogEntry

logger = logging.getLogger(__name__)


def _rebuild(record: ConversationRecord, messages: Sequence[LogEntry], **changes) -> ConversationRecord:
    ordered = tuple(sorted(messages, key=lambda m: m.timestamp))
    return replace(
        record,
        messages=ordered,
        message_count=len(ordered),
        last_activity=ordered[-1].timestamp if ordered else record.last_activity,
        **changes,
    )


def merge_nearby_sessions(
    records: Sequence[ConversationRecord], max_gap: timedelta
) -> tuple[ConversationRecord, ...]:
    """
    Merge consecutive sessions of the same named participant.

    Sessions are ordered by start time. A session is folded into the previous
    one when both carry the same non-anonymous label and it starts less than
    ``max_gap`` after the previous one's last activity. The merged record keeps
    the earlier session id.

    Args:
        records: Aggregated records
        max_gap: Largest idle gap still treated as the same conversation

    Returns:
        Records with nearby sessions merged
    """
    ordered = sorted(
        (r for r in records if r.messages),
        key=lambda r: r.messages[0].timestamp,
    )
    merged: list[ConversationRecord] = []

    for record in ordered:
        current = merged[-1] if merged else None
        if (
            current is not None
            and not record.is_anonymous
            and record.participant_label == current.participant_label
            and record.messages[0].timestamp - current.last_activity < max_gap
        ):
            merged[-1] = _rebuild(
                current,
                current.messages + record.messages,
                appointment_linked=current.appointment_linked or record.appointment_linked,
                appointment_id=current.appointment_id or record.appointment_id,
            )
            continue
        merged.append(record)

    merged.extend(r for r in records if not r.messages)

    if len(merged) != len(records):
        logger.info(
            "Merged nearby sessions",
            extra={"before": len(records), "after": len(merged)},
        )
    return tuple(merged)


def split_idle_sessions(
    records: Sequence[ConversationRecord], max_idle: timedelta
) -> tuple[ConversationRecord, ...]:
    """
    Split sessions on idle gaps longer than ``max_idle``.

    Each part becomes a synthetic session named ``<session_id>_split_<n>``,
    numbered from 1. Sessions without such a gap are returned unchanged.
    """
    result: list[ConversationRecord] = []

    for record in records:
        if len(record.messages) <= 1:
            result.append(record)
            continue

        messages = sorted(record.messages, key=lambda m: m.timestamp)
        parts: list[list[LogEntry]] = [[messages[0]]]
        for previous, current in zip(messages, messages[1:]):
            if current.timestamp - previous.timestamp > max_idle:
                parts.append([current])
            else:
                parts[-1].append(current)

        if len(parts) == 1:
            result.append(record)
            continue

        for number, part in enumerate(parts, start=1):
            result.append(_rebuild(record, part, session_id=f"{record.session_id}_split_{number}"))

    if len(result) != len(records):
        logger.info(
            "Split idle sessions",
            extra={"before": len(records), "after": len(result)},
        )
    return tuple(result)


def deduplicate_records(records: Sequence[ConversationRecord]) -> tuple[ConversationRecord, ...]:
    """Keep one record per session id, preferring more messages, then more recent activity."""
    unique: dict[str, ConversationRecord] = {}
    for record in records:
        existing = unique.get(record.session_id)
        if existing is None or (record.message_count, record.last_activity) > (
            existing.message_count,
            existing.last_activity,
        ):
            unique[record.session_id] = record
    return tuple(unique.values())


def filter_low_quality(
    records: Sequence[ConversationRecord], min_messages: int = 1
) -> tuple[ConversationRecord, ...]:
    """Drop records with too few messages or a blank session id."""
    return tuple(
        r
        for r in records
        if r.message_count >= min_messages and r.session_id.strip() and r.messages
    )
