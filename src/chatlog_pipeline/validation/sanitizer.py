"""Coerce conversation records to safe defaults without raising."""

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime

from chatlog_pipeline.models import ANONYMOUS_LABEL, ConversationRecord
from chatlog_pipeline.validation.integrity import validate_record

logger = logging.getLogger(__name__)

UNKNOWN_SESSION = "unknown"
NO_MESSAGE = "No message"


def _clean_text(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def sanitize_record(record: ConversationRecord) -> ConversationRecord:
    """
    Return a copy of the record with blank or invalid fields replaced.

    Blank ids become "unknown", blank labels the anonymous placeholder,
    invalid counts 0 (re-synced to the message list when it is non-empty) and
    a missing duration "0m".
    """
    messages = record.messages if isinstance(record.messages, tuple) else tuple(record.messages or ())

    count = record.message_count
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        count = 0
    if messages and count != len(messages):
        count = len(messages)

    last_activity = record.last_activity
    if messages:
        last_activity = max(m.timestamp for m in messages)
    elif not isinstance(last_activity, datetime):
        last_activity = datetime.now(UTC)

    return replace(
        record,
        session_id=_clean_text(record.session_id, UNKNOWN_SESSION),
        participant_label=_clean_text(record.participant_label, ANONYMOUS_LABEL),
        messages=messages,
        message_count=count,
        last_activity=last_activity,
        first_significant_message=_clean_text(record.first_significant_message, NO_MESSAGE),
        duration_estimate=_clean_text(record.duration_estimate, "0m"),
        appointment_linked=bool(record.appointment_linked),
    )


def sanitize_records(records: Sequence[ConversationRecord]) -> tuple[ConversationRecord, ...]:
    """Sanitize every record in a sequence."""
    return tuple(sanitize_record(r) for r in records or ())


def recover_records(
    partial: Sequence[ConversationRecord], error: BaseException
) -> tuple[ConversationRecord, ...]:
    """
    Salvage what can be kept after a processing error.

    Records are sanitized first; anything still structurally invalid is dropped.
    """
    logger.warning("Attempting to recover from processing error", extra={"error": str(error)})

    sanitized = sanitize_records(partial)
    valid = tuple(r for r in sanitized if not validate_record(r))

    logger.warning(
        "Recovered conversations",
        extra={"recovered": len(valid), "total": len(sanitized)},
    )
    return valid
