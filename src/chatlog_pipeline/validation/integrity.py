"""Post-enrichment structural checks and anomaly detection."""

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from chatlog_pipeline.enrichment.duration import parse_duration_to_minutes
from chatlog_pipeline.models import ConversationRecord

logger = logging.getLogger(__name__)

OUTLIER_MESSAGE_COUNT = 100
SHORT_CONVERSATION_MESSAGES = 2
SHORT_CONVERSATION_RATIO = 0.5
ANONYMOUS_RATIO = 0.8
STALE_AFTER = timedelta(days=365)
MAX_REASONABLE_DURATION_MINUTES = 24 * 60


@dataclass(frozen=True)
class AnomalyReport:
    """Non-fatal data anomalies found across a record set."""

    warnings: tuple[str, ...]

    @property
    def has_anomalies(self) -> bool:
        return bool(self.warnings)


def validate_record(record: ConversationRecord) -> list[str]:
    """
    Check the structural invariants of a single record.

    Returns:
        List of problems; empty when the record is sound
    """
    errors = []

    if not record.session_id or not record.session_id.strip():
        errors.append("Conversation missing session_id")

    if not record.participant_label or not record.participant_label.strip():
        errors.append("Conversation missing participant_label")

    if not record.messages:
        errors.append("Conversation has zero messages")
    else:
        latest = max(m.timestamp for m in record.messages)
        if record.last_activity != latest:
            errors.append("last_activity does not match the latest message timestamp")

    if record.message_count != len(record.messages):
        errors.append(
            f"Message count mismatch: expected {record.message_count}, got {len(record.messages)}"
        )

    if not record.duration_estimate:
        errors.append("Conversation missing duration_estimate")

    return errors


def check_data_integrity(record: ConversationRecord) -> list[str]:
    """Check relationships between fields that validate_record does not cover."""
    issues = []

    if record.messages and record.last_activity < record.messages[0].timestamp:
        issues.append("Last activity is before first message")

    if parse_duration_to_minutes(record.duration_estimate) > MAX_REASONABLE_DURATION_MINUTES:
        issues.append("Duration exceeds 24 hours")

    if record.appointment_linked and not record.appointment_id:
        issues.append("Has appointment but missing appointment_id")

    return issues


def check_anomalies(records: Sequence[ConversationRecord], now: datetime) -> AnomalyReport:
    """
    Detect suspicious patterns across a record set.

    Args:
        records: Records to inspect
        now: Reference time for future/stale timestamp checks

    Returns:
        AnomalyReport with one warning per detected pattern
    """
    warnings: list[str] = []
    total = len(records)
    if total == 0:
        return AnomalyReport(warnings=())

    duplicates = [sid for sid, count in Counter(r.session_id for r in records).items() if count > 1]
    if duplicates:
        warnings.append(f"Duplicate session IDs detected: {len(duplicates)}")

    outliers = sum(1 for r in records if r.message_count > OUTLIER_MESSAGE_COUNT)
    if outliers:
        warnings.append(
            f"{outliers} conversations have over {OUTLIER_MESSAGE_COUNT} messages"
        )

    short = sum(1 for r in records if r.message_count < SHORT_CONVERSATION_MESSAGES)
    if short > total * SHORT_CONVERSATION_RATIO:
        warnings.append("More than 50% of conversations have less than 2 messages")

    future = sum(1 for r in records if r.last_activity > now)
    if future:
        warnings.append(f"{future} conversations have future timestamps")

    stale = sum(1 for r in records if r.last_activity < now - STALE_AFTER)
    if stale:
        warnings.append(f"{stale} conversations are older than 1 year")

    anonymous = sum(1 for r in records if r.is_anonymous)
    if anonymous > total * ANONYMOUS_RATIO:
        warnings.append("More than 80% of conversations have anonymous users")

    if warnings:
        logger.warning(
            "Data anomalies detected",
            extra={"anomaly_count": len(warnings), "record_count": total},
        )

    return AnomalyReport(warnings=tuple(warnings))
