"""Tier-dependent projection of records into plain, JSON-ready rows."""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from chatlog_pipeline import __version__
from chatlog_pipeline.config import CapabilityTier
from chatlog_pipeline.models import ConversationRecord, LogEntry

# Field sets grow with the tier; constrained consumers get the minimum.
_BASE_FIELDS = ("session_id", "participant_label", "message_count", "last_activity", "appointment_linked")
_STANDARD_FIELDS = _BASE_FIELDS + ("first_significant_message", "duration_estimate")
_FULL_FIELDS = _STANDARD_FIELDS + ("appointment_id",)


def _message_row(message: LogEntry) -> dict[str, Any]:
    return message.model_dump(mode="json")


def export_row(record: ConversationRecord, tier: CapabilityTier | str) -> dict[str, Any]:
    """Project one record into a dict of JSON-compatible values."""
    tier = CapabilityTier(tier)
    fields = {
        CapabilityTier.CONSTRAINED: _BASE_FIELDS,
        CapabilityTier.STANDARD: _STANDARD_FIELDS,
        CapabilityTier.FULL: _FULL_FIELDS,
    }[tier]

    row: dict[str, Any] = {}
    for name in fields:
        value = getattr(record, name)
        row[name] = value.isoformat() if isinstance(value, datetime) else value

    if tier is CapabilityTier.FULL:
        row["priority_score"] = round(record.priority_score, 2)
        if record.analysis is not None:
            analysis = record.analysis
            row["analysis"] = {
                "average_response_time": analysis.average_response_time,
                "conversation_depth": analysis.conversation_depth,
                "engagement_level": analysis.engagement_level.value,
                "detected_intent": analysis.detected_intent,
                "sentiment": analysis.sentiment.value,
                "has_resolution": analysis.has_resolution,
            }
        row["messages"] = [_message_row(m) for m in record.messages]

    return row


def build_export_rows(
    records: Sequence[ConversationRecord], tier: CapabilityTier | str
) -> list[dict[str, Any]]:
    """
    Project records into export rows for a capability tier.

    Constrained rows carry only the identifying fields, standard rows add the
    opening message and duration, and full rows add the appointment id, score,
    analysis and messages.

    Raises:
        ValueError: If tier is not a known CapabilityTier
    """
    return [export_row(r, tier) for r in records]


def export_metadata(
    records: Sequence[ConversationRecord], tier: CapabilityTier | str, now: datetime | None = None
) -> dict[str, Any]:
    """Header describing an export."""
    return {
        "export_date": (now or datetime.now(UTC)).isoformat(),
        "tier": CapabilityTier(tier).value,
        "total_conversations": len(records),
        "version": __version__,
    }
