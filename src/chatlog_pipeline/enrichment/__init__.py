"""Conversation enrichment and deep analysis."""

from chatlog_pipeline.enrichment.analyzer import ConversationAnalyzer, ConversationFlow
from chatlog_pipeline.enrichment.duration import (
    calculate_duration,
    format_duration,
    parse_duration_to_minutes,
)
from chatlog_pipeline.enrichment.enricher import Enricher, first_significant_message

__all__ = [
    "ConversationAnalyzer",
    "ConversationFlow",
    "Enricher",
    "calculate_duration",
    "first_significant_message",
    "format_duration",
    "parse_duration_to_minutes",
]
