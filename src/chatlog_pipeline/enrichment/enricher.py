"""Record enrichment: opening message, duration and optional deep analysis."""

import logging
import re
from collections.abc import Sequence
from dataclasses import replace

from chatlog_pipeline.config import NameResolutionStrategy, ProcessingProfile, load_keyword_tables
from chatlog_pipeline.enrichment.analyzer import ConversationAnalyzer
from chatlog_pipeline.enrichment.duration import calculate_duration
from chatlog_pipeline.models import SESSION_STARTED, ConversationRecord, LogEntry

logger = logging.getLogger(__name__)

SIMPLE_MIN_LENGTH = 10
ADVANCED_MIN_LENGTH = 5
SUBSTANTIVE_MIN_LENGTH = 15
QUESTION_MIN_LENGTH = 10

_SIMPLE_NAME_RE = re.compile(r"^[A-Za-z]+\s+[A-Za-z]+$")
_ADVANCED_NAME_RE = re.compile(r"^[A-Za-z]+\s*[A-Za-z]*$")


def _is_greeting(content: str, greetings: Sequence[str]) -> bool:
    normalized = content.strip().lower().rstrip("!.?, ")
    return normalized in greetings


def first_significant_message(
    messages: Sequence[LogEntry],
    strategy: NameResolutionStrategy,
    greetings: Sequence[str] = (),
) -> str:
    """
    Pick the message that best represents why the user started the conversation.

    The simple strategy takes the first user message longer than 10 characters
    that isn't a bare name. The advanced strategy also drops greetings and
    prefers a question, then a longer message.

    Args:
        messages: Conversation messages in ascending order
        strategy: Selection strategy for the tier
        greetings: Greeting-only phrases ignored by the advanced strategy

    Returns:
        The chosen message text, or "Session started" if there is no user text
    """
    user_messages = [m for m in messages if m.is_user]
    if not user_messages:
        return SESSION_STARTED

    if NameResolutionStrategy(strategy) is NameResolutionStrategy.SIMPLE:
        for message in user_messages:
            content = message.content.strip()
            if len(content) > SIMPLE_MIN_LENGTH and not _SIMPLE_NAME_RE.match(content):
                return message.content
        return user_messages[0].content or SESSION_STARTED

    candidates = [
        m
        for m in user_messages
        if len(m.content.strip()) > ADVANCED_MIN_LENGTH
        and not _ADVANCED_NAME_RE.match(m.content.strip())
    ]
    if not candidates:
        return user_messages[0].content or SESSION_STARTED

    non_greetings = [m for m in candidates if not _is_greeting(m.content, greetings)]

    for message in non_greetings:
        content = message.content.strip()
        if "?" in content and len(content) > QUESTION_MIN_LENGTH:
            return message.content

    for message in non_greetings:
        if len(message.content.strip()) > SUBSTANTIVE_MIN_LENGTH:
            return message.content

    return (non_greetings or candidates)[0].content


class Enricher:
    """
    Adds derived fields to aggregated conversation records.

    Each record is enriched in isolation: a failure leaves that record with its
    base fields and does not affect the rest of the batch.
    """

    def __init__(
        self, profile: ProcessingProfile, analyzer: ConversationAnalyzer | None = None
    ) -> None:
        self.profile = profile
        keywords = analyzer.keywords if analyzer is not None else load_keyword_tables()
        self._greetings = tuple(g.lower() for g in keywords.greetings)
        self.analyzer = analyzer or ConversationAnalyzer(keywords)

    def enrich(self, records: Sequence[ConversationRecord]) -> tuple[ConversationRecord, ...]:
        """
        Enrich every record.

        Args:
            records: Aggregated records

        Returns:
            New records with opening message, duration and, when the profile
            enables it, the analysis bundle
        """
        enriched = []
        degraded = 0

        for record in records:
            try:
                updated = self._enrich_base(record)
            except Exception as e:
                logger.warning(
                    "Base enrichment failed, keeping record as aggregated",
                    extra={"session_id": record.session_id, "error": str(e)},
                )
                enriched.append(record)
                degraded += 1
                continue

            if self.profile.enable_deep_analysis:
                try:
                    analysis = self.analyzer.analyze(updated)
                except Exception as e:
                    logger.warning(
                        "Deep analysis raised, skipping",
                        extra={"session_id": record.session_id, "error": str(e)},
                    )
                    analysis = None
                if analysis is None:
                    degraded += 1
                updated = replace(updated, analysis=analysis)

            enriched.append(updated)

        logger.info(
            "Enrichment completed",
            extra={
                "records": len(enriched),
                "degraded": degraded,
                "deep_analysis": self.profile.enable_deep_analysis,
            },
        )
        return tuple(enriched)

    def _enrich_base(self, record: ConversationRecord) -> ConversationRecord:
        messages = tuple(sorted(record.messages, key=lambda m: m.timestamp))
        return replace(
            record,
            messages=messages,
            first_significant_message=first_significant_message(
                messages, self.profile.name_resolution_strategy, self._greetings
            ),
            duration_estimate=calculate_duration(
                [m.timestamp for m in messages],
                record.last_activity,
                self.profile.duration_precision,
            ),
        )
