"""Keyword-driven deep analysis of conversations."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from chatlog_pipeline.config import KeywordTables
from chatlog_pipeline.enrichment.duration import round_half_up
from chatlog_pipeline.models import (
    Actor,
    AnalysisBundle,
    ConversationRecord,
    EngagementLevel,
    LogEntry,
    Sentiment,
)

logger = logging.getLogger(__name__)

RESPONSE_GAP_CEILING_SECONDS = 30 * 60
MAX_CONVERSATION_DEPTH = 10
RESOLUTION_WINDOW = 3

HIGH_ENGAGEMENT_MESSAGES = 8
HIGH_ENGAGEMENT_AVG_LENGTH = 30
MEDIUM_ENGAGEMENT_MESSAGES = 4
MEDIUM_ENGAGEMENT_AVG_LENGTH = 15

GENERAL_INTENT = "general"
UNKNOWN_INTENT = "unknown"


@dataclass(frozen=True)
class ConversationFlow:
    """Turn-taking pattern of a conversation."""

    has_back_and_forth: bool
    longest_user_run: int
    longest_assistant_run: int


def _user_text(user_messages: Sequence[LogEntry]) -> str:
    return " ".join(m.content.lower() for m in user_messages)


class ConversationAnalyzer:
    """
    Computes the deep-analysis bundle for a conversation.

    Heuristic analyzer that derives:
    - Average response time and conversation depth
    - User engagement level
    - Intent category and sentiment from keyword tables
    - Whether the conversation ended with a resolution

    analyze() never raises; an internal failure yields None so the caller can
    keep the record's base fields.
    """

    def __init__(self, keywords: KeywordTables) -> None:
        """
        Initialize the analyzer.

        Args:
            keywords: Intent, sentiment, resolution and topic word lists
        """
        self.keywords = keywords

        logger.debug(
            "ConversationAnalyzer initialized",
            extra={
                "intent_categories": len(keywords.intent),
                "sentiment_words": len(keywords.positive) + len(keywords.negative),
            },
        )

    def analyze(self, record: ConversationRecord) -> AnalysisBundle | None:
        """
        Build the analysis bundle for one record.

        Args:
            record: Aggregated conversation with messages in ascending order

        Returns:
            AnalysisBundle, or None if analysis failed
        """
        try:
            messages = record.messages
            user_messages = record.user_messages

            return AnalysisBundle(
                average_response_time=self.average_response_time(messages),
                conversation_depth=min(len(messages), MAX_CONVERSATION_DEPTH),
                engagement_level=self.engagement_level(user_messages),
                detected_intent=self.detect_intent(user_messages),
                sentiment=self.analyze_sentiment(user_messages),
                has_resolution=self.detect_resolution(messages),
            )
        except Exception as e:
            logger.warning(
                "Deep analysis failed, skipping",
                extra={"session_id": getattr(record, "session_id", None), "error": str(e)},
            )
            return None

    def average_response_time(self, messages: Sequence[LogEntry]) -> int:
        """Mean gap between consecutive messages in seconds, ignoring gaps of 30 minutes or more."""
        if len(messages) < 2:
            return 0

        gaps = []
        for previous, current in zip(messages, messages[1:]):
            gap = (current.timestamp - previous.timestamp).total_seconds()
            if gap < RESPONSE_GAP_CEILING_SECONDS:
                gaps.append(gap)

        if not gaps:
            return 0
        return round_half_up(sum(gaps) / len(gaps))

    def engagement_level(self, user_messages: Sequence[LogEntry]) -> EngagementLevel:
        """Bucket engagement by user message count and average length."""
        if not user_messages:
            return EngagementLevel.LOW

        count = len(user_messages)
        average_length = sum(len(m.content) for m in user_messages) / count

        if count >= HIGH_ENGAGEMENT_MESSAGES and average_length >= HIGH_ENGAGEMENT_AVG_LENGTH:
            return EngagementLevel.HIGH
        if count >= MEDIUM_ENGAGEMENT_MESSAGES and average_length >= MEDIUM_ENGAGEMENT_AVG_LENGTH:
            return EngagementLevel.MEDIUM
        return EngagementLevel.LOW

    def detect_intent(self, user_messages: Sequence[LogEntry]) -> str:
        """
        Classify the user's intent by keyword hits.

        Returns:
            The category with the most hits; ``general`` on a tie or no hits;
            ``unknown`` when there is no user text at all
        """
        if not user_messages:
            return UNKNOWN_INTENT

        text = _user_text(user_messages)
        scores = {
            intent: sum(1 for keyword in words if keyword in text)
            for intent, words in self.keywords.intent
        }
        if not scores:
            return GENERAL_INTENT

        best = max(scores.values())
        if best == 0:
            return GENERAL_INTENT

        leaders = [intent for intent, score in scores.items() if score == best]
        return leaders[0] if len(leaders) == 1 else GENERAL_INTENT

    def analyze_sentiment(self, user_messages: Sequence[LogEntry]) -> Sentiment:
        """Majority vote between positive and negative keywords; ties are neutral."""
        if not user_messages:
            return Sentiment.NEUTRAL

        text = _user_text(user_messages)
        positive = sum(1 for word in self.keywords.positive if word in text)
        negative = sum(1 for word in self.keywords.negative if word in text)

        if positive > negative:
            return Sentiment.POSITIVE
        if negative > positive:
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL

    def detect_resolution(self, messages: Sequence[LogEntry]) -> bool:
        """True if any of the closing messages contains a resolution phrase.

        Conversations shorter than the window are never considered resolved.
        """
        if len(messages) < RESOLUTION_WINDOW:
            return False
        closing = [m.content.lower() for m in messages[-RESOLUTION_WINDOW:]]
        return any(phrase in content for content in closing for phrase in self.keywords.resolution)

    def detect_topics(self, messages: Sequence[LogEntry]) -> list[str]:
        """Every topic with at least one keyword present anywhere in the conversation."""
        text = " ".join(m.content.lower() for m in messages)
        return [topic for topic, words in self.keywords.topics if any(w in text for w in words)]

    def analyze_flow(self, messages: Sequence[LogEntry]) -> ConversationFlow:
        """Measure turn-taking: alternation and the longest same-actor runs."""
        longest = {Actor.USER: 0, Actor.ASSISTANT: 0}
        back_and_forth = False
        run = 0
        previous: Actor | None = None

        for message in messages:
            if message.actor is previous:
                run += 1
            else:
                if previous is not None:
                    back_and_forth = True
                run = 1
            previous = message.actor
            longest[message.actor] = max(longest[message.actor], run)

        return ConversationFlow(
            has_back_and_forth=back_and_forth,
            longest_user_run=longest[Actor.USER],
            longest_assistant_run=longest[Actor.ASSISTANT],
        )

    def needs_follow_up(self, record: ConversationRecord) -> bool:
        """Whether the conversation looks unfinished and worth a follow-up."""
        messages = record.messages
        if not messages:
            return False

        last = messages[-1]
        if last.is_user and "?" in last.content:
            return True

        if len(messages) < RESOLUTION_WINDOW:
            return True

        return not record.appointment_linked and not self.detect_resolution(messages)

    def satisfaction_score(self, record: ConversationRecord) -> int:
        """Blend sentiment, resolution, appointment and engagement into 0-100."""
        score = 50
        user_messages = record.user_messages

        sentiment = self.analyze_sentiment(user_messages)
        if sentiment is Sentiment.POSITIVE:
            score += 30
        elif sentiment is Sentiment.NEGATIVE:
            score -= 30

        if self.detect_resolution(record.messages):
            score += 20

        if record.appointment_linked:
            score += 20

        engagement = self.engagement_level(user_messages)
        if engagement is EngagementLevel.HIGH:
            score += 10
        elif engagement is EngagementLevel.LOW:
            score -= 10

        return max(0, min(100, score))
