"""Tests for the keyword-driven conversation analyzer."""

from dataclasses import replace

import pytest

from chatlog_pipeline.enrichment.analyzer import ConversationAnalyzer
from chatlog_pipeline.models import EngagementLevel, Sentiment


class TestConversationAnalyzer:
    """Tests for ConversationAnalyzer."""

    def test_analyzer_initialization(self, analyzer: ConversationAnalyzer) -> None:
        """Test that analyzer loads its keyword tables."""
        assert len(analyzer.keywords.intent) > 0
        assert len(analyzer.keywords.positive) > 0

    def test_analyze_builds_bundle(self, analyzer, make_entry, make_record) -> None:
        """Test the full bundle for a short conversation."""
        messages = (
            make_entry(seconds=0, content="How much does the premium plan cost?"),
            make_entry(seconds=10, actor="assistant", content="It is 49 dollars per month."),
            make_entry(seconds=30, content="Great, thanks!"),
        )
        record = replace(make_record(), messages=messages, message_count=3)

        bundle = analyzer.analyze(record)

        assert bundle is not None
        assert bundle.average_response_time == 15
        assert bundle.conversation_depth == 3
        assert bundle.detected_intent == "pricing"
        assert bundle.sentiment == Sentiment.POSITIVE
        assert bundle.has_resolution is True
        assert bundle.engagement_level == EngagementLevel.LOW

    def test_depth_is_capped(self, analyzer, make_record) -> None:
        """Test that conversation depth stops at 10."""
        bundle = analyzer.analyze(make_record(count=14))

        assert bundle.conversation_depth == 10

    def test_analyze_never_raises(self, analyzer, make_record) -> None:
        """Test that an internal failure yields None."""
        broken = replace(make_record(), messages=None)

        assert analyzer.analyze(broken) is None


class TestSentiment:
    """Sentiment classification cases."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("This is great, thanks!", Sentiment.POSITIVE),
            ("This is terrible and I am frustrated", Sentiment.NEGATIVE),
            ("The docs are great but I am frustrated", Sentiment.NEUTRAL),
            ("What time do you open on Monday", Sentiment.NEUTRAL),
        ],
    )
    def test_sentiment(self, analyzer, make_entry, text, expected) -> None:
        """Test majority vote between positive and negative keywords."""
        assert analyzer.analyze_sentiment([make_entry(content=text)]) == expected

    def test_no_user_messages_is_neutral(self, analyzer) -> None:
        """Test that no user text is neutral."""
        assert analyzer.analyze_sentiment([]) == Sentiment.NEUTRAL


class TestIntent:
    """Intent detection cases."""

    def test_clear_winner(self, analyzer, make_entry) -> None:
        """Test that the category with most hits wins."""
        messages = [make_entry(content="What is the price and the monthly cost?")]

        assert analyzer.detect_intent(messages) == "pricing"

    def test_tie_is_general(self, analyzer, make_entry) -> None:
        """Test that a tie at the top yields general."""
        messages = [make_entry(content="The price and some help")]

        assert analyzer.detect_intent(messages) == "general"

    def test_no_hits_is_general(self, analyzer, make_entry) -> None:
        """Test that no keyword hits yields general."""
        assert analyzer.detect_intent([make_entry(content="hello there")]) == "general"

    def test_no_user_text_is_unknown(self, analyzer) -> None:
        """Test that no user messages yields unknown."""
        assert analyzer.detect_intent([]) == "unknown"


class TestTiming:
    """Response time and engagement."""

    def test_long_gaps_excluded(self, analyzer, make_entry) -> None:
        """Test that gaps of 30 minutes or more are ignored."""
        messages = [make_entry(seconds=0), make_entry(seconds=10), make_entry(seconds=1810)]

        assert analyzer.average_response_time(messages) == 10

    def test_single_message_zero(self, analyzer, make_entry) -> None:
        """Test that one message has no response time."""
        assert analyzer.average_response_time([make_entry()]) == 0

    def test_engagement_levels(self, analyzer, make_entry) -> None:
        """Test engagement buckets by count and average length."""
        long_text = "x" * 30
        medium_text = "y" * 15

        assert analyzer.engagement_level([make_entry(content=long_text)] * 8) == EngagementLevel.HIGH
        assert analyzer.engagement_level([make_entry(content=medium_text)] * 4) == EngagementLevel.MEDIUM
        assert analyzer.engagement_level([make_entry(content=long_text)] * 3) == EngagementLevel.LOW
        assert analyzer.engagement_level([]) == EngagementLevel.LOW


class TestResolutionAndFlow:
    """Resolution detection and extra heuristics."""

    def test_resolution_in_closing_messages(self, analyzer, make_entry) -> None:
        """Test that a resolution phrase near the end counts."""
        messages = [
            make_entry(content="Where is my order"),
            make_entry(actor="assistant", content="It ships tomorrow"),
            make_entry(content="Got it, thanks"),
        ]

        assert analyzer.detect_resolution(messages) is True

    def test_short_conversation_never_resolved(self, analyzer, make_entry) -> None:
        """Test that fewer than three messages cannot signal a resolution."""
        messages = [
            make_entry(content="Where is my order"),
            make_entry(content="thanks"),
        ]

        assert analyzer.detect_resolution(messages) is False
        assert analyzer.detect_resolution([]) is False

    def test_early_resolution_ignored(self, analyzer, make_entry) -> None:
        """Test that only the last three messages are checked."""
        messages = [
            make_entry(content="Thanks for the quick reply"),
            make_entry(content="Next question please"),
            make_entry(actor="assistant", content="Go ahead"),
            make_entry(content="Where is my order"),
        ]

        assert analyzer.detect_resolution(messages) is False

    def test_detect_topics(self, analyzer, make_entry) -> None:
        """Test topic detection across all messages."""
        topics = analyzer.detect_topics([make_entry(content="What is the price of the api?")])

        assert topics == ["pricing", "technical"]

    def test_analyze_flow(self, analyzer, make_entry) -> None:
        """Test turn-taking measurements."""
        messages = [
            make_entry(seconds=0),
            make_entry(seconds=1, actor="assistant"),
            make_entry(seconds=2),
            make_entry(seconds=3),
        ]

        flow = analyzer.analyze_flow(messages)

        assert flow.has_back_and_forth is True
        assert flow.longest_user_run == 2
        assert flow.longest_assistant_run == 1

    def test_needs_follow_up_on_open_question(self, analyzer, make_record, make_entry) -> None:
        """Test that a trailing user question needs follow-up."""
        record = replace(
            make_record(count=4),
            messages=make_record(count=3).messages + (make_entry(seconds=600, content="Can you call me?"),),
        )

        assert analyzer.needs_follow_up(record) is True

    def test_satisfaction_score_is_clamped(self, analyzer, make_record, make_entry) -> None:
        """Test that the score stays within 0-100."""
        record = replace(
            make_record(count=1, appointment_linked=True, appointment_id="apt-1"),
            messages=tuple(
                make_entry(seconds=i, content="Thanks, that was great!") for i in range(3)
            ),
            message_count=3,
        )

        assert analyzer.satisfaction_score(record) == 100
