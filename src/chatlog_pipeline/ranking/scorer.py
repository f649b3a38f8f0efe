"""Deterministic priority scoring for conversation records."""

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime

from chatlog_pipeline.config import ScoringWeights
from chatlog_pipeline.enrichment.duration import parse_duration_to_minutes
from chatlog_pipeline.models import ConversationRecord

SECONDS_PER_DAY = 24 * 60 * 60


class PriorityScorer:
    """
    Scores records for value-ranked admission.

    The score is the sum of four capped components:
    - recency: up to 10 points, losing one per day since the last activity
    - engagement: 0.5 points per message, up to 5
    - appointment: 3 points when an appointment is linked
    - duration: 0.1 points per minute, up to 2

    Caps and rates come from ScoringWeights. The result depends only on the
    record and the reference time passed in, never on the wall clock.
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def score(self, record: ConversationRecord, now: datetime) -> float:
        """
        Compute the priority score of one record.

        Args:
            record: Record to score
            now: Reference time for recency

        Returns:
            Non-negative priority score
        """
        w = self.weights

        days_since_activity = (now - record.last_activity).total_seconds() / SECONDS_PER_DAY
        recency = min(w.recency_max_points, max(0.0, w.recency_max_points - days_since_activity))

        engagement = min(record.message_count * w.engagement_points_per_message, w.engagement_max_points)

        appointment = w.appointment_bonus if record.appointment_linked else 0.0

        minutes = parse_duration_to_minutes(record.duration_estimate)
        duration = min(minutes * w.duration_points_per_minute, w.duration_max_points)

        return max(0.0, recency + engagement + appointment + duration)

    def score_all(
        self, records: Sequence[ConversationRecord], now: datetime
    ) -> tuple[ConversationRecord, ...]:
        """Return copies of the records with ``priority_score`` set."""
        return tuple(replace(r, priority_score=self.score(r, now)) for r in records)
