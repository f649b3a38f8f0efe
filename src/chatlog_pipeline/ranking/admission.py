"""Value-ranked admission filter capping the result to the display budget."""

import logging
from collections.abc import Sequence
from datetime import datetime

from chatlog_pipeline.errors import AdmissionFailure
from chatlog_pipeline.models import ConversationRecord
from chatlog_pipeline.ranking.scorer import PriorityScorer

logger = logging.getLogger(__name__)


def _rank(records: Sequence[ConversationRecord]) -> list[ConversationRecord]:
    # Highest score first, ties broken by most recent activity
    return sorted(records, key=lambda r: (r.priority_score, r.last_activity), reverse=True)


def top_records(
    records: Sequence[ConversationRecord],
    count: int,
    scorer: PriorityScorer,
    now: datetime,
) -> tuple[ConversationRecord, ...]:
    """The ``count`` highest-priority records, freshly scored."""
    return tuple(_rank(scorer.score_all(records, now))[: max(0, count)])


class AdmissionFilter:
    """
    Caps a record set to the tier's display budget.

    Within budget the input passes through unchanged. Over budget, every
    record is re-scored and only the top ``display_budget`` by priority are
    admitted, like a bounded cache evicting its least valuable entries.
    """

    def __init__(self, display_budget: int, scorer: PriorityScorer | None = None) -> None:
        if display_budget < 0:
            raise ValueError(f"display_budget must not be negative, got {display_budget}")
        self.display_budget = display_budget
        self.scorer = scorer or PriorityScorer()

    def apply(
        self, records: Sequence[ConversationRecord], now: datetime
    ) -> tuple[ConversationRecord, ...]:
        """
        Admit at most ``display_budget`` records.

        Args:
            records: Candidate records
            now: Reference time for scoring

        Returns:
            The admitted records; priority order when eviction happened

        Raises:
            AdmissionFailure: If scoring or ranking fails
        """
        if len(records) <= self.display_budget:
            return tuple(records)

        try:
            admitted = top_records(records, self.display_budget, self.scorer, now)
        except Exception as e:
            raise AdmissionFailure(f"Priority admission failed: {e}") from e

        logger.info(
            "Admission filter evicted records",
            extra={
                "candidates": len(records),
                "admitted": len(admitted),
                "evicted": len(records) - len(admitted),
            },
        )
        return admitted
