"""Tests for priority scoring, sorting, filtering and admission."""

from datetime import timedelta

import pytest

from chatlog_pipeline.config import ScoringWeights
from chatlog_pipeline.errors import AdmissionFailure
from chatlog_pipeline.models import ConversationRecord, EngagementLevel
from chatlog_pipeline.ranking.admission import AdmissionFilter, top_records
from chatlog_pipeline.ranking.filters import FilterCriteria, apply_filters
from chatlog_pipeline.ranking.scorer import PriorityScorer
from chatlog_pipeline.ranking.sorter import _SORT_SPECS, SortKey, sort_records


def _bare_record(index: int, now, **changes) -> ConversationRecord:
    """Record with just the fields scoring reads."""
    fields = {
        "session_id": f"s{index}",
        "participant_label": f"User {index}",
        "messages": (),
        "message_count": 2,
        "last_activity": now,
    }
    fields.update(changes)
    return ConversationRecord(**fields)


class TestPriorityScorer:
    """Tests for PriorityScorer."""

    @pytest.fixture
    def scorer(self) -> PriorityScorer:
        return PriorityScorer()

    def test_fresh_record(self, scorer, base_time) -> None:
        """Test all four components for a record active just now."""
        record = _bare_record(1, base_time, message_count=4, duration_estimate="10m")

        assert scorer.score(record, base_time) == pytest.approx(10 + 2 + 0 + 1)

    def test_recency_decays_per_day(self, scorer, base_time) -> None:
        """Test that recency loses one point per day."""
        record = _bare_record(1, base_time - timedelta(days=3), message_count=0)

        assert scorer.score(record, base_time) == pytest.approx(7)

    def test_recency_floor_and_cap(self, scorer, base_time) -> None:
        """Test that recency stays within 0 and 10."""
        stale = _bare_record(1, base_time - timedelta(days=40), message_count=0)
        future = _bare_record(2, base_time + timedelta(days=2), message_count=0)

        assert scorer.score(stale, base_time) == 0
        assert scorer.score(future, base_time) == pytest.approx(10)

    def test_component_caps(self, scorer, base_time) -> None:
        """Test engagement, appointment and duration caps."""
        record = _bare_record(
            1,
            base_time - timedelta(days=30),
            message_count=40,
            appointment_linked=True,
            duration_estimate="1h",
        )

        assert scorer.score(record, base_time) == pytest.approx(5 + 3 + 2)

    def test_custom_weights(self, base_time) -> None:
        """Test that weights are tunable."""
        scorer = PriorityScorer(ScoringWeights(appointment_bonus=10.0))
        record = _bare_record(1, base_time - timedelta(days=30), message_count=0, appointment_linked=True)

        assert scorer.score(record, base_time) == pytest.approx(10)

    def test_score_all_returns_new_records(self, scorer, base_time) -> None:
        """Test that scoring does not mutate its input."""
        record = _bare_record(1, base_time)

        scored = scorer.score_all([record], base_time)

        assert scored[0].priority_score == pytest.approx(11)
        assert record.priority_score == 0.0


class TestSortRecords:
    """Tests for sort_records."""

    def test_every_key_has_an_ordering(self) -> None:
        """Test that each SortKey is implemented."""
        assert set(_SORT_SPECS) == set(SortKey)

    def test_default_is_most_recent_first(self, base_time) -> None:
        """Test recency ordering."""
        old = _bare_record(1, base_time - timedelta(hours=2))
        new = _bare_record(2, base_time)

        assert sort_records([old, new]) == (new, old)
        assert sort_records([new, old], SortKey.OLDEST) == (old, new)

    def test_sort_is_stable(self, base_time) -> None:
        """Test that equal keys keep input order for descending sorts."""
        first = _bare_record(1, base_time)
        second = _bare_record(2, base_time)

        assert sort_records([first, second], SortKey.RECENCY) == (first, second)
        assert sort_records([second, first], SortKey.MESSAGE_COUNT) == (second, first)

    def test_name_is_case_insensitive(self, base_time) -> None:
        """Test alphabetical ordering ignoring case."""
        records = [
            _bare_record(1, base_time, participant_label="bob"),
            _bare_record(2, base_time, participant_label="Alice"),
            _bare_record(3, base_time, participant_label="carol"),
        ]

        labels = [r.participant_label for r in sort_records(records, "name")]

        assert labels == ["Alice", "bob", "carol"]

    def test_duration_and_appointment_keys(self, base_time) -> None:
        """Test duration and appointment-first orderings."""
        short = _bare_record(1, base_time, duration_estimate="5m")
        long = _bare_record(2, base_time, duration_estimate="1h 5m", appointment_linked=True)

        assert sort_records([short, long], SortKey.DURATION) == (long, short)
        assert sort_records([short, long], SortKey.APPOINTMENT_FIRST) == (long, short)

    def test_unknown_key_raises(self, base_time) -> None:
        """Test that an unknown key is a ValueError."""
        with pytest.raises(ValueError):
            sort_records([_bare_record(1, base_time)], "loudest")


class TestAdmissionFilter:
    """Tests for value-ranked admission."""

    def test_within_budget_passes_through(self, base_time) -> None:
        """Test that small inputs are returned unchanged."""
        records = [_bare_record(i, base_time) for i in range(3)]

        admitted = AdmissionFilter(5).apply(records, base_time)

        assert admitted == tuple(records)
        assert all(r.priority_score == 0.0 for r in admitted)

    def test_large_input_capped_by_score(self, base_time) -> None:
        """Test cap, subset and score ordering for 1000 records against a budget of 50."""
        records = [
            _bare_record(
                i,
                base_time - timedelta(hours=(i * 37) % 400),
                message_count=(i % 15) + 1,
                duration_estimate=f"{i % 30}m",
                appointment_linked=i % 7 == 0,
            )
            for i in range(1000)
        ]
        scorer = PriorityScorer()

        admitted = AdmissionFilter(50, scorer).apply(records, base_time)

        assert len(admitted) == 50
        admitted_ids = {r.session_id for r in admitted}
        assert admitted_ids <= {r.session_id for r in records}
        dropped_scores = [scorer.score(r, base_time) for r in records if r.session_id not in admitted_ids]
        assert min(r.priority_score for r in admitted) >= max(dropped_scores)

    def test_ties_broken_by_recency(self, base_time) -> None:
        """Test that equal scores keep the most recently active record."""
        older = _bare_record(1, base_time - timedelta(days=20))
        newer = _bare_record(2, base_time - timedelta(days=15))

        admitted = AdmissionFilter(1).apply([older, newer], base_time)

        assert [r.session_id for r in admitted] == ["s2"]

    def test_negative_budget_rejected(self) -> None:
        """Test that a negative budget is a configuration error."""
        with pytest.raises(ValueError):
            AdmissionFilter(-1)

    def test_scoring_failure_raises_admission_failure(self, base_time) -> None:
        """Test that ranking errors surface as AdmissionFailure."""

        class BrokenScorer(PriorityScorer):
            def score_all(self, records, now):
                raise RuntimeError("boom")

        records = [_bare_record(i, base_time) for i in range(3)]

        with pytest.raises(AdmissionFailure, match="boom"):
            AdmissionFilter(1, BrokenScorer()).apply(records, base_time)

    def test_top_records(self, base_time) -> None:
        """Test picking the highest-priority records directly."""
        records = [_bare_record(i, base_time, message_count=i) for i in range(5)]

        top = top_records(records, 2, PriorityScorer(), base_time)

        assert [r.session_id for r in top] == ["s4", "s3"]


class TestFilters:
    """Tests for criteria-based filtering."""

    def test_unset_criteria_keep_everything(self, base_time) -> None:
        """Test that empty criteria match all records."""
        records = [_bare_record(i, base_time) for i in range(3)]

        assert apply_filters(records, FilterCriteria()) == tuple(records)

    def test_combined_criteria(self, base_time) -> None:
        """Test appointment, size and name criteria together."""
        records = [
            _bare_record(1, base_time, appointment_linked=True, message_count=5, participant_label="Ann Lee"),
            _bare_record(2, base_time, appointment_linked=True, message_count=1, participant_label="Ann Ray"),
            _bare_record(3, base_time, appointment_linked=False, message_count=5, participant_label="Ann Fox"),
        ]
        criteria = FilterCriteria(appointment_linked=True, min_messages=2, name_search="ann")

        assert [r.session_id for r in apply_filters(records, criteria)] == ["s1"]

    def test_analysis_criteria_drop_unanalyzed(self, base_time) -> None:
        """Test that engagement filtering needs an analysis bundle."""
        records = [_bare_record(1, base_time)]

        assert apply_filters(records, FilterCriteria(engagement_level=EngagementLevel.LOW)) == ()

    def test_duration_range(self, base_time) -> None:
        """Test filtering by duration minutes."""
        records = [
            _bare_record(1, base_time, duration_estimate="5m"),
            _bare_record(2, base_time, duration_estimate="1h 10m"),
        ]

        assert [r.session_id for r in apply_filters(records, FilterCriteria(min_duration_minutes=60))] == ["s2"]
