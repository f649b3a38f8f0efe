"""Tests for batched aggregation of log entries."""

import random

import pytest

from chatlog_pipeline.aggregation.aggregator import (
    Aggregator,
    group_entries_by_session,
    iter_batches,
)
from chatlog_pipeline.errors import AggregationFailure
from chatlog_pipeline.models import ANONYMOUS_LABEL, AppointmentLink


class TestIterBatches:
    """Tests for iter_batches."""

    def test_slices_with_offsets(self) -> None:
        """Test batches carry the offset of their first entry."""
        assert list(iter_batches(range(7), 3)) == [(0, [0, 1, 2]), (3, [3, 4, 5]), (6, [6])]

    def test_limit_bounds_consumption(self) -> None:
        """Test that the limit caps the total entries read."""
        assert list(iter_batches(range(100), 3, limit=5)) == [(0, [0, 1, 2]), (3, [3, 4])]

    def test_invalid_batch_size(self) -> None:
        """Test that a non-positive batch size is rejected."""
        with pytest.raises(ValueError, match="batch_size"):
            list(iter_batches([1, 2], 0))


class TestAggregator:
    """Tests for Aggregator."""

    def test_groups_by_session(self, standard_profile, make_entry) -> None:
        """Test one record per session in first-seen order."""
        entries = [
            make_entry("b", 0),
            make_entry("a", 10),
            make_entry("b", 20, "assistant"),
            make_entry("c", 30),
        ]

        result = Aggregator(standard_profile).aggregate(entries)

        assert [r.session_id for r in result.records] == ["b", "a", "c"]
        assert [r.message_count for r in result.records] == [2, 1, 1]
        assert result.consumed_count == 4

    def test_record_invariants(self, standard_profile, make_entry) -> None:
        """Test count, ordering and last activity invariants on shuffled input."""
        entries = [make_entry(f"s{i % 3}", seconds=i * 7) for i in range(30)]
        random.Random(42).shuffle(entries)

        result = Aggregator(standard_profile).aggregate(entries)

        for record in result.records:
            timestamps = [m.timestamp for m in record.messages]
            assert record.message_count == len(record.messages)
            assert timestamps == sorted(timestamps)
            assert record.last_activity == max(timestamps)
        assert len({r.session_id for r in result.records}) == len(result.records)

    def test_equal_timestamps_keep_input_order(self, standard_profile, make_entry) -> None:
        """Test that the message sort is stable."""
        first = make_entry("s1", 0, content="first")
        second = make_entry("s1", 0, content="second")

        record = Aggregator(standard_profile).aggregate([first, second]).records[0]

        assert [m.content for m in record.messages] == ["first", "second"]

    def test_aggregation_is_idempotent(self, standard_profile, sample_entries) -> None:
        """Test that repeated calls on the same input agree."""
        aggregator = Aggregator(standard_profile)

        assert aggregator.aggregate(sample_entries) == aggregator.aggregate(sample_entries)

    def test_respects_max_events(self, small_profile, make_entry) -> None:
        """Test that at most max_events_processed entries are consumed."""
        entries = [make_entry(f"s{i}", seconds=i) for i in range(25)]

        result = Aggregator(small_profile).aggregate(entries)

        assert result.consumed_count == 10
        assert sum(r.message_count for r in result.records) == 10

    def test_skip_strictness_drops_malformed(self, standard_profile, make_raw_entry) -> None:
        """Test that malformed entries are counted and skipped."""
        entries = [make_raw_entry("s1"), {"sessionId": "s1"}, make_raw_entry("s1", 5)]

        result = Aggregator(standard_profile).aggregate(entries)

        assert result.skipped_count == 1
        assert result.records[0].message_count == 2

    def test_abort_strictness_fails(self, full_profile, make_raw_entry) -> None:
        """Test that a malformed entry aborts aggregation on the full tier."""
        entries = [make_raw_entry("s1"), {"sessionId": "s1"}]

        with pytest.raises(AggregationFailure):
            Aggregator(full_profile).aggregate(entries)

    def test_sticky_identity(self, standard_profile, make_entry) -> None:
        """Test that the first resolved name is never replaced."""
        entries = [
            make_entry("s1", 0, name="Ann Lee"),
            make_entry("s1", 10, "assistant", "Hi Ann"),
            make_entry("s1", 20, content="still me"),
            make_entry("s1", 30, name="Someone Else"),
        ]

        record = Aggregator(standard_profile).aggregate(entries).records[0]

        assert record.participant_label == "Ann Lee"

    def test_anonymous_upgraded_by_later_name(self, standard_profile, make_entry) -> None:
        """Test that a session starting anonymous picks up a later name."""
        entries = [
            make_entry("s1", 0, content="hello"),
            make_entry("s1", 10, content="John Smith"),
        ]

        record = Aggregator(standard_profile).aggregate(entries).records[0]

        assert record.participant_label == "John Smith"

    def test_anonymous_session(self, standard_profile, make_entry) -> None:
        """Test that sessions without a name get the placeholder."""
        record = Aggregator(standard_profile).aggregate([make_entry("s1")]).records[0]

        assert record.participant_label == ANONYMOUS_LABEL

    def test_appointment_links(self, standard_profile, make_entry) -> None:
        """Test attaching pre-resolved appointment links per session."""
        entries = [make_entry("s1"), make_entry("s2"), make_entry("s3")]
        appointments = {"s1": AppointmentLink(linked=True, appointment_id="apt-1"), "s2": True}

        records = {
            r.session_id: r for r in Aggregator(standard_profile).aggregate(entries, appointments).records
        }

        assert records["s1"].appointment_linked is True
        assert records["s1"].appointment_id == "apt-1"
        assert records["s2"].appointment_linked is True
        assert records["s2"].appointment_id is None
        assert records["s3"].appointment_linked is False

    @pytest.mark.asyncio
    async def test_async_matches_sync(self, small_profile, make_entry) -> None:
        """Test that the async path produces the same records."""
        entries = [make_entry(f"s{i % 4}", seconds=i) for i in range(9)]
        aggregator = Aggregator(small_profile)

        async_result = await aggregator.aggregate_async(entries)

        assert async_result == aggregator.aggregate(entries)


class TestGroupEntriesBySession:
    """Tests for group_entries_by_session."""

    def test_groups_in_first_seen_order(self, make_entry) -> None:
        """Test grouping keeps session and message order."""
        entries = [make_entry("b", 0), make_entry("a", 1), make_entry("b", 2)]

        groups = group_entries_by_session(entries)

        assert list(groups) == ["b", "a"]
        assert [e.timestamp for e in groups["b"]] == [entries[0].timestamp, entries[2].timestamp]
