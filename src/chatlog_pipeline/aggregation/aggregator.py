"""Batched aggregation of log entries into per-session conversation records."""

import asyncio
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from itertools import islice
from typing import Any

from chatlog_pipeline.aggregation.identity import resolve_participant_label, sticky_label
from chatlog_pipeline.config import ProcessingProfile, SchemaStrictness
from chatlog_pipeline.errors import AggregationFailure, SchemaError
from chatlog_pipeline.models import AppointmentLink, ConversationRecord, LogEntry
from chatlog_pipeline.validation.schema import parse_entry

logger = logging.getLogger(__name__)

RawEntry = LogEntry | Mapping[str, Any]


def iter_batches(
    entries: Iterable[RawEntry], batch_size: int, limit: int | None = None
) -> Iterator[tuple[int, list[RawEntry]]]:
    """
    Slice an iterable into batches.

    Args:
        entries: Entries to slice
        batch_size: Maximum entries per batch
        limit: Maximum entries consumed in total

    Yields:
        Tuples of (offset of the first entry, batch)
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    iterator = iter(entries) if limit is None else islice(entries, limit)
    offset = 0
    while True:
        batch = list(islice(iterator, batch_size))
        if not batch:
            return
        yield offset, batch
        offset += len(batch)


def group_entries_by_session(entries: Iterable[LogEntry]) -> dict[str, list[LogEntry]]:
    """Group entries by session id, keeping first-seen session order."""
    groups: dict[str, list[LogEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.session_id, []).append(entry)
    return groups


@dataclass
class _SessionAccumulator:
    session_id: str
    label: str
    last_activity: datetime
    messages: list[LogEntry] = field(default_factory=list)

    def add(self, entry: LogEntry, label: str) -> None:
        self.label = sticky_label(self.label, label)
        self.messages.append(entry)
        if entry.timestamp > self.last_activity:
            self.last_activity = entry.timestamp


@dataclass(frozen=True)
class AggregationResult:
    """
    Output of one aggregation pass.

    Attributes:
        records: One record per session, in first-seen session order
        consumed_count: Entries read from the input (bounded by the profile)
        skipped_count: Consumed entries dropped as malformed
    """

    records: tuple[ConversationRecord, ...]
    consumed_count: int
    skipped_count: int


def _coerce_link(value: AppointmentLink | bool | None) -> AppointmentLink:
    if isinstance(value, AppointmentLink):
        return value
    return AppointmentLink(linked=bool(value))


class Aggregator:
    """
    Groups log entries into conversation records.

    At most ``max_events_processed`` entries are consumed, in slices of
    ``batch_size``. All state lives in a session map local to each call, so one
    Aggregator can serve concurrent calls.

    Example:
        aggregator = Aggregator(resolve_profile("standard"))
        result = aggregator.aggregate(entries)
        for record in result.records:
            print(record.session_id, record.message_count)
    """

    def __init__(self, profile: ProcessingProfile) -> None:
        self.profile = profile

    def aggregate(
        self,
        entries: Iterable[RawEntry],
        appointments: Mapping[str, AppointmentLink | bool] | None = None,
    ) -> AggregationResult:
        """
        Aggregate entries synchronously.

        Args:
            entries: LogEntry objects or raw mappings
            appointments: Pre-resolved appointment links keyed by session id

        Returns:
            AggregationResult with records and consumption counts

        Raises:
            AggregationFailure: Under ABORT strictness, on the first malformed entry
        """
        sessions: dict[str, _SessionAccumulator] = {}
        consumed = skipped = batches = 0

        for offset, batch in iter_batches(
            entries, self.profile.batch_size, self.profile.max_events_processed
        ):
            skipped += self._consume(batch, offset, sessions)
            consumed += len(batch)
            batches += 1

        return self._finalize(sessions, appointments, consumed, skipped, batches)

    async def aggregate_async(
        self,
        entries: Iterable[RawEntry],
        appointments: Mapping[str, AppointmentLink | bool] | None = None,
    ) -> AggregationResult:
        """
        Aggregate entries, yielding to the event loop between batches.

        Cancelling the awaiting task abandons the call; nothing is published
        until every batch has been consumed.
        """
        sessions: dict[str, _SessionAccumulator] = {}
        consumed = skipped = batches = 0

        for offset, batch in iter_batches(
            entries, self.profile.batch_size, self.profile.max_events_processed
        ):
            skipped += self._consume(batch, offset, sessions)
            consumed += len(batch)
            batches += 1
            await asyncio.sleep(0)

        return self._finalize(sessions, appointments, consumed, skipped, batches)

    def _consume(
        self, batch: list[RawEntry], offset: int, sessions: dict[str, _SessionAccumulator]
    ) -> int:
        """Fold one batch into ``sessions`` and return how many entries were skipped.

        The pipeline hands over entries already checked by SchemaValidator; the
        strictness handling here applies when the Aggregator is used directly.
        """
        skipped = 0
        for position, raw in enumerate(batch, start=offset):
            try:
                entry = parse_entry(raw, position)
            except SchemaError as e:
                if self.profile.schema_strictness is SchemaStrictness.ABORT:
                    raise AggregationFailure(f"Malformed entry aborted aggregation: {e}") from e
                logger.debug("Skipping malformed entry", extra={"index": position, "error": str(e)})
                skipped += 1
                continue

            label = resolve_participant_label(entry)
            accumulator = sessions.get(entry.session_id)
            if accumulator is None:
                accumulator = _SessionAccumulator(
                    session_id=entry.session_id,
                    label=label,
                    last_activity=entry.timestamp,
                )
                sessions[entry.session_id] = accumulator
            accumulator.add(entry, label)
        return skipped

    def _finalize(
        self,
        sessions: dict[str, _SessionAccumulator],
        appointments: Mapping[str, AppointmentLink | bool] | None,
        consumed: int,
        skipped: int,
        batches: int,
    ) -> AggregationResult:
        appointments = appointments or {}
        records = []

        for accumulator in sessions.values():
            messages = tuple(sorted(accumulator.messages, key=lambda m: m.timestamp))
            link = _coerce_link(appointments.get(accumulator.session_id))
            records.append(
                ConversationRecord(
                    session_id=accumulator.session_id,
                    participant_label=accumulator.label,
                    messages=messages,
                    message_count=len(messages),
                    last_activity=accumulator.last_activity,
                    appointment_linked=link.linked,
                    appointment_id=link.appointment_id,
                )
            )

        logger.info(
            "Aggregation completed",
            extra={
                "tier": self.profile.tier.value,
                "consumed": consumed,
                "skipped": skipped,
                "batches": batches,
                "sessions": len(records),
            },
        )
        return AggregationResult(records=tuple(records), consumed_count=consumed, skipped_count=skipped)
