"""End-to-end conversation pipeline.

Stages run in a fixed order:

    validate -> aggregate -> (merge/split) -> enrich -> sanitize -> score
             -> sort -> admit -> metrics

Every stage boundary is guarded. A failure is recorded as an ErrorContext and
the pipeline continues with the last good intermediate state, so ``run`` only
ever returns a PipelineResult. Cancellation of ``run_async`` is the one
exception and always propagates.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from chatlog_pipeline.aggregation import (
    AggregationResult,
    Aggregator,
    merge_nearby_sessions,
    split_idle_sessions,
)
from chatlog_pipeline.config import (
    CapabilityTier,
    ProcessingProfile,
    SessionRules,
    load_scoring_weights,
    load_session_rules,
    resolve_profile,
)
from chatlog_pipeline.enrichment import ConversationAnalyzer, Enricher
from chatlog_pipeline.errors import (
    AdmissionFailure,
    EnrichmentDegradation,
    ErrorContext,
    PipelineStage,
)
from chatlog_pipeline.logging_manager import PipelineLoggerAdapter, get_run_logger
from chatlog_pipeline.metrics import ProcessingMetrics, ProcessingStats, collect_metrics, collect_stats
from chatlog_pipeline.models import AppointmentLink, ConversationRecord
from chatlog_pipeline.ranking import AdmissionFilter, PriorityScorer, SortKey, sort_records
from chatlog_pipeline.validation import (
    SchemaValidator,
    ValidationReport,
    check_anomalies,
    check_data_integrity,
    sanitize_record,
    validate_record,
)

logger = logging.getLogger(__name__)

Appointments = Mapping[str, AppointmentLink | bool]


@dataclass(frozen=True)
class PipelineResult:
    """
    Everything a consumer needs from one pipeline run.

    Attributes:
        records: Admitted conversation records, ready for display
        metrics: Processing metrics for the run
        validation: Report from the schema pass
        errors: Stage errors caught along the way
        anomalies: Non-fatal data anomaly warnings
        tier: Capability tier the run used
        stats: Input/output summary; None when aggregation did not run
    """

    records: tuple[ConversationRecord, ...]
    metrics: ProcessingMetrics
    validation: ValidationReport
    errors: tuple[ErrorContext, ...] = ()
    anomalies: tuple[str, ...] = ()
    tier: CapabilityTier = CapabilityTier.CONSTRAINED
    stats: ProcessingStats | None = None

    @property
    def ok(self) -> bool:
        """True when no unrecoverable error occurred."""
        return all(e.recoverable for e in self.errors)


def _reference_time(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now


def _as_list(entries: Iterable[Any] | None) -> list[Any] | None:
    if entries is None or isinstance(entries, (str, bytes, Mapping)):
        return None
    try:
        return list(entries)
    except TypeError:
        return None


class ConversationPipeline:
    """
    Turns raw chat log entries into a bounded, ranked set of conversations.

    A pipeline holds only configuration; each run keeps its working state
    locally, so one instance can serve many runs.

    Example:
        pipeline = ConversationPipeline("standard")
        result = pipeline.run(entries, appointments={"s1": True})
        for record in result.records:
            print(record.participant_label, record.duration_estimate)
    """

    def __init__(
        self,
        tier: CapabilityTier | str | ProcessingProfile | None = None,
        analyzer: ConversationAnalyzer | None = None,
        scorer: PriorityScorer | None = None,
        session_rules: SessionRules | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            tier: Capability tier tag or a ready ProcessingProfile. Unknown tags
                fall back to the most conservative profile.
            analyzer: Deep-analysis engine; built from the keyword tables if omitted
            scorer: Priority scorer; built from the scoring weights if omitted
            session_rules: Merge/split rules; loaded from config if omitted
        """
        self.profile = tier if isinstance(tier, ProcessingProfile) else resolve_profile(tier)
        self.validator = SchemaValidator(self.profile.schema_strictness)
        self.aggregator = Aggregator(self.profile)
        self.enricher = Enricher(self.profile, analyzer)
        self.scorer = scorer or PriorityScorer(load_scoring_weights())
        self.admission = AdmissionFilter(self.profile.display_budget, self.scorer)
        self.session_rules = session_rules or load_session_rules()

        logger.debug(
            "ConversationPipeline initialized",
            extra={
                "tier": self.profile.tier.value,
                "max_events": self.profile.max_events_processed,
                "display_budget": self.profile.display_budget,
            },
        )

    @property
    def tier(self) -> CapabilityTier:
        return self.profile.tier

    def run(
        self,
        entries: Iterable[Any] | None,
        appointments: Appointments | None = None,
        sort_key: SortKey | str = SortKey.RECENCY,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Run the pipeline synchronously.

        Args:
            entries: LogEntry objects or raw mappings
            appointments: Pre-resolved appointment links keyed by session id
            sort_key: Display order of the admitted records
            now: Reference time for scoring and anomaly checks; defaults to now

        Returns:
            PipelineResult; never raises
        """
        now = _reference_time(now)
        log = self._run_logger()
        raw = _as_list(entries)
        input_size = len(raw) if raw is not None else 0

        try:
            report = self._validate(raw, log)
            if not report.is_valid:
                return self._rejected(report, input_size, log)

            errors: list[ErrorContext] = []
            try:
                aggregation = self.aggregator.aggregate(report.entries, appointments)
            except Exception as e:
                return self._aggregation_failed(e, report, input_size, log)

            return self._finish(aggregation, report, sort_key, now, errors, log)
        except Exception as e:
            return self._crashed(e, input_size, log)

    async def run_async(
        self,
        entries: Iterable[Any] | None,
        appointments: Appointments | None = None,
        sort_key: SortKey | str = SortKey.RECENCY,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Run the pipeline, yielding to the event loop between aggregation batches.

        Same contract as run(). asyncio.CancelledError is not caught.
        """
        now = _reference_time(now)
        log = self._run_logger()
        raw = _as_list(entries)
        input_size = len(raw) if raw is not None else 0

        try:
            report = self._validate(raw, log)
            if not report.is_valid:
                return self._rejected(report, input_size, log)

            errors: list[ErrorContext] = []
            try:
                aggregation = await self.aggregator.aggregate_async(report.entries, appointments)
            except Exception as e:
                return self._aggregation_failed(e, report, input_size, log)

            return self._finish(aggregation, report, sort_key, now, errors, log)
        except Exception as e:
            return self._crashed(e, input_size, log)

    def _run_logger(self) -> PipelineLoggerAdapter:
        return get_run_logger(__name__, self.profile.tier.value, uuid.uuid4().hex[:8])

    def _validate(self, raw: list[Any] | None, log: PipelineLoggerAdapter) -> ValidationReport:
        report = self.validator.validate(raw)
        log.debug(
            "Schema validation finished",
            extra={
                "valid": report.is_valid,
                "entries": report.total_count,
                "skipped": report.skipped_count,
            },
        )
        return report

    def _context(
        self, exc: BaseException, stage: PipelineStage, input_size: int, recoverable: bool
    ) -> ErrorContext:
        return ErrorContext.from_exception(
            exc,
            stage=stage,
            tier=self.profile.tier.value,
            input_size=input_size,
            recoverable=recoverable,
        )

    def _empty_result(
        self,
        report: ValidationReport,
        input_size: int,
        errors: tuple[ErrorContext, ...],
    ) -> PipelineResult:
        return PipelineResult(
            records=(),
            metrics=collect_metrics(input_size, self.profile, invalid_count=report.skipped_count),
            validation=report,
            errors=errors,
            tier=self.profile.tier,
        )

    def _rejected(
        self, report: ValidationReport, input_size: int, log: PipelineLoggerAdapter
    ) -> PipelineResult:
        message = "; ".join(report.errors) or "Input rejected by schema validation"
        context = ErrorContext(
            stage=PipelineStage.VALIDATION,
            tier=self.profile.tier.value,
            input_size=input_size,
            error=message,
            error_type="SchemaError",
            recoverable=False,
        )
        log.warning(
            "Input rejected before aggregation",
            extra={"invalid_entries": report.skipped_count, "input_size": input_size},
        )
        return self._empty_result(report, input_size, (context,))

    def _aggregation_failed(
        self,
        exc: Exception,
        report: ValidationReport,
        input_size: int,
        log: PipelineLoggerAdapter,
    ) -> PipelineResult:
        log.error(
            "Aggregation failed",
            extra={"error": str(exc), "error_type": type(exc).__name__, "input_size": input_size},
        )
        context = self._context(exc, PipelineStage.AGGREGATION, input_size, recoverable=False)
        return self._empty_result(report, input_size, (context,))

    def _crashed(self, exc: Exception, input_size: int, log: PipelineLoggerAdapter) -> PipelineResult:
        log.error(
            "Pipeline failed",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )
        report = ValidationReport(
            is_valid=False, errors=(str(exc),), entries=(), skipped_count=0, total_count=input_size
        )
        context = self._context(exc, PipelineStage.PIPELINE, input_size, recoverable=False)
        return self._empty_result(report, input_size, (context,))

    def _apply_session_rules(
        self,
        records: tuple[ConversationRecord, ...],
        input_size: int,
        errors: list[ErrorContext],
        log: PipelineLoggerAdapter,
    ) -> tuple[ConversationRecord, ...]:
        rules = self.session_rules
        try:
            if rules.merge_enabled:
                records = merge_nearby_sessions(records, timedelta(seconds=rules.merge_gap_seconds))
            if rules.split_enabled:
                records = split_idle_sessions(records, timedelta(minutes=rules.split_gap_minutes))
        except Exception as e:
            log.warning("Session rules failed, keeping aggregated sessions", extra={"error": str(e)})
            errors.append(self._context(e, PipelineStage.AGGREGATION, input_size, recoverable=True))
        return records

    def _enrich(
        self,
        records: tuple[ConversationRecord, ...],
        input_size: int,
        errors: list[ErrorContext],
        log: PipelineLoggerAdapter,
    ) -> tuple[ConversationRecord, ...]:
        try:
            enriched = self.enricher.enrich(records)
        except Exception as e:
            log.warning("Enrichment failed, keeping aggregated records", extra={"error": str(e)})
            errors.append(self._context(e, PipelineStage.ENRICHMENT, input_size, recoverable=True))
            return records

        if self.profile.enable_deep_analysis:
            missing = sum(1 for r in enriched if r.analysis is None)
            if missing:
                degradation = EnrichmentDegradation(f"{missing} conversations lost deep analysis")
                errors.append(
                    self._context(degradation, PipelineStage.ENRICHMENT, input_size, recoverable=True)
                )
        return enriched

    def _sanitize(
        self,
        records: tuple[ConversationRecord, ...],
        input_size: int,
        errors: list[ErrorContext],
        log: PipelineLoggerAdapter,
    ) -> tuple[ConversationRecord, ...]:
        try:
            cleaned = []
            for record in records:
                problems = validate_record(record)
                if problems:
                    log.debug(
                        "Sanitizing invalid record",
                        extra={"session_id": record.session_id, "problems": problems},
                    )
                    record = sanitize_record(record)
                issues = check_data_integrity(record)
                if issues:
                    log.debug(
                        "Integrity issues found",
                        extra={"session_id": record.session_id, "issues": issues},
                    )
                cleaned.append(record)
            return tuple(cleaned)
        except Exception as e:
            log.warning("Sanitization failed, keeping enriched records", extra={"error": str(e)})
            errors.append(self._context(e, PipelineStage.SANITIZATION, input_size, recoverable=True))
            return records

    def _admit(
        self,
        records: tuple[ConversationRecord, ...],
        sort_key: SortKey | str,
        now: datetime,
        input_size: int,
        errors: list[ErrorContext],
        log: PipelineLoggerAdapter,
    ) -> tuple[ConversationRecord, ...]:
        try:
            admitted = self.admission.apply(records, now)
        except AdmissionFailure as e:
            log.warning("Admission failed, falling back to recency order", extra={"error": str(e)})
            errors.append(self._context(e, PipelineStage.ADMISSION, input_size, recoverable=True))
            return sort_records(records, SortKey.RECENCY)[: self.profile.display_budget]

        if len(admitted) < len(records):
            # Eviction ranks by priority; restore the requested display order
            try:
                admitted = sort_records(admitted, sort_key)
            except Exception as e:
                errors.append(self._context(e, PipelineStage.SORTING, input_size, recoverable=True))
        return admitted

    def _finish(
        self,
        aggregation: AggregationResult,
        report: ValidationReport,
        sort_key: SortKey | str,
        now: datetime,
        errors: list[ErrorContext],
        log: PipelineLoggerAdapter,
    ) -> PipelineResult:
        input_size = report.total_count
        records = self._apply_session_rules(aggregation.records, input_size, errors, log)
        records = self._enrich(records, input_size, errors, log)
        records = self._sanitize(records, input_size, errors, log)

        anomalies = check_anomalies(records, now).warnings

        try:
            records = self.scorer.score_all(records, now)
        except Exception as e:
            log.warning("Scoring failed, keeping unscored records", extra={"error": str(e)})
            errors.append(self._context(e, PipelineStage.SCORING, input_size, recoverable=True))

        try:
            records = sort_records(records, sort_key)
        except Exception as e:
            log.warning("Sorting failed, keeping current order", extra={"error": str(e)})
            errors.append(self._context(e, PipelineStage.SORTING, input_size, recoverable=True))

        admitted = self._admit(records, sort_key, now, input_size, errors, log)

        metrics = collect_metrics(
            input_size,
            self.profile,
            invalid_count=report.skipped_count + aggregation.skipped_count,
            anomalies=anomalies,
        )
        stats = collect_stats(report.entries, admitted, metrics)

        log.info(
            "Pipeline completed",
            extra={
                "input_size": input_size,
                "sessions": len(aggregation.records),
                "admitted": len(admitted),
                "errors": len(errors),
                "anomalies": len(anomalies),
                "status": metrics.performance_status.value,
            },
        )
        return PipelineResult(
            records=admitted,
            metrics=metrics,
            validation=report,
            errors=tuple(errors),
            anomalies=anomalies,
            tier=self.profile.tier,
            stats=stats,
        )


def process_conversations(
    entries: Iterable[Any] | None,
    tier: CapabilityTier | str | ProcessingProfile | None = None,
    appointments: Appointments | None = None,
    sort_key: SortKey | str = SortKey.RECENCY,
    now: datetime | None = None,
) -> PipelineResult:
    """Build a pipeline for ``tier`` and run it once."""
    return ConversationPipeline(tier).run(entries, appointments, sort_key=sort_key, now=now)
