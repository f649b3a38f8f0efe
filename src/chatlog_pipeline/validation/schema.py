"""Pre-aggregation schema checks for raw log entries."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from chatlog_pipeline.config import SchemaStrictness
from chatlog_pipeline.errors import SchemaError
from chatlog_pipeline.models import LogEntry

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10
OVERFLOW_NOTICE = f"... and more validation errors (showing first {MAX_REPORTED_ERRORS})"


@dataclass(frozen=True)
class ValidationReport:
    """
    Outcome of the schema pass.

    Attributes:
        is_valid: False only when strict checking rejected the input
        errors: Human-readable problems, capped at MAX_REPORTED_ERRORS
        entries: Entries that passed, in input order. Empty when rejected.
        skipped_count: Entries dropped because they failed checks
        total_count: Entries inspected
    """

    is_valid: bool
    errors: tuple[str, ...]
    entries: tuple[LogEntry, ...]
    skipped_count: int
    total_count: int


def _describe(exc: ValidationError) -> list[str]:
    reasons = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "entry"
        reasons.append(f"{location}: {err.get('msg', 'invalid value')}")
    return reasons


def parse_entry(raw: LogEntry | Mapping[str, Any], index: int | None = None) -> LogEntry:
    """
    Coerce one raw entry into a LogEntry.

    Args:
        raw: A LogEntry or a mapping with the entry fields
        index: Position in the input, used in error messages

    Returns:
        The validated LogEntry

    Raises:
        SchemaError: If required fields are missing or unparseable
    """
    if isinstance(raw, LogEntry):
        return raw

    prefix = f"Log at index {index}" if index is not None else "Log entry"

    if not isinstance(raw, Mapping):
        raise SchemaError(
            f"{prefix} must be a mapping, got {type(raw).__name__}",
            index=index,
        )

    try:
        return LogEntry.model_validate(dict(raw))
    except ValidationError as e:
        reasons = [f"{prefix}: {reason}" for reason in _describe(e)]
        raise SchemaError("; ".join(reasons), index=index, reasons=reasons) from e


class SchemaValidator:
    """
    Validates raw log entries before aggregation.

    Under SKIP strictness malformed entries are dropped and reported; the input
    as a whole stays valid. Under ABORT strictness a single malformed entry
    rejects the input so that no partial data is aggregated.
    """

    def __init__(self, strictness: SchemaStrictness = SchemaStrictness.SKIP) -> None:
        self.strictness = SchemaStrictness(strictness)

    def validate(self, raw_entries: Iterable[LogEntry | Mapping[str, Any]] | None) -> ValidationReport:
        """
        Check every entry and build a report.

        Args:
            raw_entries: Entries as supplied by the caller

        Returns:
            ValidationReport describing accepted entries and problems
        """
        if raw_entries is None or isinstance(raw_entries, (str, bytes, Mapping)):
            return ValidationReport(
                is_valid=False,
                errors=("Chat logs must be a sequence of entries",),
                entries=(),
                skipped_count=0,
                total_count=0,
            )

        errors: list[str] = []
        accepted: list[LogEntry] = []
        skipped = 0
        total = 0

        for index, raw in enumerate(raw_entries):
            total += 1
            try:
                accepted.append(parse_entry(raw, index))
            except SchemaError as e:
                skipped += 1
                if len(errors) < MAX_REPORTED_ERRORS:
                    errors.extend(e.reasons[: MAX_REPORTED_ERRORS - len(errors)])
                elif errors[-1] != OVERFLOW_NOTICE:
                    errors.append(OVERFLOW_NOTICE)

        if self.strictness is SchemaStrictness.ABORT and skipped:
            logger.warning(
                "Schema validation rejected input",
                extra={"invalid_entries": skipped, "total_entries": total},
            )
            return ValidationReport(
                is_valid=False,
                errors=tuple(errors),
                entries=(),
                skipped_count=skipped,
                total_count=total,
            )

        if skipped:
            logger.info(
                "Skipped malformed log entries",
                extra={"invalid_entries": skipped, "total_entries": total},
            )

        return ValidationReport(
            is_valid=True,
            errors=tuple(errors),
            entries=tuple(accepted),
            skipped_count=skipped,
            total_count=total,
        )
