"""Error taxonomy for the conversation pipeline."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class PipelineStage(str, Enum):
    """Stage boundaries the pipeline guards."""

    VALIDATION = "validation"
    AGGREGATION = "aggregation"
    ENRICHMENT = "enrichment"
    SANITIZATION = "sanitization"
    SCORING = "scoring"
    SORTING = "sorting"
    ADMISSION = "admission"
    PIPELINE = "pipeline"


class PipelineError(Exception):
    """Base class for pipeline errors."""


class SchemaError(PipelineError, ValueError):
    """A log entry failed schema checks.

    Attributes:
        index: Position of the entry in the input, if known
        reasons: Individual validation failures
    """

    def __init__(self, message: str, index: int | None = None, reasons: list[str] | None = None):
        super().__init__(message)
        self.index = index
        self.reasons = reasons or [message]


class AggregationFailure(PipelineError):
    """Aggregation could not produce a trustworthy record set."""


class EnrichmentDegradation(PipelineError):
    """Enrichment lost features for one or more records."""


class AdmissionFailure(PipelineError):
    """Value-ranked admission failed; callers fall back to recency order."""


class AnomalyWarning(UserWarning):
    """Non-fatal data anomaly. Reported through metrics, never raised."""


@dataclass(frozen=True)
class ErrorContext:
    """Structured description of an error caught at a stage boundary.

    Attributes:
        stage: Stage where the error was caught
        tier: Capability tier of the run
        input_size: Number of raw entries handed to the pipeline
        error: Error message
        error_type: Exception class name
        recoverable: Whether the pipeline continued with degraded data
        timestamp: When the error was recorded
    """

    stage: PipelineStage
    tier: str
    input_size: int
    error: str
    error_type: str
    recoverable: bool
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        stage: PipelineStage,
        tier: str,
        input_size: int,
        recoverable: bool,
    ) -> "ErrorContext":
        return cls(
            stage=stage,
            tier=tier,
            input_size=input_size,
            error=str(exc),
            error_type=type(exc).__name__,
            recoverable=recoverable,
        )
