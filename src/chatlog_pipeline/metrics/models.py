"""Data models for processing metrics and statistics."""

from dataclasses import dataclass
from enum import Enum


class PerformanceStatus(Enum):
    """Load level of a run relative to the tier thresholds.

    Attributes:
        GOOD: Input size within the warning threshold
        WARNING: Input size above the warning threshold
        CRITICAL: Input size above the critical threshold
    """

    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ProcessingMetrics:
    """
    Report on how much of the input a run could process.

    Attributes:
        total_count: Raw entries supplied
        processed_count: Entries within the tier's processing limit
        skipped_count: Entries beyond the processing limit
        ratio: processed_count / total_count (1.0 for empty input)
        performance_status: Load level from the tier thresholds
        estimated_seconds: Expected processing time at the tier's rate
        recommend_virtualization: Whether the consumer should virtualize its list
        invalid_count: Entries rejected by schema checks
        anomalies: Non-fatal data anomaly warnings
    """

    total_count: int
    processed_count: int
    skipped_count: int
    ratio: float
    performance_status: PerformanceStatus
    estimated_seconds: int
    recommend_virtualization: bool
    invalid_count: int = 0
    anomalies: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcessingStats:
    """Summary of a run's input and output."""

    total_messages: int
    unique_sessions: int
    processed_conversations: int
    processing_efficiency: float
    average_messages_per_conversation: float
    metrics: ProcessingMetrics


@dataclass(frozen=True)
class DataQuality:
    """Percentages (0-100) of records that pass each quality dimension."""

    completeness: int
    validity: int
    consistency: int
    overall: int
