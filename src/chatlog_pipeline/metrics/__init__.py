"""Processing metrics collection."""

from chatlog_pipeline.metrics.collector import (
    assess_data_quality,
    collect_metrics,
    collect_stats,
    performance_recommendations,
)
from chatlog_pipeline.metrics.models import (
    DataQuality,
    PerformanceStatus,
    ProcessingMetrics,
    ProcessingStats,
)

__all__ = [
    "DataQuality",
    "PerformanceStatus",
    "ProcessingMetrics",
    "ProcessingStats",
    "assess_data_quality",
    "collect_metrics",
    "collect_stats",
    "performance_recommendations",
]
