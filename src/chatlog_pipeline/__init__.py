"""Conversation aggregation, enrichment and priority-windowed filtering for chat logs."""

__version__ = "1.0.0"

from chatlog_pipeline.config import CapabilityTier, ProcessingProfile, resolve_profile  # noqa: E402
from chatlog_pipeline.errors import (  # noqa: E402
    AdmissionFailure,
    AggregationFailure,
    EnrichmentDegradation,
    ErrorContext,
    PipelineError,
    SchemaError,
)
from chatlog_pipeline.models import (  # noqa: E402
    ActorMeta,
    AppointmentLink,
    ConversationRecord,
    LogEntry,
)
from chatlog_pipeline.pipeline import (  # noqa: E402
    ConversationPipeline,
    PipelineResult,
    process_conversations,
)
from chatlog_pipeline.ranking import SortKey  # noqa: E402

__all__ = [
    "ActorMeta",
    "AdmissionFailure",
    "AggregationFailure",
    "AppointmentLink",
    "CapabilityTier",
    "ConversationPipeline",
    "ConversationRecord",
    "EnrichmentDegradation",
    "ErrorContext",
    "LogEntry",
    "PipelineError",
    "PipelineResult",
    "ProcessingProfile",
    "SchemaError",
    "SortKey",
    "__version__",
    "process_conversations",
    "resolve_profile",
]
