"""Data models for the conversation pipeline.

LogEntry and ActorMeta sit at the input boundary and are validated pydantic
models. Everything the pipeline builds from them (conversation records,
analysis bundles) is an immutable dataclass; stages derive new instances with
``dataclasses.replace`` instead of mutating shared state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

ANONYMOUS_LABEL = "Anonymous User"
SESSION_STARTED = "Session started"


class Actor(str, Enum):
    """Author of a logged message."""

    USER = "user"
    ASSISTANT = "assistant"


class EngagementLevel(str, Enum):
    """User engagement bucket."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sentiment(str, Enum):
    """Keyword-based sentiment of the user's messages."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ActorMeta(BaseModel):
    """Optional naming metadata attached to a log entry."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    display_name: str | None = Field(
        None, validation_alias=AliasChoices("display_name", "displayName", "userName")
    )
    given_name: str | None = Field(
        None, validation_alias=AliasChoices("given_name", "givenName", "firstName", "given")
    )
    family_name: str | None = Field(
        None, validation_alias=AliasChoices("family_name", "familyName", "lastName", "family")
    )

    @field_validator("display_name", "given_name", "family_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # Names are optional; anything that isn't text is treated as absent
        if isinstance(value, str):
            return value.strip() or None
        return None


class LogEntry(BaseModel):
    """A single message from the chat log.

    Attributes:
        session_id: Identifier shared by all messages of one conversation
        timestamp: When the message was logged. Naive values are read as UTC.
        actor: Message author. ``ai`` is accepted for ``assistant``.
        content: Message text
        actor_meta: Optional naming metadata for the author
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    session_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("session_id", "sessionId")
    )
    timestamp: datetime
    actor: Actor = Field(..., validation_alias=AliasChoices("actor", "messageType", "role"))
    content: str
    actor_meta: ActorMeta | None = Field(
        None, validation_alias=AliasChoices("actor_meta", "actorMeta", "userInfo")
    )

    @field_validator("session_id", mode="before")
    @classmethod
    def _strip_session_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("actor", mode="before")
    @classmethod
    def _normalize_actor(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "ai":
                return Actor.ASSISTANT
        return value

    @field_validator("actor_meta", mode="before")
    @classmethod
    def _drop_malformed_meta(cls, value: Any) -> Any:
        if isinstance(value, (ActorMeta, Mapping)):
            return value
        return None

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_user(self) -> bool:
        return self.actor is Actor.USER


@dataclass(frozen=True)
class AppointmentLink:
    """Pre-resolved appointment linkage for one session."""

    linked: bool = False
    appointment_id: str | None = None


@dataclass(frozen=True)
class AnalysisBundle:
    """
    Deep-analysis results for one conversation.

    Attributes:
        average_response_time: Mean gap between messages in seconds
        conversation_depth: Message count capped at 10
        engagement_level: User engagement bucket
        detected_intent: Intent category, ``general`` or ``unknown``
        sentiment: Keyword sentiment of the user's text
        has_resolution: Whether the closing messages signal a resolution
    """

    average_response_time: int
    conversation_depth: int
    engagement_level: EngagementLevel
    detected_intent: str
    sentiment: Sentiment
    has_resolution: bool


@dataclass(frozen=True)
class ConversationRecord:
    """
    Summary of one chat session.

    Built by the aggregator and refined by later stages. Instances are
    immutable, so a record that passed the admission filter can be handed to
    consumers as-is.

    Attributes:
        session_id: Session identifier
        participant_label: Resolved display name or the anonymous placeholder
        messages: Messages in ascending timestamp order
        message_count: Always equal to ``len(messages)``
        last_activity: Latest message timestamp
        first_significant_message: Representative opening user message
        duration_estimate: Formatted duration such as ``12m`` or ``1h 5m``
        appointment_linked: Whether the session has a booked appointment
        appointment_id: Identifier of the linked appointment
        analysis: Deep-analysis bundle when enabled for the tier
        priority_score: Admission priority, set by the scorer
    """

    session_id: str
    participant_label: str
    messages: tuple[LogEntry, ...]
    message_count: int
    last_activity: datetime
    first_significant_message: str = ""
    duration_estimate: str = "0m"
    appointment_linked: bool = False
    appointment_id: str | None = None
    analysis: AnalysisBundle | None = None
    priority_score: float = 0.0

    @property
    def user_messages(self) -> tuple[LogEntry, ...]:
        return tuple(m for m in self.messages if m.is_user)

    @property
    def first_activity(self) -> datetime | None:
        return self.messages[0].timestamp if self.messages else None

    @property
    def is_anonymous(self) -> bool:
        return self.participant_label == ANONYMOUS_LABEL
