"""Shared fixtures for chatlog pipeline tests."""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from chatlog_pipeline.config import (
    CapabilityTier,
    ProcessingProfile,
    clear_config_cache,
    load_keyword_tables,
    resolve_profile,
)
from chatlog_pipeline.enrichment import ConversationAnalyzer
from chatlog_pipeline.logging_manager import ROOT_LOGGER
from chatlog_pipeline.models import Actor, ActorMeta, ConversationRecord, LogEntry

BASE_TIME = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_state():
    """Drop cached config and package log handlers around every test."""
    clear_config_cache()
    yield
    clear_config_cache()
    package_logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def base_time() -> datetime:
    """Fixed reference timestamp for messages."""
    return BASE_TIME


@pytest.fixture
def constrained_profile() -> ProcessingProfile:
    return resolve_profile(CapabilityTier.CONSTRAINED)


@pytest.fixture
def standard_profile() -> ProcessingProfile:
    return resolve_profile(CapabilityTier.STANDARD)


@pytest.fixture
def full_profile() -> ProcessingProfile:
    return resolve_profile(CapabilityTier.FULL)


@pytest.fixture
def small_profile() -> ProcessingProfile:
    """Tiny profile that makes batching and budgets easy to observe."""
    return ProcessingProfile(
        tier=CapabilityTier.STANDARD,
        max_events_processed=10,
        batch_size=3,
        display_budget=2,
        enable_deep_analysis=True,
        warning_threshold=5,
        critical_threshold=10,
        processing_rate=5,
    )


@pytest.fixture
def analyzer() -> ConversationAnalyzer:
    """Analyzer built from the packaged keyword tables."""
    return ConversationAnalyzer(load_keyword_tables())


@pytest.fixture
def make_entry() -> Callable[..., LogEntry]:
    """Factory for LogEntry objects offset from BASE_TIME."""

    def _make(
        session_id: str = "s1",
        seconds: float = 0,
        actor: Actor | str = Actor.USER,
        content: str = "Hello there, I have a question",
        name: str | None = None,
    ) -> LogEntry:
        return LogEntry(
            session_id=session_id,
            timestamp=BASE_TIME + timedelta(seconds=seconds),
            actor=actor,
            content=content,
            actor_meta=ActorMeta(display_name=name) if name else None,
        )

    return _make


@pytest.fixture
def make_raw_entry() -> Callable[..., dict[str, Any]]:
    """Factory for raw camelCase entries as a chat widget would log them."""

    def _make(
        session_id: str = "s1",
        seconds: float = 0,
        message_type: str = "user",
        content: str = "Hello there, I have a question",
        user_info: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        raw: dict[str, Any] = {
            "sessionId": session_id,
            "timestamp": (BASE_TIME + timedelta(seconds=seconds)).isoformat(),
            "messageType": message_type,
            "content": content,
        }
        if user_info is not None:
            raw["userInfo"] = user_info
        return raw

    return _make


@pytest.fixture
def make_record() -> Callable[..., ConversationRecord]:
    """Factory for structurally valid ConversationRecords."""

    def _make(
        session_id: str = "s1",
        label: str = "Ann Lee",
        count: int = 2,
        start: datetime = BASE_TIME,
        spacing: timedelta = timedelta(minutes=1),
        **changes: Any,
    ) -> ConversationRecord:
        messages = tuple(
            LogEntry(
                session_id=session_id,
                timestamp=start + spacing * i,
                actor=Actor.USER if i % 2 == 0 else Actor.ASSISTANT,
                content=f"Message number {i}",
            )
            for i in range(count)
        )
        record = ConversationRecord(
            session_id=session_id,
            participant_label=label,
            messages=messages,
            message_count=len(messages),
            last_activity=messages[-1].timestamp if messages else start,
        )
        return replace(record, **changes) if changes else record

    return _make


@pytest.fixture
def sample_entries(make_raw_entry) -> list[dict[str, Any]]:
    """Three realistic sessions, interleaved as they arrive in a log."""
    return [
        make_raw_entry("sess-a", 0, "user", "Hi", {"displayName": "Maria Garcia"}),
        make_raw_entry("sess-b", 5, "user", "How much does the premium plan cost?"),
        make_raw_entry("sess-a", 20, "assistant", "Hello Maria! How can I help you today?"),
        make_raw_entry("sess-a", 60, "user", "Can I schedule a demo for next week?"),
        make_raw_entry("sess-b", 65, "ai", "The premium plan is 49 dollars per month."),
        make_raw_entry("sess-c", 90, "user", "John Smith"),
        make_raw_entry("sess-a", 120, "assistant", "Sure, I have booked a demo for Tuesday."),
        make_raw_entry("sess-c", 100, "assistant", "Nice to meet you John. What brings you here?"),
        make_raw_entry("sess-a", 180, "user", "Perfect, thanks a lot!"),
        make_raw_entry("sess-c", 400, "user", "The api integration keeps failing with an error"),
    ]
