"""Processing profile configuration for the conversation pipeline.

Capability tiers map to ProcessingProfile objects through a table loaded from
``profiles.yaml``. The same file carries the keyword tables used by deep
analysis, the priority scoring weights and the optional session rules, so every
fixed lookup table reaches the pipeline through this module rather than as a
module-level global.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

PROFILES_ENV_VAR = "CHATLOG_PIPELINE_PROFILES"


class CapabilityTier(str, Enum):
    """Capability tier supplied by the external device detector."""

    CONSTRAINED = "constrained"
    STANDARD = "standard"
    FULL = "full"


class NameResolutionStrategy(str, Enum):
    """Strategy used to pick the first significant message."""

    SIMPLE = "simple"
    ADVANCED = "advanced"


class DurationPrecision(str, Enum):
    """Rounding mode for the formatted conversation duration."""

    APPROXIMATE = "approximate"
    PRECISE = "precise"


class SchemaStrictness(str, Enum):
    """How malformed log entries are handled.

    Attributes:
        SKIP: Drop the malformed entry and keep going.
        ABORT: Reject the whole input and return no records.
    """

    SKIP = "skip"
    ABORT = "abort"


class ProcessingProfile(BaseModel):
    """Performance and quality budget for one capability tier."""

    model_config = ConfigDict(frozen=True)

    tier: CapabilityTier
    max_events_processed: int = Field(..., gt=0)
    batch_size: int = Field(..., gt=0)
    display_budget: int = Field(..., ge=0)
    enable_deep_analysis: bool = False
    name_resolution_strategy: NameResolutionStrategy = NameResolutionStrategy.SIMPLE
    duration_precision: DurationPrecision = DurationPrecision.APPROXIMATE
    warning_threshold: int = Field(..., ge=0)
    critical_threshold: int = Field(..., ge=0)
    processing_rate: int = Field(..., gt=0)
    schema_strictness: SchemaStrictness = SchemaStrictness.SKIP

    @model_validator(mode="after")
    def _check_thresholds(self) -> ProcessingProfile:
        if self.critical_threshold < self.warning_threshold:
            raise ValueError(
                f"critical_threshold ({self.critical_threshold}) must not be below "
                f"warning_threshold ({self.warning_threshold})"
            )
        return self


def _as_table(value: Any) -> Any:
    """Convert a mapping of name -> word list into an ordered tuple of pairs."""
    if isinstance(value, dict):
        return tuple((str(name), tuple(words)) for name, words in value.items())
    return value


class KeywordTables(BaseModel):
    """Keyword lists used by the heuristic classifiers.

    Tables keep their YAML order, which is also the tie-break order wherever a
    classifier needs one.
    """

    model_config = ConfigDict(frozen=True)

    intent: tuple[tuple[str, tuple[str, ...]], ...]
    positive: tuple[str, ...]
    negative: tuple[str, ...]
    resolution: tuple[str, ...]
    greetings: tuple[str, ...]
    topics: tuple[tuple[str, tuple[str, ...]], ...] = ()

    @field_validator("intent", "topics", mode="before")
    @classmethod
    def _coerce_tables(cls, value: Any) -> Any:
        return _as_table(value)


class ScoringWeights(BaseModel):
    """Named point caps and rates for the priority score."""

    model_config = ConfigDict(frozen=True)

    recency_max_points: float = 10.0
    engagement_points_per_message: float = 0.5
    engagement_max_points: float = 5.0
    appointment_bonus: float = 3.0
    duration_points_per_minute: float = 0.1
    duration_max_points: float = 2.0


class SessionRules(BaseModel):
    """Opt-in session merge/split behaviour. Both are disabled by default."""

    model_config = ConfigDict(frozen=True)

    merge_enabled: bool = False
    merge_gap_seconds: float = Field(300.0, gt=0)
    split_enabled: bool = False
    split_gap_minutes: float = Field(60.0, gt=0)


def _profiles_path() -> Path:
    override = os.getenv(PROFILES_ENV_VAR)
    if override:
        return Path(override)
    return Path(__file__).parent / "profiles.yaml"


@lru_cache(maxsize=4)
def _load_yaml(path: str) -> dict[str, Any]:
    """Load and cache a profile YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML cannot be parsed or is not a mapping
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Profile configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse profile configuration YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Profile configuration must be a mapping, got {type(data).__name__}")

    logger.debug("Loaded profile configuration", extra={"path": str(config_path)})
    return data


def load_profile_config(path: str | Path | None = None) -> dict[str, Any]:
    """Return the raw profile configuration mapping."""
    return _load_yaml(str(path or _profiles_path()))


def clear_config_cache() -> None:
    """Drop cached YAML so the next lookup re-reads the file."""
    _load_yaml.cache_clear()


def _fallback_tier(config: dict[str, Any]) -> CapabilityTier:
    return CapabilityTier(config.get("fallback_tier", CapabilityTier.CONSTRAINED.value))


def resolve_profile(
    tier: CapabilityTier | str | None, path: str | Path | None = None
) -> ProcessingProfile:
    """Map a capability tier tag to its ProcessingProfile.

    Args:
        tier: Tier enum member or tag string. Unknown tags and None fall back
            to the most conservative profile.
        path: Optional override for the YAML file location.

    Returns:
        The resolved, immutable ProcessingProfile.

    Raises:
        ValueError: If the configuration has no entry for the resolved tier.
    """
    config = load_profile_config(path)
    tiers = config.get("tiers") or {}

    try:
        resolved = CapabilityTier(tier) if tier is not None else None
    except ValueError:
        resolved = None

    if resolved is None:
        resolved = _fallback_tier(config)
        logger.warning(
            "Unknown capability tier, using fallback profile",
            extra={"requested_tier": str(tier), "fallback_tier": resolved.value},
        )

    settings = tiers.get(resolved.value)
    if settings is None:
        raise ValueError(f"No profile configured for tier: {resolved.value}")

    return ProcessingProfile(tier=resolved, **settings)


def load_keyword_tables(path: str | Path | None = None) -> KeywordTables:
    """Build the keyword tables used by the conversation analyzer."""
    keywords = load_profile_config(path).get("keywords") or {}
    sentiment = keywords.get("sentiment") or {}
    return KeywordTables(
        intent=keywords.get("intent") or {},
        positive=sentiment.get("positive") or (),
        negative=sentiment.get("negative") or (),
        resolution=keywords.get("resolution") or (),
        greetings=keywords.get("greetings") or (),
        topics=keywords.get("topics") or {},
    )


def load_scoring_weights(path: str | Path | None = None) -> ScoringWeights:
    """Build the priority scoring weights."""
    return ScoringWeights(**(load_profile_config(path).get("scoring") or {}))


def load_session_rules(path: str | Path | None = None) -> SessionRules:
    """Build the optional session merge/split rules."""
    return SessionRules(**(load_profile_config(path).get("sessions") or {}))
