from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Sentiment = Literal["positive", "negative", "neutral"]
SnapshotKind = Literal["signals", "narratives"]

RawRecord = dict[str, Any]


class RadarModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire and on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Signal(RadarModel):
    """Canonical, deduplicated unit of evidence about ecosystem activity."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: str
    source: str = "unknown"
    sub_source: str = "unknown"

    title: str = ""
    text: str = ""
    url: str | None = None

    date: str
    collected_at: str

    topics: list[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"
    signal_type: str = "general"

    # Source-specific metrics, only present when the origin supplies them
    engagement: str | None = None
    stars: int | None = None
    market_cap: float | None = None

    # Source-specific identity and extras
    username: str | None = None
    ticker: str | None = None
    address: str | None = None
    key_insight: str | None = None
    data_point: str | None = None
    description: str | None = None
    query: str | None = None


class TopicCount(RadarModel):
    topic: str
    count: int


class DateRange(RadarModel):
    earliest: str | None = None
    latest: str | None = None


class SignalStats(RadarModel):
    total: int = 0
    by_source: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    top_topics: list[TopicCount] = Field(default_factory=list)
    date_range: DateRange = Field(default_factory=DateRange)


class SignalSet(RadarModel):
    """Signals sorted newest first plus their aggregate statistics."""

    signals: list[Signal] = Field(default_factory=list)
    stats: SignalStats = Field(default_factory=SignalStats)


class BuildIdea(RadarModel):
    name: str = "Unnamed Idea"
    one_liner: str = ""
    description: str = ""
    why_solana: str = ""
    technical_approach: str = ""
    difficulty: str = "medium"
    target_user: str = ""
    monetization: str = ""


class NarrativeScores(RadarModel):
    """Per-factor point breakdown of a narrative's score."""

    cross_source: int = 0
    evidence: int = 0
    velocity: int = 0
    stage: int = 0
    confidence: int = 0
    signal_count: int = 0

    @property
    def total(self) -> int:
        return (
            self.cross_source
            + self.evidence
            + self.velocity
            + self.stage
            + self.confidence
            + self.signal_count
        )


class Narrative(RadarModel):
    """Thematic cluster of signals, as classified and then scored by the engine."""

    id: str = ""
    name: str = "Unnamed Narrative"
    description: str = ""
    evidence: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    stage: str | None = None
    velocity: str | None = None
    confidence: float | None = None

    scores: NarrativeScores | None = None
    total_score: int = 0
    matching_signal_count: int = 0
    rank: int = 0
    build_ideas: list[BuildIdea] = Field(default_factory=list)

    @field_validator("evidence", "sources", "topics", mode="before")
    @classmethod
    def coerce_string_list(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item) for item in value if item is not None and str(item).strip()]

    @field_validator("id", "description", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return "Unnamed Narrative"
        return str(value)

    @field_validator("stage", "velocity", mode="before")
    @classmethod
    def coerce_label(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip().lower() or None

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return None
        return confidence if math.isfinite(confidence) else None


class SignalSnapshot(RadarModel):
    """Persisted, self-describing signal-set document."""

    timestamp: str
    signal_count: int
    day_range: int | None = None
    stats: SignalStats | None = None
    signals: list[Signal] = Field(default_factory=list)


class NarrativeSnapshot(RadarModel):
    """Persisted, self-describing narrative-set document."""

    timestamp: str
    narrative_count: int
    stats: SignalStats | None = None
    narratives: list[Narrative] = Field(default_factory=list)


class StorageStats(RadarModel):
    signal_snapshots: int = 0
    narrative_snapshots: int = 0
    has_latest_signals: bool = False
    has_latest_narratives: bool = False


class PipelineRequest(RadarModel):
    day_range: int | None = Field(default=None, ge=1, le=365)


class NarrativeSummary(RadarModel):
    rank: int
    name: str
    total_score: int
    build_ideas_count: int = 0

    @classmethod
    def from_narrative(cls, narrative: Narrative) -> "NarrativeSummary":
        return cls(
            rank=narrative.rank,
            name=narrative.name,
            total_score=narrative.total_score,
            build_ideas_count=len(narrative.build_ideas),
        )
