"""Signal normalisation: unify heterogeneous source records into ``Signal``s.

Every raw record from every source passes through :func:`normalize_signal`,
which never raises for JSON-like input. :func:`normalize_all` then removes
duplicates by fingerprint (first seen wins, later duplicates are dropped,
not merged) and orders the result newest first.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from narrative_radar.core.config import TOP_TOPIC_LIMIT
from narrative_radar.domain.models import (
    DateRange,
    RawRecord,
    Signal,
    SignalSet,
    SignalStats,
    TopicCount,
)

logger = logging.getLogger(__name__)

ID_PREFIX = "sig_"
ID_TEXT_PREFIX_LENGTH = 50
TITLE_TEXT_LENGTH = 100
MAX_TOPIC_LENGTH = 50
VALID_SENTIMENTS = frozenset({"positive", "negative", "neutral"})
BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

_WHITESPACE = re.compile(r"\s+")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _first(raw: RawRecord, *keys: str) -> Any:
    """Return the first truthy value among ``keys``, or ``None``."""
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _string_hash(value: str) -> int:
    """Order-sensitive 32-bit rolling hash (``h * 31 + unit``) over UTF-16 code units."""
    data = value.encode("utf-16-le", "surrogatepass")
    result = 0
    for index in range(0, len(data), 2):
        code_unit = data[index] | (data[index + 1] << 8)
        result = (result * 31 + code_unit) & 0xFFFFFFFF
    if result >= 0x80000000:
        result -= 0x100000000
    return result


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_signal_id(raw: RawRecord) -> str:
    """Fingerprint a raw record from its source, sub-source and identifying key.

    The key is the first available of url, name, or the first 50 characters
    of text. Equal inputs always produce equal ids.
    """
    text = _as_text(raw.get("text"))
    key = _first(raw, "url", "name") or (text[:ID_TEXT_PREFIX_LENGTH] if text else "")
    parts = [
        _as_text(raw.get("source")) or "",
        _as_text(_first(raw, "subSource", "sub_source")) or "",
        _as_text(key) or "",
    ]
    return f"{ID_PREFIX}{_to_base36(abs(_string_hash('|'.join(parts))))}"


def extract_title(raw: RawRecord) -> str:
    """Derive a display title when the record carries neither name nor title."""
    name = _as_text(raw.get("name"))
    if name:
        return name
    text = _as_text(raw.get("text"))
    if text:
        return text[:TITLE_TEXT_LENGTH].strip()
    ticker = _as_text(raw.get("ticker"))
    if ticker:
        return f"${ticker}"
    return "Untitled Signal"


def classify_signal_type(raw: RawRecord) -> str:
    source = raw.get("source")
    sub_source = _as_text(_first(raw, "subSource", "sub_source")) or ""
    if source == "github":
        return "developer_activity"
    if source == "research":
        return "research_insight"
    if "pumpfun" in sub_source or "dexscreener" in sub_source:
        return "token_activity"
    if source == "onchain":
        return "onchain_activity"
    if source == "social":
        if sub_source == "kol":
            return "kol_signal"
        if sub_source == "trending":
            return "social_trending"
        return "social_mention"
    return "general"


def dedupe_topics(topics: Any) -> list[str]:
    """Lower-case, trim and underscore topic tags, dropping empties, overlong tags and repeats."""
    if not isinstance(topics, (list, tuple)):
        return []
    normalised: list[str] = []
    seen: set[str] = set()
    for topic in topics:
        if topic is None:
            continue
        tag = _WHITESPACE.sub("_", str(topic).lower().strip())
        if not tag or len(tag) >= MAX_TOPIC_LENGTH or tag in seen:
            continue
        seen.add(tag)
        normalised.append(tag)
    return normalised


def _sentiment(value: Any) -> str:
    label = (_as_text(value) or "").strip().lower()
    return label if label in VALID_SENTIMENTS else "neutral"


def normalize_signal(raw: Any) -> Signal:
    """Map one raw record onto the canonical ``Signal`` shape.

    Missing fields fall back to defaults; this never raises for JSON-like
    input. A ``Signal`` passed in is returned unchanged.
    """
    if isinstance(raw, Signal):
        return raw
    if not isinstance(raw, dict):
        raw = {}

    collected_at = _as_text(raw.get("collectedAt")) or _now_iso()

    return Signal(
        id=generate_signal_id(raw),
        source=_as_text(raw.get("source")) or "unknown",
        sub_source=_as_text(_first(raw, "subSource", "sub_source")) or "unknown",
        title=_as_text(_first(raw, "name", "title")) or extract_title(raw),
        text=_as_text(_first(raw, "text", "description")) or "",
        url=_as_text(_first(raw, "url", "news_url", "html_url")),
        date=_as_text(_first(raw, "date", "createdAt", "collectedAt")) or collected_at,
        collected_at=collected_at,
        topics=dedupe_topics(raw.get("topics") or []),
        sentiment=_sentiment(raw.get("sentiment")),
        signal_type=_as_text(raw.get("signalType")) or classify_signal_type(raw),
        engagement=_as_text(raw.get("engagement")),
        stars=_as_int(raw.get("stars")),
        market_cap=_as_float(raw.get("marketCap")),
        username=_as_text(raw.get("username")),
        ticker=_as_text(raw.get("ticker")),
        address=_as_text(raw.get("address")),
        key_insight=_as_text(raw.get("keyInsight")),
        data_point=_as_text(raw.get("dataPoint")),
        description=_as_text(raw.get("description")),
        query=_as_text(raw.get("query")),
    )


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, TypeError, OverflowError, date_parser.ParserError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def signal_sort_key(signal: Signal, fallback: datetime) -> datetime:
    """Event time for ordering; unparsable dates sort at collection time."""
    return _parse_date(signal.date) or _parse_date(signal.collected_at) or fallback


def normalize_all(raw_records: Iterable[Any]) -> list[Signal]:
    """Normalise, deduplicate by fingerprint (first seen wins) and sort newest first."""
    seen: set[str] = set()
    signals: list[Signal] = []
    dropped = 0

    for raw in raw_records:
        signal = normalize_signal(raw)
        if signal.id in seen:
            dropped += 1
            continue
        seen.add(signal.id)
        signals.append(signal)

    if dropped:
        logger.info("Dropped %d duplicate signals", dropped)

    now = datetime.now(timezone.utc)
    return sorted(signals, key=lambda s: signal_sort_key(s, now), reverse=True)


def get_signal_stats(signals: list[Signal]) -> SignalStats:
    """Aggregate counts by source and type, the top topics, and the date range, in one pass."""
    by_source: dict[str, int] = {}
    by_type: dict[str, int] = {}
    topic_counts: dict[str, int] = {}

    for signal in signals:
        by_source[signal.source] = by_source.get(signal.source, 0) + 1
        by_type[signal.signal_type] = by_type.get(signal.signal_type, 0) + 1
        for topic in signal.topics:
            topic_counts[topic] = topic_counts.get(topic, 0) + 1

    # Stable sort keeps first-encountered order among equal counts
    top_topics = sorted(topic_counts.items(), key=lambda item: item[1], reverse=True)[:TOP_TOPIC_LIMIT]

    return SignalStats(
        total=len(signals),
        by_source=by_source,
        by_type=by_type,
        top_topics=[TopicCount(topic=topic, count=count) for topic, count in top_topics],
        date_range=DateRange(
            earliest=signals[-1].date if signals else None,
            latest=signals[0].date if signals else None,
        ),
    )


def build_signal_set(raw_records: Iterable[Any]) -> SignalSet:
    signals = normalize_all(raw_records)
    return SignalSet(signals=signals, stats=get_signal_stats(signals))
