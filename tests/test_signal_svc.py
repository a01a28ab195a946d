"""
Tests for signal normalisation, fingerprinting and statistics.
"""
from __future__ import annotations

from narrative_radar.domain.models import Signal
from narrative_radar.services.signal_svc import (
    build_signal_set,
    classify_signal_type,
    dedupe_topics,
    extract_title,
    generate_signal_id,
    get_signal_stats,
    normalize_all,
    normalize_signal,
)


def test_fingerprint_of_empty_record_is_known_value():
    # "||" hashes to 124 * 31 + 124 = 3968, which is "328" in base 36
    assert generate_signal_id({}) == "sig_328"


def test_fingerprint_is_stable_and_key_sensitive():
    raw = {"source": "github", "subSource": "new_repos", "name": "solana-labs/agave"}
    assert generate_signal_id(raw) == generate_signal_id(dict(raw))
    assert generate_signal_id(raw) != generate_signal_id({**raw, "name": "solana-labs/other"})
    assert generate_signal_id(raw) != generate_signal_id({**raw, "subSource": "trending_repos"})


def test_fingerprint_prefers_url_then_name_then_text_prefix():
    base = {"source": "social", "subSource": "kol"}
    with_url = {**base, "url": "https://x.com/a/1", "name": "ignored", "text": "ignored"}
    assert generate_signal_id(with_url) == generate_signal_id({**base, "url": "https://x.com/a/1"})

    long_text = "x" * 50
    assert generate_signal_id({**base, "text": long_text + " tail one"}) == generate_signal_id(
        {**base, "text": long_text + " tail two"}
    )


def test_fingerprint_ignores_metric_fields():
    first = {"source": "github", "name": "org/repo", "stars": 10}
    second = {"source": "github", "name": "org/repo", "stars": 500}
    assert generate_signal_id(first) == generate_signal_id(second)


def test_normalize_all_keeps_first_github_duplicate():
    records = [
        {"source": "github", "subSource": "new_repos", "name": "org/repo", "stars": 12, "date": "2025-01-02T00:00:00Z"},
        {"source": "github", "subSource": "new_repos", "name": "org/repo", "stars": 99, "date": "2025-01-03T00:00:00Z"},
    ]

    signals = normalize_all(records)

    assert len(signals) == 1
    assert signals[0].stars == 12


def test_normalize_all_is_idempotent_on_signals():
    signals = normalize_all([
        {"source": "social", "text": "first post", "date": "2025-01-01T00:00:00Z"},
        {"source": "social", "text": "second post", "date": "2025-01-02T00:00:00Z"},
    ])
    assert normalize_all(signals) == signals


def test_normalize_all_sorts_newest_first_with_stable_ties():
    records = [
        {"source": "research", "text": "older", "date": "2025-01-01T00:00:00Z"},
        {"source": "research", "text": "tie a", "date": "2025-03-01T00:00:00Z"},
        {"source": "research", "text": "tie b", "date": "2025-03-01T00:00:00Z"},
    ]

    signals = normalize_all(records)

    assert [s.text for s in signals] == ["tie a", "tie b", "older"]


def test_normalize_signal_never_raises_on_garbage():
    signal = normalize_signal("not a record")
    assert isinstance(signal, Signal)
    assert signal.source == "unknown"
    assert signal.sub_source == "unknown"
    assert signal.title == "Untitled Signal"
    assert signal.sentiment == "neutral"
    assert signal.signal_type == "general"


def test_normalize_signal_field_fallbacks():
    signal = normalize_signal({
        "source": "onchain",
        "subSource": "pumpfun_trending",
        "ticker": "BONK",
        "description": "dog coin",
        "marketCap": "12345.5",
        "collectedAt": "2025-02-01T00:00:00Z",
        "sentiment": "EUPHORIC",
        "topics": ["Meme Coin", "meme coin", "", None, "x" * 60],
    })

    assert signal.title == "$BONK"
    assert signal.text == "dog coin"
    assert signal.market_cap == 12345.5
    assert signal.date == "2025-02-01T00:00:00Z"
    assert signal.sentiment == "neutral"
    assert signal.signal_type == "token_activity"
    assert signal.topics == ["meme_coin"]


def test_normalize_signal_keeps_zero_stars():
    signal = normalize_signal({"source": "github", "name": "org/new", "stars": 0})
    assert signal.stars == 0


def test_explicit_signal_type_wins():
    signal = normalize_signal({"source": "social", "subSource": "trending", "signalType": "launch"})
    assert signal.signal_type == "launch"


def test_classify_signal_type_by_source():
    assert classify_signal_type({"source": "github"}) == "developer_activity"
    assert classify_signal_type({"source": "research"}) == "research_insight"
    assert classify_signal_type({"source": "onchain", "subSource": "dexscreener_boosted"}) == "token_activity"
    assert classify_signal_type({"source": "onchain", "subSource": "network_stats"}) == "onchain_activity"
    assert classify_signal_type({"source": "social", "subSource": "kol"}) == "kol_signal"
    assert classify_signal_type({"source": "social", "subSource": "trending"}) == "social_trending"
    assert classify_signal_type({"source": "social", "subSource": "topic_search"}) == "social_mention"
    assert classify_signal_type({}) == "general"


def test_extract_title_truncates_text():
    assert extract_title({"text": "  " + "a" * 150}) == ("  " + "a" * 98).strip()
    assert extract_title({"name": "Named"}) == "Named"


def test_dedupe_topics_rejects_non_lists():
    assert dedupe_topics("defi") == []
    assert dedupe_topics(["DeFi", "AI  Agents"]) == ["defi", "ai_agents"]


def test_signal_stats_counts_and_topics():
    signal_set = build_signal_set([
        {"source": "social", "subSource": "kol", "text": "a", "topics": ["defi", "ai"], "date": "2025-01-03T00:00:00Z"},
        {"source": "social", "subSource": "kol", "text": "b", "topics": ["ai"], "date": "2025-01-02T00:00:00Z"},
        {"source": "github", "name": "org/c", "topics": ["depin"], "date": "2025-01-01T00:00:00Z"},
    ])

    stats = signal_set.stats
    assert stats.total == 3
    assert stats.by_source == {"social": 2, "github": 1}
    assert stats.by_type == {"kol_signal": 2, "developer_activity": 1}
    assert [(t.topic, t.count) for t in stats.top_topics] == [("ai", 2), ("defi", 1), ("depin", 1)]
    assert stats.date_range.latest == "2025-01-03T00:00:00Z"
    assert stats.date_range.earliest == "2025-01-01T00:00:00Z"


def test_signal_stats_empty():
    stats = get_signal_stats([])
    assert stats.total == 0
    assert stats.top_topics == []
    assert stats.date_range.earliest is None
    assert stats.date_range.latest is None


def test_signal_serialises_camel_case():
    wire = normalize_signal({"source": "research", "subSource": "defi_analysis", "keyInsight": "TVL up"}).to_wire()
    assert wire["subSource"] == "defi_analysis"
    assert wire["keyInsight"] == "TVL up"
    assert "sub_source" not in wire
