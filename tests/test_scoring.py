"""
Tests for the narrative scoring rubric.
"""
from __future__ import annotations

import pytest

from narrative_radar.domain.models import Narrative
from narrative_radar.services.scoring_svc import (
    MAX_TOTAL_SCORE,
    compute_scores,
    count_matching_signals,
    explain_score,
    score_narratives,
)
from narrative_radar.services.signal_svc import normalize_all


def _signals(topic_lists):
    return normalize_all(
        {"source": "social", "text": f"post {i}", "topics": topics}
        for i, topics in enumerate(topic_lists)
    )


@pytest.fixture
def reference_narrative():
    return Narrative(
        id="ai_agents",
        name="AI Agents on Solana",
        sources=["social", "onchain"],
        evidence=["one", "two", "three"],
        velocity="rising",
        stage="emerging",
        confidence=0.8,
        topics=["ai_agents"],
    )


def test_reference_scenario_totals_85(reference_narrative):
    signals = _signals([["ai_agents"], ["AI_Agents", "defi"], ["ai_agents"], ["ai_agents"], ["gaming"]])

    [scored] = score_narratives([reference_narrative], signals)

    assert scored.scores.cross_source == 16
    assert scored.scores.evidence == 24
    assert scored.scores.velocity == 20
    assert scored.scores.stage == 15
    assert scored.scores.confidence == 8
    assert scored.scores.signal_count == 2
    assert scored.total_score == 85
    assert scored.matching_signal_count == 4
    assert scored.rank == 1


def test_scoring_does_not_mutate_input(reference_narrative):
    score_narratives([reference_narrative], [])
    assert reference_narrative.scores is None
    assert reference_narrative.rank == 0


def test_sub_scores_are_capped():
    narrative = Narrative(
        sources=["social", "onchain", "github", "research", "social"],
        evidence=[str(i) for i in range(10)],
        velocity="rising",
        stage="emerging",
        confidence=7,
    )

    scores = compute_scores(narrative, matching_signal_count=100)

    assert scores.cross_source == 30
    assert scores.evidence == 25
    assert scores.confidence == 10
    assert scores.signal_count == 10
    assert scores.total == MAX_TOTAL_SCORE == 110


def test_defaults_for_unknown_labels_and_missing_confidence():
    scores = compute_scores(Narrative(velocity="declining", stage="mature"), matching_signal_count=0)
    assert scores.velocity == 5
    assert scores.stage == 5
    assert scores.confidence == 5
    assert scores.total == 15


def test_confidence_zero_is_not_defaulted():
    assert compute_scores(Narrative(confidence=0), 0).confidence == 0


def test_confidence_rounds_half_up():
    assert compute_scores(Narrative(confidence=0.25), 0).confidence == 3
    assert compute_scores(Narrative(confidence=0.75), 0).confidence == 8


def test_non_finite_confidence_uses_default():
    assert Narrative(confidence="nan").confidence is None
    assert compute_scores(Narrative(confidence=float("inf")), 0).confidence == 5

    unvalidated = Narrative().model_copy(update={"confidence": float("nan")})
    assert compute_scores(unvalidated, 0).confidence == 5


def test_labels_are_case_insensitive():
    scores = compute_scores(Narrative(velocity="Rising", stage="ACCELERATING"), 0)
    assert scores.velocity == 20
    assert scores.stage == 12


def test_no_topics_means_no_matches():
    assert count_matching_signals(Narrative(topics=[]), _signals([["ai"]])) == 0


def test_ranking_is_descending_and_stable():
    low = Narrative(id="low", velocity="declining")
    tie_a = Narrative(id="tie_a", velocity="rising")
    tie_b = Narrative(id="tie_b", velocity="rising")

    ranked = score_narratives([low, tie_a, tie_b], [])

    assert [n.id for n in ranked] == ["tie_a", "tie_b", "low"]
    assert [n.rank for n in ranked] == [1, 2, 3]
    totals = [n.total_score for n in ranked]
    assert totals == sorted(totals, reverse=True)


def test_empty_input_returns_empty():
    assert score_narratives([], _signals([["ai"]])) == []


def test_explain_score_lists_every_factor(reference_narrative):
    [scored] = score_narratives([reference_narrative], _signals([["ai_agents"], ["ai_agents"]]))

    lines = explain_score(scored).splitlines()

    assert lines[0] == "Cross-source strength: 16/30"
    assert lines[1] == "Evidence quality: 24/25"
    assert lines[2] == "Velocity: 20/20 (rising)"
    assert lines[3] == "Stage: 15/15 (emerging)"
    assert lines[4] == "AI confidence: 8/10"
    assert lines[5] == "Signal match: 1/10 (2 signals)"
    assert lines[-1] == "TOTAL: 84/110"


def test_explain_score_without_scores():
    assert explain_score(Narrative()) == "No scoring data"
