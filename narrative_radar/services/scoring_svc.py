"""Narrative scoring: a fixed, auditable 110-point rubric.

Each narrative earns points on six independently capped factors:

- cross-source strength (0-30): 8 per distinct contributing source
- evidence quality (0-25): 8 per evidence point
- velocity (0-20): rising 20, stable 10, anything else 5
- stage (0-15): emerging 15, accelerating 12, anything else 5
- AI confidence (0-10): confidence in [0, 1] scaled to tenths, 0.5 if absent
- signal match (0-10): one point per two signals sharing a topic
"""
from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from narrative_radar.domain.models import Narrative, NarrativeScores, Signal

logger = logging.getLogger(__name__)

CROSS_SOURCE_POINTS, CROSS_SOURCE_CAP = 8, 30
EVIDENCE_POINTS, EVIDENCE_CAP = 8, 25
VELOCITY_POINTS = {"rising": 20, "stable": 10}
VELOCITY_DEFAULT, VELOCITY_CAP = 5, 20
STAGE_POINTS = {"emerging": 15, "accelerating": 12}
STAGE_DEFAULT, STAGE_CAP = 5, 15
CONFIDENCE_SCALE, CONFIDENCE_CAP = 10, 10
DEFAULT_CONFIDENCE = 0.5
SIGNAL_MATCH_DIVISOR, SIGNAL_MATCH_CAP = 2, 10
MAX_TOTAL_SCORE = CROSS_SOURCE_CAP + EVIDENCE_CAP + VELOCITY_CAP + STAGE_CAP + CONFIDENCE_CAP + SIGNAL_MATCH_CAP


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def count_matching_signals(narrative: Narrative, signals: Sequence[Signal]) -> int:
    """Number of signals sharing at least one topic (case-insensitively) with the narrative."""
    narrative_topics = {topic.lower() for topic in narrative.topics}
    if not narrative_topics:
        return 0
    return sum(
        1 for signal in signals
        if any(topic.lower() in narrative_topics for topic in signal.topics)
    )


def compute_scores(narrative: Narrative, matching_signal_count: int) -> NarrativeScores:
    confidence = narrative.confidence
    if confidence is None or not math.isfinite(confidence):
        confidence = DEFAULT_CONFIDENCE
    confidence = min(max(confidence, 0.0), 1.0)

    return NarrativeScores(
        cross_source=min(len(set(narrative.sources)) * CROSS_SOURCE_POINTS, CROSS_SOURCE_CAP),
        evidence=min(len(narrative.evidence) * EVIDENCE_POINTS, EVIDENCE_CAP),
        velocity=VELOCITY_POINTS.get(narrative.velocity or "", VELOCITY_DEFAULT),
        stage=STAGE_POINTS.get(narrative.stage or "", STAGE_DEFAULT),
        confidence=_round_half_up(confidence * CONFIDENCE_SCALE),
        signal_count=min(matching_signal_count // SIGNAL_MATCH_DIVISOR, SIGNAL_MATCH_CAP),
    )


def score_narratives(narratives: Sequence[Narrative], signals: Sequence[Signal]) -> list[Narrative]:
    """Score every narrative against the signal set and rank by total score.

    Inputs are not modified. Ties keep their input order; ranks are 1-based.
    """
    logger.info("Scoring %d narratives against %d signals", len(narratives), len(signals))

    scored: list[Narrative] = []
    for narrative in narratives:
        matching = count_matching_signals(narrative, signals)
        scores = compute_scores(narrative, matching)
        scored.append(narrative.model_copy(update={
            "scores": scores,
            "total_score": scores.total,
            "matching_signal_count": matching,
        }))

    scored.sort(key=lambda n: n.total_score, reverse=True)
    ranked = [narrative.model_copy(update={"rank": index}) for index, narrative in enumerate(scored, start=1)]

    if ranked:
        logger.info("Top narrative: %r (score: %d)", ranked[0].name, ranked[0].total_score)
    return ranked


def explain_score(narrative: Narrative) -> str:
    """Human-readable per-factor breakdown, ending with the total out of 110."""
    scores = narrative.scores
    if scores is None:
        return "No scoring data"

    lines = [
        f"Cross-source strength: {scores.cross_source}/{CROSS_SOURCE_CAP}",
        f"Evidence quality: {scores.evidence}/{EVIDENCE_CAP}",
        f"Velocity: {scores.velocity}/{VELOCITY_CAP} ({narrative.velocity or 'unknown'})",
        f"Stage: {scores.stage}/{STAGE_CAP} ({narrative.stage or 'unknown'})",
        f"AI confidence: {scores.confidence}/{CONFIDENCE_CAP}",
        f"Signal match: {scores.signal_count}/{SIGNAL_MATCH_CAP} ({narrative.matching_signal_count} signals)",
        "─────────",
        f"TOTAL: {narrative.total_score}/{MAX_TOTAL_SCORE}",
    ]
    return "\n".join(lines)
