from __future__ import annotations

import json

from narrative_radar.domain.models import Narrative, SignalStats

CLUSTERING_INSTRUCTIONS = (
    "You are a Solana ecosystem analyst. Identify emerging narratives from "
    "multi-source signal data. Return ONLY valid JSON."
)

BUILD_IDEAS_INSTRUCTIONS = (
    "You are a Solana product strategist generating specific, actionable build "
    "ideas. Return ONLY valid JSON. Be creative but practical."
)

NARRATIVE_SCHEMA = {
    "narratives": [
        {
            "id": "narrative_id_slug",
            "name": "Short Name (3-5 words)",
            "description": "2-3 sentence explanation of what this narrative is and why it matters",
            "evidence": [
                "Specific evidence point 1 from the signals",
                "Specific evidence point 2",
                "Specific evidence point 3",
            ],
            "sources": ["social", "onchain", "github"],
            "topics": ["topic1", "topic2"],
            "stage": "emerging | accelerating | maturing",
            "confidence": 0.85,
            "velocity": "rising | stable | declining",
        }
    ]
}

IDEA_SCHEMA = {
    "ideas": [
        {
            "name": "Product Name",
            "oneLiner": "One sentence describing the product",
            "description": "2-3 sentences explaining what it does, who it's for, and why it matters",
            "whySolana": "Why this specifically benefits from being on Solana",
            "technicalApproach": "One-line description of how to build it",
            "difficulty": "easy | medium | hard",
            "targetUser": "Who would use this",
            "monetization": "How it could make money",
        }
    ]
}


def build_clustering_prompt(stats: SignalStats, digest: str, day_range: int = 14) -> str:
    """Prompt asking the model to group the signal digest into 5-8 narratives."""
    top_topics = ", ".join(f"{t.topic} ({t.count})" for t in stats.top_topics[:15])
    return f"""You are an expert Solana ecosystem analyst. Analyze these signals collected over the past {day_range} days and identify EMERGING NARRATIVES.

## Signal Summary
- Total signals: {stats.total}
- Sources: {json.dumps(stats.by_source)}
- Top topics: {top_topics}

## Signal Digest
{digest}

## Your Task
Identify 5-8 EMERGING or ACCELERATING narratives in the Solana ecosystem. For each narrative:

1. Focus on what is NEW or GROWING, not what everyone already knows
2. Look for CROSS-SOURCE signals (mentioned in social AND onchain AND github = strong)
3. Prioritize NOVELTY over volume
4. Be SPECIFIC: "AI agents on Solana" is better than "AI"

Return JSON:
{json.dumps(NARRATIVE_SCHEMA, indent=2)}

Be rigorous. Only include narratives you have genuine signal evidence for."""


def build_ideas_prompt(narrative: Narrative) -> str:
    """Prompt asking for 3-5 concrete products tied to one narrative."""
    evidence = "\n".join(f"- {point}" for point in narrative.evidence)
    confidence = narrative.confidence if narrative.confidence is not None else 0.5
    return f"""You are a Solana product strategist. Generate 3-5 concrete product ideas for this emerging narrative.

## Narrative
**{narrative.name}**
{narrative.description}

## Evidence
{evidence}

## Stage: {narrative.stage or 'emerging'}
## Confidence: {round(confidence * 100)}%

## Requirements for each idea:
1. Must be buildable on Solana specifically (leverage Solana's speed, low fees, or ecosystem)
2. Must be CONCRETE: "build a dashboard" is vague; "real-time DEX aggregator that surfaces new token launches with AI risk scoring" is concrete
3. Must be tied to THIS specific narrative
4. Include a one-line technical approach
5. Rate difficulty: easy / medium / hard

Return JSON:
{json.dumps(IDEA_SCHEMA, indent=2)}"""


def build_kol_search_instructions(since: str) -> str:
    return f"""You are a Solana ecosystem research agent. Use x_search to find posts from top Solana KOLs.

Search for recent posts (since {since}) from these accounts that discuss:
- New projects, protocols, or technologies
- Ecosystem trends, narratives, or shifts
- Technical developments or upgrades
- Market insights or predictions

For each relevant post, extract:
- username: The @username
- text: Full tweet text
- url: Direct tweet URL
- date: ISO date
- engagement: Estimated likes/retweets (high/medium/low)
- topics: Array of topic tags (e.g. ["DeFi", "AI agents", "restaking"])
- sentiment: positive/negative/neutral

Return JSON array of objects. Max 20 results, sorted by relevance."""


def build_trending_search_instructions(day_range: int) -> str:
    return f"""You are a trend detection agent. Use x_search to find the most viral/trending Solana ecosystem discussions.

Search for high-engagement posts about Solana from the last {day_range} days.
Focus on posts that reveal EMERGING TRENDS: new narratives, new project categories, new use cases.

Ignore: price speculation, generic "bullish" posts, memes without substance.

For each result:
- username: @username
- text: Full tweet text
- url: Tweet URL
- date: ISO date
- topics: Array of narrative tags
- sentiment: positive/negative/neutral
- signal_type: "narrative_shift" | "new_project" | "ecosystem_update" | "technical_development" | "market_signal"

Return JSON array, max 15 results, sorted by novelty and engagement."""


def build_topic_search_instructions(query: str) -> str:
    return (
        f'Use x_search to find recent posts about "{query}". Return JSON array with fields: '
        "username, text, url, date, topics, sentiment. Max 5 results."
    )


def build_research_search_instructions(description: str) -> str:
    return f"""You are a research intelligence agent. Use x_search to find research reports, analysis, and data-driven insights about the Solana ecosystem.

Search context: "{description}"

For each result, extract:
- username: @username of poster
- text: Full post text
- url: Post URL
- date: ISO date
- topics: Array of topic tags (specific, e.g. "DeFi TVL", "developer growth", "AI agents", NOT generic tags)
- key_insight: One-sentence summary of the key insight or finding
- data_point: Any specific data mentioned (e.g. "TVL up 40%", "500 new repos")

Return JSON array. Focus on posts with DATA or ANALYSIS, not opinions. Max 10 results."""
