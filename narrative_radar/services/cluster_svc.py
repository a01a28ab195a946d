from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from narrative_radar.core.prompts import CLUSTERING_INSTRUCTIONS, build_clustering_prompt
from narrative_radar.domain.models import Narrative, Signal
from narrative_radar.services.llm_svc import LLMService
from narrative_radar.services.signal_svc import get_signal_stats

logger = logging.getLogger(__name__)


def truncate(text: str | None, max_len: int) -> str:
    if not text:
        return ""
    return text[:max_len] + "..." if len(text) > max_len else text


class ClusterService:
    """Group normalised signals into candidate narratives using the LLM."""

    def __init__(self, llm_service: LLMService) -> None:
        self.llm_service = llm_service

    def build_signal_digest(self, signals: list[Signal]) -> str:
        """Compact per-source summary of the signal set that fits in one prompt."""
        sections: list[str] = []

        social = [s for s in signals if s.source == "social"]
        if social:
            sections.append("### Social / X Signals")
            kol = [s for s in social if s.sub_source == "kol"][:10]
            trending = [s for s in social if s.sub_source == "trending"][:10]
            topic_searches = [s for s in social if s.sub_source == "topic_search"][:10]
            if kol:
                sections.append("**KOL Posts:**")
                sections.extend(
                    f"- @{s.username}: {truncate(s.text, 150)} [topics: {', '.join(s.topics)}]" for s in kol
                )
            if trending:
                sections.append("**Trending:**")
                sections.extend(f"- @{s.username}: {truncate(s.text, 150)} [{s.signal_type}]" for s in trending)
            if topic_searches:
                sections.append("**Topic Searches:**")
                sections.extend(
                    f"- [{s.query or ','.join(s.topics)}] @{s.username}: {truncate(s.text, 120)}"
                    for s in topic_searches
                )

        onchain = [s for s in signals if s.source == "onchain"]
        if onchain:
            sections.append("\n### On-Chain Signals")
            network = [s for s in onchain if s.sub_source == "network_stats"]
            pumpfun = [s for s in onchain if "pumpfun" in s.sub_source][:10]
            dex = [s for s in onchain if "dexscreener" in s.sub_source][:10]
            sections.extend(f"- {s.title}: {s.text}" for s in network)
            if pumpfun:
                sections.append("**PumpFun tokens:**")
                for s in pumpfun:
                    market_cap = f"${s.market_cap:,.0f}" if s.market_cap is not None else "N/A"
                    sections.append(f"- {s.title} (${s.ticker}) MC: {market_cap} [{s.sub_source}]")
            if dex:
                sections.append("**DexScreener:**")
                sections.extend(f"- {s.title or (s.address or '')[:12]} [{s.sub_source}]" for s in dex)

        github = [s for s in signals if s.source == "github"]
        if github:
            sections.append("\n### Developer Activity (GitHub)")
            by_stars = sorted(github, key=lambda s: s.stars or 0, reverse=True)
            sections.extend(
                f"- {s.title} ⭐{s.stars or 0}: {truncate(s.text, 100)} [{', '.join(s.topics[:3])}]"
                for s in by_stars[:15]
            )

        research = [s for s in signals if s.source == "research"]
        if research:
            sections.append("\n### Research & Reports")
            for s in research[:10]:
                insight = f" KEY: {s.key_insight}" if s.key_insight else ""
                data = f" [DATA: {s.data_point}]" if s.data_point else ""
                sections.append(f"- @{s.username}: {truncate(s.text, 120)}{insight}{data}")

        return "\n".join(sections)

    @staticmethod
    def parse_narratives(payload: Any) -> list[Narrative]:
        """Validate the classifier payload; anything malformed becomes an empty or shorter list."""
        if not isinstance(payload, dict) or not isinstance(payload.get("narratives"), list):
            logger.error("Invalid clustering response: no narratives array")
            return []

        narratives: list[Narrative] = []
        for index, entry in enumerate(payload["narratives"]):
            if not isinstance(entry, dict):
                logger.warning("Skipping non-object narrative at index %d", index)
                continue
            try:
                narrative = Narrative.model_validate(entry)
            except PydanticValidationError as e:
                logger.warning("Skipping malformed narrative at index %d: %s", index, e)
                continue
            if not narrative.id:
                narrative = narrative.model_copy(update={"id": f"narrative_{index + 1}"})
            narratives.append(narrative)
        return narratives

    async def cluster_narratives(self, signals: list[Signal], day_range: int = 14) -> list[Narrative]:
        """
        Ask the LLM for candidate narratives over ``signals``.

        Any LLM failure or malformed response yields ``[]``; the pipeline
        continues with zero narratives.
        """
        logger.info("Analyzing %d signals for narrative patterns", len(signals))
        if not signals:
            return []

        prompt = build_clustering_prompt(get_signal_stats(signals), self.build_signal_digest(signals), day_range)
        try:
            payload = await self.llm_service.ask_for_json(prompt, system_instruction=CLUSTERING_INSTRUCTIONS)
        except Exception as e:
            logger.error("Narrative clustering failed: %s", e)
            return []

        narratives = self.parse_narratives(payload)
        logger.info("Identified %d narratives", len(narratives))
        return narratives
