from __future__ import annotations

import asyncio
import logging
from typing import Any

from narrative_radar.core.prompts import BUILD_IDEAS_INSTRUCTIONS, build_ideas_prompt
from narrative_radar.domain.models import BuildIdea, Narrative
from narrative_radar.services.llm_svc import LLMService

logger = logging.getLogger(__name__)

# Wire key -> accepted spellings from the model, in preference order
IDEA_FIELDS: dict[str, tuple[str, ...]] = {
    "one_liner": ("oneLiner", "one_liner"),
    "description": ("description",),
    "why_solana": ("whySolana", "why_solana"),
    "technical_approach": ("technicalApproach", "technical_approach"),
    "target_user": ("targetUser", "target_user"),
    "monetization": ("monetization",),
}


def parse_ideas(payload: Any) -> list[BuildIdea]:
    """Coerce the model's ``ideas`` array into ``BuildIdea``s, preserving order."""
    if not isinstance(payload, dict) or not isinstance(payload.get("ideas"), list):
        return []

    ideas: list[BuildIdea] = []
    for raw in payload["ideas"]:
        if not isinstance(raw, dict):
            continue
        fields = {
            field: next((str(raw[key]) for key in keys if raw.get(key)), "")
            for field, keys in IDEA_FIELDS.items()
        }
        ideas.append(BuildIdea(
            name=str(raw.get("name") or "Unnamed Idea"),
            difficulty=str(raw.get("difficulty") or "medium"),
            **fields,
        ))
    return ideas


class IdeaService:
    """Annotate scored narratives with concrete build ideas."""

    def __init__(self, llm_service: LLMService, throttle_seconds: float = 1.0) -> None:
        self.llm_service = llm_service
        self.throttle_seconds = throttle_seconds

    async def generate_ideas_for_narrative(self, narrative: Narrative) -> list[BuildIdea]:
        payload = await self.llm_service.ask_for_json(
            build_ideas_prompt(narrative),
            system_instruction=BUILD_IDEAS_INSTRUCTIONS,
        )
        return parse_ideas(payload)

    async def generate_build_ideas(self, narratives: list[Narrative]) -> list[Narrative]:
        """
        Enrich narratives one at a time, in the order given.

        A failure for one narrative leaves it with no ideas and moves on.
        Calls are spaced by ``throttle_seconds`` to respect rate limits.
        """
        logger.info("Generating build ideas for %d narratives", len(narratives))
        enriched: list[Narrative] = []

        for index, narrative in enumerate(narratives):
            if index and self.throttle_seconds > 0:
                await asyncio.sleep(self.throttle_seconds)
            try:
                ideas = await self.generate_ideas_for_narrative(narrative)
                logger.info("%r: %d ideas generated", narrative.name, len(ideas))
            except Exception as e:
                logger.error("Build idea generation failed for %r: %s", narrative.name, e)
                ideas = []
            enriched.append(narrative.model_copy(update={"build_ideas": ideas}))

        return enriched
