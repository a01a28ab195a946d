from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from narrative_radar.core.exceptions import SourceError
from narrative_radar.core.prompts import (
    build_kol_search_instructions,
    build_topic_search_instructions,
    build_trending_search_instructions,
)
from narrative_radar.domain.models import RawRecord
from narrative_radar.services.llm_svc import LLMService

logger = logging.getLogger(__name__)

# Core ecosystem leaders
TIER1_KOLS = ["aeyakovenko", "0xMert_", "rajgokal", "armaboronkov"]

EMERGING_QUERIES = [
    "Solana AI agent",
    "Solana DePIN",
    "Solana RWA",
    "Solana restaking",
    "Solana PayFi",
    "Solana gaming",
    "Solana DeFi new",
]


def _as_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class SocialService:
    """Social source: KOL posts, trending discussions and emerging-topic searches on X."""

    name = "social"

    def __init__(self, llm_service: LLMService, delay_seconds: float = 1.0) -> None:
        self.llm_service = llm_service
        self.delay_seconds = delay_seconds

    async def collect_kol_posts(self, since: str) -> list[RawRecord]:
        results = await self.llm_service.search_x(
            query=f"(from:{' OR from:'.join(TIER1_KOLS)}) Solana since:{since} min_faves:50",
            system_instruction=build_kol_search_instructions(since),
        )
        now = datetime.now(timezone.utc).isoformat()
        return [
            {
                "source": "social",
                "subSource": "kol",
                "username": s.get("username") or s.get("x_username") or "unknown",
                "text": s.get("text") or s.get("tweet_content") or "",
                "url": s.get("url") or s.get("post_url"),
                "date": s.get("date") or now,
                "engagement": s.get("engagement") or "medium",
                "topics": s.get("topics") if isinstance(s.get("topics"), list) else [],
                "sentiment": s.get("sentiment") or "neutral",
                "collectedAt": now,
            }
            for s in _as_list(results)
        ]

    async def collect_trending_posts(self, since: str, day_range: int) -> list[RawRecord]:
        results = await self.llm_service.search_x(
            query=f"Solana since:{since} min_faves:200 -filter:retweets",
            system_instruction=build_trending_search_instructions(day_range),
        )
        now = datetime.now(timezone.utc).isoformat()
        return [
            {
                "source": "social",
                "subSource": "trending",
                "username": s.get("username") or "unknown",
                "text": s.get("text") or "",
                "url": s.get("url"),
                "date": s.get("date") or now,
                "engagement": "high",
                "topics": s.get("topics") if isinstance(s.get("topics"), list) else [],
                "sentiment": s.get("sentiment") or "neutral",
                "signalType": s.get("signal_type") or "ecosystem_update",
                "collectedAt": now,
            }
            for s in _as_list(results)
        ]

    async def collect_topic_posts(self, query: str, since: str) -> list[RawRecord]:
        results = await self.llm_service.search_x(
            query=f"{query} since:{since} min_faves:30",
            system_instruction=build_topic_search_instructions(query),
        )
        now = datetime.now(timezone.utc).isoformat()
        return [
            {
                "source": "social",
                "subSource": "topic_search",
                "query": query,
                "username": s.get("username") or "unknown",
                "text": s.get("text") or "",
                "url": s.get("url"),
                "date": s.get("date") or now,
                "topics": s.get("topics") if isinstance(s.get("topics"), list) else [query],
                "sentiment": s.get("sentiment") or "neutral",
                "collectedAt": now,
            }
            for s in _as_list(results)
        ]

    async def collect(self, day_range: int = 14) -> list[RawRecord]:
        """Run the KOL, trending and topic batches in turn; a failed batch is logged and skipped."""
        logger.info("Collecting social signals (%d days)", day_range)
        since = (datetime.now(timezone.utc) - timedelta(days=day_range)).date().isoformat()

        batches: list[tuple[str, Any]] = [
            ("KOL", lambda: self.collect_kol_posts(since)),
            ("trending", lambda: self.collect_trending_posts(since, day_range)),
        ]
        batches.extend(
            (f"topic {query!r}", lambda query=query: self.collect_topic_posts(query, since))
            for query in EMERGING_QUERIES
        )

        records: list[RawRecord] = []
        failures = 0
        for index, (label, run_batch) in enumerate(batches):
            if index >= 2 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            try:
                batch = await run_batch()
            except Exception as e:
                failures += 1
                logger.warning("Social %s batch failed: %s", label, e)
                continue
            logger.info("Social %s batch: %d signals", label, len(batch))
            records.extend(batch)

        if failures == len(batches):
            raise SourceError("All social batches failed", source=self.name)
        logger.info("Total: %d social signals collected", len(records))
        return records
