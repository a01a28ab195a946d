from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from narrative_radar.core.exceptions import SourceError
from narrative_radar.core.prompts import build_research_search_instructions
from narrative_radar.domain.models import RawRecord
from narrative_radar.services.llm_svc import LLMService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResearchQuery:
    name: str
    query: str
    description: str


RESEARCH_QUERIES = [
    ResearchQuery(
        "ecosystem_reports",
        "(from:MessariCrypto OR from:ElectricCapital OR from:DelphiDigital) Solana report",
        "Research reports from major crypto analytics firms",
    ),
    ResearchQuery(
        "solana_foundation",
        "(from:SolanaFndn) update OR announcement OR report",
        "Official Solana Foundation updates",
    ),
    ResearchQuery(
        "developer_ecosystem",
        'Solana developer ecosystem report OR "state of solana" OR "solana ecosystem"',
        "Developer ecosystem analysis and state-of reports",
    ),
    ResearchQuery(
        "defi_analysis",
        'Solana DeFi TVL OR "Solana DeFi" analysis OR report min_faves:50',
        "DeFi-specific analysis and TVL movements",
    ),
    ResearchQuery(
        "emerging_narratives",
        'Solana narrative OR "Solana trend" OR "building on Solana" min_faves:100',
        "Broad narrative and trend discussions",
    ),
]


class ResearchService:
    """Research source: reports and data-driven analysis surfaced through X search."""

    name = "research"

    def __init__(self, llm_service: LLMService, delay_seconds: float = 1.5) -> None:
        self.llm_service = llm_service
        self.delay_seconds = delay_seconds

    async def search(self, research_query: ResearchQuery, since: str) -> list[RawRecord]:
        results = await self.llm_service.search_x(
            query=f"{research_query.query} since:{since}",
            system_instruction=build_research_search_instructions(research_query.description),
        )
        if not isinstance(results, list):
            return []

        now = datetime.now(timezone.utc).isoformat()
        return [
            {
                "source": "research",
                "subSource": research_query.name,
                "username": r.get("username") or "unknown",
                "text": r.get("text") or "",
                "url": r.get("url"),
                "date": r.get("date") or now,
                "topics": r.get("topics") if isinstance(r.get("topics"), list) else [],
                "keyInsight": r.get("key_insight"),
                "dataPoint": r.get("data_point"),
                "collectedAt": now,
            }
            for r in results
            if isinstance(r, dict)
        ]

    async def collect(self, day_range: int = 14) -> list[RawRecord]:
        logger.info("Collecting research signals (%d days)", day_range)
        since = (datetime.now(timezone.utc) - timedelta(days=day_range)).date().isoformat()

        records: list[RawRecord] = []
        failures = 0
        for index, research_query in enumerate(RESEARCH_QUERIES):
            if index and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            try:
                batch = await self.search(research_query, since)
            except Exception as e:
                failures += 1
                logger.warning("Research %r failed: %s", research_query.name, e)
                continue
            logger.info("Research %r: %d signals", research_query.name, len(batch))
            records.extend(batch)

        if failures == len(RESEARCH_QUERIES):
            raise SourceError("All research queries failed", source=self.name)
        logger.info("Total: %d research signals collected", len(records))
        return records
