from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from narrative_radar.core.config import SOURCE_TIMEOUT_SECONDS, Settings
from narrative_radar.core.exceptions import SourceError
from narrative_radar.core.resilience import retry_with_backoff
from narrative_radar.domain.models import RawRecord

logger = logging.getLogger(__name__)

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "ai_agents": ["ai agent", "autonomous agent", "llm"],
    "depin": ["depin", "physical infrastructure", "iot"],
    "rwa": ["real world asset", "rwa", "tokenized"],
    "payments": ["payment", "payfi", "micropayment"],
    "gaming": ["game", "gaming", "metaverse"],
}


def _since(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).date().isoformat()


class GitHubService:
    """Developer-activity source: Solana repositories gaining traction on GitHub."""

    name = "github"
    BASE_URL = "https://api.github.com"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "narrative-radar",
        }
        if self.settings.GITHUB_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.GITHUB_TOKEN}"
        return headers

    @retry_with_backoff(retries=3, delay=1.0, service="GitHub")
    async def search_repositories(self, query: str, *, sort: str = "stars", per_page: int = 30) -> list[dict[str, Any]]:
        """Run one repository search and return the raw ``items``."""
        params: dict[str, str | int] = {"q": query, "sort": sort, "order": "desc", "per_page": per_page}
        async with httpx.AsyncClient(timeout=SOURCE_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{self.BASE_URL}/search/repositories", params=params, headers=self._headers())
            response.raise_for_status()
            payload = response.json()
        items = payload.get("items", []) if isinstance(payload, dict) else []
        return [item for item in items if isinstance(item, dict)]

    @staticmethod
    def to_record(repo: dict[str, Any], sub_source: str, extra_topics: list[str] | None = None, **extra: Any) -> RawRecord:
        now = datetime.now(timezone.utc).isoformat()
        return {
            "source": "github",
            "subSource": sub_source,
            "name": repo.get("full_name"),
            "description": repo.get("description") or "",
            "url": repo.get("html_url"),
            "stars": repo.get("stargazers_count"),
            "forks": repo.get("forks_count"),
            "language": repo.get("language"),
            "topics": [*(repo.get("topics") or []), *(extra_topics or [])],
            "createdAt": repo.get("created_at"),
            "updatedAt": repo.get("updated_at"),
            "collectedAt": now,
            **extra,
        }

    async def _search(self, label: str, query: str, sub_source: str, *, sort: str = "stars",
                      per_page: int = 30, extra_topics: list[str] | None = None, **extra: Any) -> list[RawRecord]:
        try:
            repos = await self.search_repositories(query, sort=sort, per_page=per_page)
        except Exception as e:
            logger.warning("GitHub %s search failed: %s", label, e)
            raise
        return [self.to_record(repo, sub_source, extra_topics, **extra) for repo in repos]

    async def collect(self, day_range: int = 14) -> list[RawRecord]:
        """Collect new, trending, Anchor and category repositories, deduplicated by repo name."""
        logger.info("Collecting developer activity signals (%d days)", day_range)
        since = _since(day_range)
        searches = [
            self._search("new repos", f"solana created:>{since} stars:>5", "new_repos"),
            self._search("trending repos", f"solana pushed:>{_since(7)} stars:>20", "trending_repos", sort="updated"),
            self._search("anchor projects", f"anchor-lang created:>{since} language:rust", "anchor_projects",
                         per_page=20, extra_topics=["anchor", "smart_contract"]),
        ]
        for category, keywords in CATEGORY_KEYWORDS.items():
            query = " OR ".join(f'"{keyword}"' for keyword in keywords)
            searches.append(self._search(
                f"category {category}", f"{query} solana pushed:>{_since(30)}", f"category_{category}",
                per_page=10, extra_topics=[category], category=category,
            ))

        results = await asyncio.gather(*searches, return_exceptions=True)

        records: list[RawRecord] = []
        seen_repos: set[str] = set()
        failures = 0
        for result in results:
            if isinstance(result, BaseException):
                failures += 1
                continue
            for record in result:
                name = record.get("name")
                if name and name not in seen_repos:
                    seen_repos.add(name)
                    records.append(record)

        if searches and failures == len(searches):
            raise SourceError("All GitHub searches failed", source=self.name)
        logger.info("Total: %d developer activity signals collected", len(records))
        return records
