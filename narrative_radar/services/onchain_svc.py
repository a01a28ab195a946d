from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from narrative_radar.core.config import SOURCE_TIMEOUT_SECONDS, Settings
from narrative_radar.core.exceptions import SourceError
from narrative_radar.core.resilience import retry_with_backoff
from narrative_radar.domain.models import RawRecord

logger = logging.getLogger(__name__)

PUMPFUN_API = "https://frontend-api-v3.pump.fun"
DEXSCREENER_API = "https://api.dexscreener.com"

BROWSER_HEADERS = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "cache-control": "no-cache",
    "origin": "https://pump.fun",
    "user-agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OnChainService:
    """On-chain source: network performance, DexScreener token activity and PumpFun launches."""

    name = "onchain"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @retry_with_backoff(retries=2, delay=1.0, service="OnChain")
    async def _get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        async with httpx.AsyncClient(timeout=SOURCE_TIMEOUT_SECONDS) as client:
            response = await client.get(url, headers=headers or {"Accept": "application/json"})
            response.raise_for_status()
            return response.json()

    async def get_network_stats(self) -> list[RawRecord]:
        """Average TPS and slot time from ``getRecentPerformanceSamples``; skipped without an RPC URL."""
        rpc_url = self.settings.SOLANA_RPC_URL
        if not rpc_url:
            logger.warning("SOLANA_RPC_URL not set, skipping network stats")
            return []

        body = {"jsonrpc": "2.0", "id": 1, "method": "getRecentPerformanceSamples", "params": [10]}
        async with httpx.AsyncClient(timeout=SOURCE_TIMEOUT_SECONDS) as client:
            response = await client.post(rpc_url, json=body)
            response.raise_for_status()
            payload = response.json()

        result = payload.get("result") if isinstance(payload, dict) else None
        samples = [
            s for s in (result if isinstance(result, list) else [])
            if isinstance(s, dict) and s.get("samplePeriodSecs") and s.get("numSlots")
        ]
        if not samples:
            return []

        avg_tps = sum(s.get("numTransactions", 0) / s["samplePeriodSecs"] for s in samples) / len(samples)
        avg_slot_time = sum(s["samplePeriodSecs"] / s["numSlots"] for s in samples) / len(samples)
        return [{
            "source": "onchain",
            "subSource": "network_stats",
            "name": "Solana network performance",
            "text": f"Average TPS: {round(avg_tps)}, avg slot time: {avg_slot_time:.3f}s over {len(samples)} samples",
            "metric": "tps",
            "value": round(avg_tps),
            "avgSlotTime": f"{avg_slot_time:.3f}",
            "sampleCount": len(samples),
            "collectedAt": _now(),
            "topics": ["network_health", "performance"],
        }]

    @staticmethod
    def _solana_tokens(payload: Any, limit: int) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            return []
        return [t for t in payload if isinstance(t, dict) and t.get("chainId") == "solana"][:limit]

    async def get_dexscreener_boosted(self) -> list[RawRecord]:
        payload = await self._get_json(f"{DEXSCREENER_API}/token-boosts/top/v1")
        tokens = self._solana_tokens(payload, 15)
        return [
            {
                "source": "onchain",
                "subSource": "dexscreener_boosted",
                "name": t.get("description") or t.get("tokenAddress"),
                "address": t.get("tokenAddress"),
                "url": t.get("url") or f"https://dexscreener.com/solana/{t.get('tokenAddress')}",
                "totalAmount": t.get("totalAmount") or 0,
                "topics": ["token_trending", "dex_activity"],
                "collectedAt": _now(),
            }
            for t in tokens
        ]

    async def get_dexscreener_profiles(self) -> list[RawRecord]:
        payload = await self._get_json(f"{DEXSCREENER_API}/token-profiles/latest/v1")
        tokens = self._solana_tokens(payload, 20)
        return [
            {
                "source": "onchain",
                "subSource": "dexscreener_new_profiles",
                "address": t.get("tokenAddress"),
                "description": t.get("description") or "",
                "url": t.get("url") or f"https://dexscreener.com/solana/{t.get('tokenAddress')}",
                "links": t.get("links") or [],
                "topics": ["new_token", "token_launch"],
                "collectedAt": _now(),
            }
            for t in tokens
        ]

    async def _get_pumpfun(self, path: str, sub_source: str, topics: list[str]) -> list[RawRecord]:
        payload = await self._get_json(f"{PUMPFUN_API}{path}", headers=BROWSER_HEADERS)
        if not isinstance(payload, list):
            return []
        records: list[RawRecord] = []
        for item in payload[:15]:
            if not isinstance(item, dict):
                continue
            coin = item.get("coin") if isinstance(item.get("coin"), dict) else item
            records.append({
                "source": "onchain",
                "subSource": sub_source,
                "name": coin.get("name") or "Unknown",
                "ticker": coin.get("symbol") or "???",
                "marketCap": coin.get("usd_market_cap") or 0,
                "address": coin.get("mint"),
                "description": coin.get("description") or "",
                "twitter": coin.get("twitter"),
                "website": coin.get("website"),
                "topics": topics,
                "collectedAt": _now(),
            })
        return records

    async def get_pumpfun_trending(self) -> list[RawRecord]:
        return await self._get_pumpfun("/coins/top-runners", "pumpfun_trending", ["pumpfun", "token_trending", "memecoin"])

    async def get_pumpfun_movers(self) -> list[RawRecord]:
        return await self._get_pumpfun("/coins/top-movers", "pumpfun_movers", ["pumpfun", "top_movers", "memecoin"])

    async def collect(self, day_range: int = 14) -> list[RawRecord]:
        """Collect all on-chain signals. ``day_range`` is unused; these feeds are point-in-time."""
        logger.info("Collecting on-chain signals")
        fetchers = {
            "network stats": self.get_network_stats(),
            "dexscreener boosted": self.get_dexscreener_boosted(),
            "dexscreener profiles": self.get_dexscreener_profiles(),
            "pumpfun trending": self.get_pumpfun_trending(),
            "pumpfun movers": self.get_pumpfun_movers(),
        }
        results = await asyncio.gather(*fetchers.values(), return_exceptions=True)

        records: list[RawRecord] = []
        failures = 0
        for label, result in zip(fetchers, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.warning("On-chain %s failed: %s", label, result)
                continue
            records.extend(result)

        if failures == len(fetchers):
            raise SourceError("All on-chain feeds failed", source=self.name)
        logger.info("Total: %d on-chain signals collected", len(records))
        return records
