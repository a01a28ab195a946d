"""
Tests for the source adapters with mocked HTTP and LLM backends.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
import respx

from narrative_radar.core.config import Settings
from narrative_radar.core.exceptions import LLMServiceError, SourceError
from narrative_radar.services.github_svc import GitHubService
from narrative_radar.services.onchain_svc import DEXSCREENER_API, PUMPFUN_API, OnChainService
from narrative_radar.services.research_svc import RESEARCH_QUERIES, ResearchService
from narrative_radar.services.social_svc import EMERGING_QUERIES, SocialService

GITHUB_SEARCH = "https://api.github.com/search/repositories"


@pytest.fixture
def settings():
    return Settings(XAI_API_KEY="test-key", GITHUB_TOKEN="gh-token", SOLANA_RPC_URL="https://rpc.test")


@pytest.fixture(autouse=True)
def no_backoff():
    with patch("narrative_radar.core.resilience.asyncio.sleep", new=AsyncMock()):
        yield


def _repo(name, stars=10):
    return {
        "full_name": name,
        "description": f"{name} description",
        "html_url": f"https://github.com/{name}",
        "stargazers_count": stars,
        "forks_count": 1,
        "language": "Rust",
        "topics": ["solana"],
        "created_at": "2025-01-01T00:00:00Z",
        "updated_at": "2025-01-02T00:00:00Z",
    }


@pytest.mark.asyncio
@respx.mock
async def test_github_collect_dedupes_by_repo_name(settings):
    route = respx.get(GITHUB_SEARCH).mock(
        return_value=httpx.Response(200, json={"items": [_repo("org/a", 50), _repo("org/b")]})
    )

    records = await GitHubService(settings).collect(day_range=14)

    assert [r["name"] for r in records] == ["org/a", "org/b"]
    assert records[0]["source"] == "github"
    assert records[0]["subSource"] == "new_repos"
    assert records[0]["stars"] == 50
    # new, trending, anchor + five categories
    assert route.call_count == 8
    assert route.calls[0].request.headers["Authorization"] == "Bearer gh-token"


@pytest.mark.asyncio
@respx.mock
async def test_github_retries_transient_errors(settings):
    route = respx.get(GITHUB_SEARCH).mock(side_effect=[
        httpx.Response(503),
        httpx.Response(200, json={"items": [_repo("org/a")]}),
    ])

    repos = await GitHubService(settings).search_repositories("solana")

    assert [r["full_name"] for r in repos] == ["org/a"]
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_github_all_searches_failing_raises(settings):
    respx.get(GITHUB_SEARCH).mock(return_value=httpx.Response(422))

    with pytest.raises(SourceError) as exc_info:
        await GitHubService(settings).collect()

    assert exc_info.value.source == "github"


@pytest.mark.asyncio
@respx.mock
async def test_onchain_collect_filters_solana_and_survives_partial_failure(settings):
    respx.post("https://rpc.test").mock(return_value=httpx.Response(200, json={"result": [
        {"numTransactions": 6000, "samplePeriodSecs": 60, "numSlots": 150},
        {"numTransactions": 12000, "samplePeriodSecs": 60, "numSlots": 150},
    ]}))
    respx.get(f"{DEXSCREENER_API}/token-boosts/top/v1").mock(return_value=httpx.Response(200, json=[
        {"chainId": "solana", "tokenAddress": "So1", "description": "Boosted", "totalAmount": 500},
        {"chainId": "ethereum", "tokenAddress": "0xabc"},
    ]))
    respx.get(f"{DEXSCREENER_API}/token-profiles/latest/v1").mock(return_value=httpx.Response(404))
    respx.get(f"{PUMPFUN_API}/coins/top-runners").mock(return_value=httpx.Response(200, json=[
        {"coin": {"name": "Doge AI", "symbol": "DAI", "usd_market_cap": 42000, "mint": "mint1"}},
    ]))
    respx.get(f"{PUMPFUN_API}/coins/top-movers").mock(return_value=httpx.Response(200, json=[]))

    records = await OnChainService(settings).collect()

    by_sub_source = {r["subSource"]: r for r in records}
    assert by_sub_source["network_stats"]["value"] == 150
    assert by_sub_source["dexscreener_boosted"]["address"] == "So1"
    assert by_sub_source["pumpfun_trending"]["ticker"] == "DAI"
    assert by_sub_source["pumpfun_trending"]["marketCap"] == 42000
    assert "dexscreener_new_profiles" not in by_sub_source
    assert len(records) == 3


@pytest.mark.asyncio
async def test_onchain_network_stats_skipped_without_rpc():
    service = OnChainService(Settings(XAI_API_KEY="test-key"))
    assert await service.get_network_stats() == []


@pytest.fixture
def llm_service():
    service = Mock()
    service.search_x = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_social_collect_maps_batches(llm_service):
    llm_service.search_x.side_effect = [
        [{"x_username": "aeyakovenko", "tweet_content": "ship it", "post_url": "https://x.com/1"}],
        [{"username": "trader", "text": "SOL pumps", "signal_type": "price_action"}],
    ] + [LLMServiceError("search failed")] * len(EMERGING_QUERIES)

    records = await SocialService(llm_service, delay_seconds=0).collect(day_range=7)

    assert len(records) == 2
    kol, trending = records
    assert (kol["subSource"], kol["username"], kol["text"], kol["url"]) == (
        "kol", "aeyakovenko", "ship it", "https://x.com/1"
    )
    assert kol["engagement"] == "medium"
    assert trending["subSource"] == "trending"
    assert trending["engagement"] == "high"
    assert trending["signalType"] == "price_action"


@pytest.mark.asyncio
async def test_social_topic_search_tags_query(llm_service):
    llm_service.search_x.return_value = [{"username": "dev", "text": "new DePIN launch"}]

    records = await SocialService(llm_service).collect_topic_posts("Solana DePIN", "2025-01-01")

    assert records[0]["query"] == "Solana DePIN"
    assert records[0]["topics"] == ["Solana DePIN"]
    assert records[0]["subSource"] == "topic_search"


@pytest.mark.asyncio
async def test_social_all_batches_failing_raises(llm_service):
    llm_service.search_x.side_effect = LLMServiceError("down")

    with pytest.raises(SourceError):
        await SocialService(llm_service, delay_seconds=0).collect()


@pytest.mark.asyncio
async def test_research_collect_extracts_insights(llm_service):
    llm_service.search_x.side_effect = [
        [{"username": "MessariCrypto", "text": "Q3 report", "key_insight": "Fees up", "data_point": "+40%"}],
        "not a list",
    ] + [[]] * (len(RESEARCH_QUERIES) - 2)

    records = await ResearchService(llm_service, delay_seconds=0).collect()

    assert len(records) == 1
    assert records[0]["source"] == "research"
    assert records[0]["subSource"] == "ecosystem_reports"
    assert records[0]["keyInsight"] == "Fees up"
    assert records[0]["dataPoint"] == "+40%"
