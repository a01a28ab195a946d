from __future__ import annotations

from functools import lru_cache

from narrative_radar.core.config import Settings, get_settings
from narrative_radar.services.cluster_svc import ClusterService
from narrative_radar.services.github_svc import GitHubService
from narrative_radar.services.ideas_svc import IdeaService
from narrative_radar.services.llm_svc import LLMService
from narrative_radar.services.onchain_svc import OnChainService
from narrative_radar.services.pipeline_logic import PipelineOrchestrator
from narrative_radar.services.research_svc import ResearchService
from narrative_radar.services.social_svc import SocialService
from narrative_radar.storage.snapshot_storage import SnapshotStorage, get_snapshot_storage


def get_storage() -> SnapshotStorage:
    return get_snapshot_storage()


def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_llm_service() -> LLMService:
    return LLMService(get_settings())


@lru_cache(maxsize=1)
def get_cluster_service() -> ClusterService:
    return ClusterService(get_llm_service())


@lru_cache(maxsize=1)
def get_idea_service() -> IdeaService:
    return IdeaService(get_llm_service(), throttle_seconds=get_settings().IDEA_THROTTLE_SECONDS)


@lru_cache(maxsize=1)
def get_pipeline_orchestrator() -> PipelineOrchestrator:
    settings = get_settings()
    llm_service = get_llm_service()
    # Declaration order is the concatenation order of collected records
    adapters = [
        SocialService(llm_service),
        OnChainService(settings),
        GitHubService(settings),
        ResearchService(llm_service),
    ]
    return PipelineOrchestrator(
        adapters=adapters,
        cluster_service=get_cluster_service(),
        idea_service=get_idea_service(),
        storage=get_snapshot_storage(),
    )
