from narrative_radar.services.cluster_svc import ClusterService
from narrative_radar.services.github_svc import GitHubService
from narrative_radar.services.ideas_svc import IdeaService
from narrative_radar.services.llm_svc import LLMService
from narrative_radar.services.onchain_svc import OnChainService
from narrative_radar.services.pipeline_logic import PipelineOrchestrator, collect_raw_records
from narrative_radar.services.research_svc import ResearchService
from narrative_radar.services.scheduler_svc import PipelineScheduler
from narrative_radar.services.social_svc import SocialService

__all__ = [
    "ClusterService",
    "GitHubService",
    "IdeaService",
    "LLMService",
    "OnChainService",
    "PipelineOrchestrator",
    "PipelineScheduler",
    "ResearchService",
    "SocialService",
    "collect_raw_records",
]
