from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from narrative_radar.api.dependencies import get_app_settings, get_pipeline_orchestrator
from narrative_radar.core.config import Settings
from narrative_radar.core.exceptions import RadarError
from narrative_radar.domain.models import Narrative, NarrativeSummary, PipelineRequest
from narrative_radar.services.pipeline_logic import PipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pipeline"])


def _summaries(narratives: list[Narrative]) -> list[dict[str, Any]]:
    return [NarrativeSummary.from_narrative(n).to_wire() for n in narratives]


def _failure(stage: str, exc: RadarError) -> JSONResponse:
    logger.error("%s failed: %s", stage, exc)
    return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})


def _day_range(request: PipelineRequest | None, settings: Settings) -> int:
    if request is not None and request.day_range:
        return request.day_range
    return settings.DEFAULT_DAY_RANGE


@router.post("/collect")
async def trigger_collection(
    request: PipelineRequest | None = Body(default=None),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
    settings: Settings = Depends(get_app_settings),
):
    day_range = _day_range(request, settings)
    logger.info("Signal collection triggered (%d days)", day_range)
    try:
        signal_set = await orchestrator.run_collection(day_range)
    except RadarError as e:
        return _failure("Collection", e)

    return {
        "success": True,
        "signalCount": len(signal_set.signals),
        "stats": signal_set.stats.to_wire(),
    }


@router.post("/analyze")
async def trigger_analysis(
    request: PipelineRequest | None = Body(default=None),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
):
    """Cluster, score and enrich the latest signal snapshot."""
    day_range = request.day_range if request is not None else None
    logger.info("Narrative analysis triggered (day range: %s)", day_range or "from snapshot")
    try:
        result = await orchestrator.run_analysis(day_range=day_range)
    except RadarError as e:
        return _failure("Analysis", e)

    return {
        "success": True,
        "narrativeCount": len(result.narratives),
        "narratives": _summaries(result.narratives),
    }


@router.post("/full-run")
async def trigger_full_run(
    request: PipelineRequest | None = Body(default=None),
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
    settings: Settings = Depends(get_app_settings),
):
    day_range = _day_range(request, settings)
    logger.info("Full pipeline triggered (%d days)", day_range)
    try:
        result = await orchestrator.run_full(day_range)
    except RadarError as e:
        return _failure("Full run", e)

    return {
        "success": True,
        "signalCount": len(result.signal_set.signals),
        "narrativeCount": len(result.analysis.narratives),
        "narratives": _summaries(result.analysis.narratives),
    }
