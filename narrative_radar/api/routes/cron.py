from __future__ import annotations

import logging
from secrets import compare_digest

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from narrative_radar.api.dependencies import get_app_settings, get_pipeline_orchestrator
from narrative_radar.core.config import Settings
from narrative_radar.services.pipeline_logic import PipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def verify_cron_secret(
    x_cron_auth: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Require a shared secret header for cron-triggered endpoints."""
    expected_secret = settings.CRON_SECRET
    if not expected_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret is not configured.",
        )

    if not x_cron_auth or not compare_digest(x_cron_auth, expected_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized cron invocation.",
        )


async def _run_in_background(name: str, run) -> None:
    try:
        await run()
    except Exception:
        logger.exception("Cron-triggered %s failed", name)


@router.post("/collect", dependencies=[Depends(verify_cron_secret)])
async def cron_collect(
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, str]:
    """Queue a collection for an external scheduler."""
    background_tasks.add_task(
        _run_in_background, "collection", lambda: orchestrator.run_collection(settings.DEFAULT_DAY_RANGE)
    )
    return {"status": "queued"}


@router.post("/full-run", dependencies=[Depends(verify_cron_secret)])
async def cron_full_run(
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_pipeline_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, str]:
    background_tasks.add_task(
        _run_in_background, "full run", lambda: orchestrator.run_full(settings.DEFAULT_DAY_RANGE)
    )
    return {"status": "queued"}
