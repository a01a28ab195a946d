from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from narrative_radar.api.dependencies import get_pipeline_orchestrator
from narrative_radar.api.routes.cron import router as cron_router
from narrative_radar.api.routes.narratives import router as narratives_router
from narrative_radar.api.routes.pipeline import router as pipeline_router
from narrative_radar.api.routes.signals import router as signals_router
from narrative_radar.api.routes.stats import router as stats_router
from narrative_radar.api.routes.system import router as system_router
from narrative_radar.core.config import get_settings
from narrative_radar.core.logging import configure_logging
from narrative_radar.services.pipeline_logic import PipelineOrchestrator
from narrative_radar.services.scheduler_svc import PipelineScheduler
from narrative_radar.storage.snapshot_storage import get_snapshot_storage

logger = logging.getLogger(__name__)


async def bootstrap_pipeline(orchestrator: PipelineOrchestrator, day_range: int) -> None:
    """First-boot full run so the read endpoints have data."""
    logger.info("No narratives found, running initial pipeline")
    try:
        await orchestrator.run_full(day_range)
    except Exception:
        logger.exception("Initial pipeline run failed")


@asynccontextmanager
async def app_lifespan(application: FastAPI):
    # Invalid configuration propagates here and the server refuses to start
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    orchestrator = get_pipeline_orchestrator()
    scheduler = PipelineScheduler(orchestrator, day_range=settings.DEFAULT_DAY_RANGE)
    application.state.scheduler = scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()

    bootstrap_task = None
    if settings.BOOTSTRAP_ON_START and get_snapshot_storage().load_latest_narratives() is None:
        bootstrap_task = asyncio.create_task(bootstrap_pipeline(orchestrator, settings.DEFAULT_DAY_RANGE))

    yield

    if bootstrap_task is not None and not bootstrap_task.done():
        bootstrap_task.cancel()
        await asyncio.gather(bootstrap_task, return_exceptions=True)
    await scheduler.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    application = FastAPI(
        title="Narrative Radar",
        version="1.0",
        lifespan=app_lifespan,
    )

    settings = get_settings()
    allowed_origins_set = {
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    }

    if settings.CORS_ORIGINS:
        allowed_origins_set.update(str(origin).rstrip("/") for origin in settings.CORS_ORIGINS)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins_set),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(narratives_router)
    application.include_router(signals_router)
    application.include_router(stats_router)
    application.include_router(pipeline_router)
    application.include_router(cron_router)
    application.include_router(system_router)

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception at %s", request.url.path, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )

    @application.get("/")
    def read_root() -> dict[str, str]:
        return {"status": "ok", "message": "Narrative Radar is running"}

    return application
