from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from narrative_radar.api.dependencies import get_storage
from narrative_radar.storage.snapshot_storage import SnapshotStorage

router = APIRouter(tags=["system"])

STARTED_AT = time.monotonic()


@router.get("/health")
async def health(storage: SnapshotStorage = Depends(get_storage)) -> dict[str, Any]:
    return {
        "status": "ok",
        "agent": "narrative-radar",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "storage": storage.get_storage_stats().to_wire(),
    }
