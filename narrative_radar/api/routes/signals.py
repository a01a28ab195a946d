from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from narrative_radar.api.dependencies import get_storage
from narrative_radar.storage.snapshot_storage import SnapshotStorage

router = APIRouter(prefix="/api", tags=["signals"])


@router.get("/signals")
async def list_signals(
    source: str | None = None,
    limit: int = Query(default=100, ge=1),
    storage: SnapshotStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Latest collected signals, optionally filtered by source, newest first."""
    snapshot = storage.load_latest_signals()
    if snapshot is None:
        return {
            "success": True,
            "signals": [],
            "message": "No signals collected yet. Run POST /api/collect to start.",
        }

    signals = snapshot.signals
    if source:
        signals = [s for s in signals if s.source == source]
    signals = signals[:limit]

    return {
        "success": True,
        "timestamp": snapshot.timestamp,
        "total": snapshot.signal_count,
        "returned": len(signals),
        "signals": [s.to_wire() for s in signals],
    }
