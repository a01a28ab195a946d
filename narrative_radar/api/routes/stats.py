from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from narrative_radar.api.dependencies import get_storage
from narrative_radar.domain.models import NarrativeSummary
from narrative_radar.services.signal_svc import get_signal_stats
from narrative_radar.storage.snapshot_storage import SnapshotStorage

router = APIRouter(prefix="/api", tags=["stats"])

STATS_TOPIC_LIMIT = 20
HISTORY_TOP_NARRATIVES = 3


@router.get("/stats")
async def get_stats(storage: SnapshotStorage = Depends(get_storage)) -> dict[str, Any]:
    """Combined signal and narrative statistics; absent sections are ``null``."""
    signal_snapshot = storage.load_latest_signals()
    narrative_snapshot = storage.load_latest_narratives()

    signals_section = None
    if signal_snapshot is not None:
        stats = get_signal_stats(signal_snapshot.signals).to_wire()
        signals_section = {
            "total": stats["total"],
            "bySource": stats["bySource"],
            "byType": stats["byType"],
            "topTopics": stats["topTopics"][:STATS_TOPIC_LIMIT],
            "collectedAt": signal_snapshot.timestamp,
        }

    narratives_section = None
    if narrative_snapshot is not None:
        narratives = narrative_snapshot.narratives
        narratives_section = {
            "count": narrative_snapshot.narrative_count,
            "analyzedAt": narrative_snapshot.timestamp,
            "topNarrative": narratives[0].name if narratives else None,
        }

    return {
        "success": True,
        "signals": signals_section,
        "narratives": narratives_section,
        "storage": storage.get_storage_stats().to_wire(),
    }


@router.get("/history")
async def get_history(
    limit: int = Query(default=5, ge=1),
    storage: SnapshotStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Recent narrative snapshots, newest first, each reduced to its top three."""
    history = storage.load_narrative_history(limit)
    return {
        "success": True,
        "snapshots": [
            {
                "timestamp": snapshot.timestamp,
                "narrativeCount": snapshot.narrative_count,
                "topNarratives": [
                    NarrativeSummary.from_narrative(n).model_dump(by_alias=True, exclude={"build_ideas_count"})
                    for n in snapshot.narratives[:HISTORY_TOP_NARRATIVES]
                ],
            }
            for snapshot in history
        ],
    }
