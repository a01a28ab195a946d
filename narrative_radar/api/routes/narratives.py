from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from narrative_radar.api.dependencies import get_storage
from narrative_radar.services.scoring_svc import explain_score
from narrative_radar.storage.snapshot_storage import SnapshotStorage

router = APIRouter(prefix="/api", tags=["narratives"])


@router.get("/narratives")
async def list_narratives(storage: SnapshotStorage = Depends(get_storage)) -> dict[str, Any]:
    """Latest detected narratives with their build ideas, in rank order."""
    snapshot = storage.load_latest_narratives()
    if snapshot is None:
        return {
            "success": True,
            "narratives": [],
            "message": "No narratives detected yet. Run POST /api/full-run to start.",
        }

    wire = snapshot.to_wire()
    return {
        "success": True,
        "timestamp": wire["timestamp"],
        "narrativeCount": wire["narrativeCount"],
        "narratives": wire["narratives"],
        "stats": wire["stats"],
    }


@router.get("/narratives/{narrative_id}")
async def get_narrative(narrative_id: str, storage: SnapshotStorage = Depends(get_storage)):
    snapshot = storage.load_latest_narratives()
    if snapshot is None:
        return JSONResponse(status_code=404, content={"success": False, "message": "No narratives found"})

    narrative = next((n for n in snapshot.narratives if n.id == narrative_id), None)
    if narrative is None:
        return JSONResponse(status_code=404, content={"success": False, "message": "Narrative not found"})

    return {
        "success": True,
        "narrative": {**narrative.to_wire(), "scoreExplanation": explain_score(narrative)},
    }
