"""Scene runtime and location registration endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from packages.npcsync_core.agent.runtime import Scene

from ..services.scene_runtime import raise_for_sync_result, scene_from_request

logger = logging.getLogger("npcsync_api.scene")

router = APIRouter(prefix="/api/v1/scene", tags=["scene"])


@router.get("/runtime")
def get_runtime(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    return scene.status()


@router.post("/runtime/start")
def start_runtime(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    started = scene.start()
    logger.info("[SCENE] Runtime start requested: started=%s", started)
    return {"ok": True, "started": started, "runtime": scene.status()}


@router.post("/runtime/stop")
def stop_runtime(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    stopped = scene.stop()
    logger.info("[SCENE] Runtime stop requested: stopped=%s", stopped)
    return {"ok": True, "stopped": stopped, "runtime": scene.status()}


@router.get("/locations")
def get_locations(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    names = sorted(scene.location_names())
    return {"count": len(names), "locations": names}


@router.post("/locations/sync")
def sync_locations(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    result = scene.send_available_locations()
    if result is None:
        return {"ok": False, "sent": [], "detail": "No locations known in scene"}
    raise_for_sync_result(result)
    return {"ok": True, "sent": scene.aggregator.sent_locations}
