"""Builds the scene served by the API and exposes it to request handlers."""

from __future__ import annotations

from pathlib import Path
import logging
import os

from fastapi import HTTPException, Request

from packages.npcsync_core.agent.runtime import NpcAgent, Scene, build_scene
from packages.npcsync_core.sync.client import SyncClient, SyncClientConfig, SyncResult
from packages.npcsync_core.world.scene_config import load_scene


logger = logging.getLogger("npcsync_api.scene_runtime")
WORKSPACE_ROOT = Path(__file__).resolve().parents[4]
DEFAULT_SCENE_PATH = "assets/scenes/campus.json"


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _float_env(name: str) -> float | None:
    raw = str(os.environ.get(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("[RUNTIME] Ignoring invalid %s=%r", name, raw)
        return None


def _resolve_scene_path(path_str: str) -> Path:
    candidate = Path(path_str)
    if not candidate.is_absolute():
        candidate = WORKSPACE_ROOT / candidate
    return candidate.resolve()


def autostart_enabled() -> bool:
    return _truthy_env("NPCSYNC_AUTOSTART_SCENE", default=False)


def build_scene_from_env(*, client: SyncClient | None = None) -> Scene:
    scene_path = _resolve_scene_path(os.environ.get("NPCSYNC_SCENE_PATH") or DEFAULT_SCENE_PATH)
    logger.info("[RUNTIME] Loading scene from %s", scene_path)
    config = load_scene(scene_path)
    if client is None:
        client = SyncClient(SyncClientConfig.from_env())
        logger.info("[RUNTIME] Remote service at %s", client.base_url)
    scene = build_scene(
        config,
        client,
        status_update_interval=_float_env("NPCSYNC_STATUS_INTERVAL_SECONDS"),
        location_sync_delay_seconds=_float_env("NPCSYNC_LOCATION_SYNC_DELAY_SECONDS"),
    )
    logger.info("[RUNTIME] Scene '%s' built with %d agents", scene.name, len(scene.agents()))
    return scene


def scene_from_request(request: Request) -> Scene:
    scene = getattr(request.app.state, "scene", None)
    if scene is None:
        raise HTTPException(status_code=503, detail="Scene not loaded")
    return scene


def agent_or_404(scene: Scene, npc_id: str) -> NpcAgent:
    agent = scene.get_agent(npc_id)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Agent not found: {npc_id}")
    return agent


def raise_for_sync_result(result: SyncResult) -> None:
    if result.ok:
        return
    raise HTTPException(
        status_code=502,
        detail={
            "error_kind": result.error_kind,
            "error_code": result.error_code,
            "message": str(result.error),
        },
    )
