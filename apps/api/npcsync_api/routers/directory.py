"""Remote NPC directory passthrough."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from packages.npcsync_core.agent.runtime import Scene

from ..services.scene_runtime import raise_for_sync_result, scene_from_request


router = APIRouter(prefix="/api/v1/npcs", tags=["npcs"])


class CreateNpcRequest(BaseModel):
    npc_id: str = Field(min_length=1, max_length=120)
    name: str = Field(min_length=1, max_length=80)
    persona: str = Field(default="", max_length=4000)


@router.get("")
@router.get("/")
def list_remote_npcs(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    result = scene.client.list_npcs()
    raise_for_sync_result(result)
    return result.value.model_dump()


@router.post("")
@router.post("/")
def create_remote_npc(req: CreateNpcRequest, scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    result = scene.client.create_npc(req.npc_id, req.name, req.persona)
    raise_for_sync_result(result)
    return {"ok": True, "npc_id": req.npc_id}
