"""Per-agent endpoints used by the UI layer."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from packages.npcsync_core.agent.runtime import Scene

from ..services.scene_runtime import agent_or_404, raise_for_sync_result, scene_from_request

logger = logging.getLogger("npcsync_api.agents")

router = APIRouter(prefix="/api/v1/agents", tags=["agents"])


class AutonomyRequest(BaseModel):
    enabled: bool


class ConversationRequest(BaseModel):
    open: bool


class ChatRequest(BaseModel):
    player_message: str = Field(min_length=1, max_length=2000)
    player_name: str = Field(default="Player", min_length=1, max_length=80)


@router.get("")
@router.get("/")
def list_agents(scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    agents = [agent.snapshot() for agent in scene.agents()]
    return {"count": len(agents), "agents": agents}


@router.get("/{npc_id}")
def get_agent(npc_id: str, scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    return {"agent": agent_or_404(scene, npc_id).snapshot()}


@router.get("/{npc_id}/status")
def get_agent_status(npc_id: str, scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    agent = agent_or_404(scene, npc_id)
    status = agent.get_current_status()
    return {
        "npc_id": npc_id,
        "status": status.model_dump() if status else None,
        "status_line": status.display_line() if status else None,
    }


@router.get("/{npc_id}/moving")
def get_agent_moving(npc_id: str, scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    agent = agent_or_404(scene, npc_id)
    intent = agent.current_intent
    return {
        "npc_id": npc_id,
        "is_moving": intent is not None,
        "target": intent.to_dict() if intent else None,
    }


@router.get("/{npc_id}/arrivals")
def get_agent_arrivals(npc_id: str, scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    arrivals = [event.to_dict() for event in agent_or_404(scene, npc_id).recent_arrivals()]
    return {"npc_id": npc_id, "count": len(arrivals), "arrivals": arrivals}


@router.get("/{npc_id}/locations")
def get_agent_locations(npc_id: str, scene: Scene = Depends(scene_from_request)) -> dict[str, Any]:
    agent = agent_or_404(scene, npc_id)
    names = sorted(agent.get_location_names())
    return {
        "npc_id": npc_id,
        "count": len(names),
        "locations": names,
        "points": agent.registry.as_dict(),
    }


@router.put("/{npc_id}/autonomy")
def put_agent_autonomy(
    npc_id: str,
    req: AutonomyRequest,
    scene: Scene = Depends(scene_from_request),
) -> dict[str, Any]:
    agent = agent_or_404(scene, npc_id)
    agent.set_autonomous_movement(req.enabled)
    return {"ok": True, "npc_id": npc_id, "autonomous": agent.behavior.enabled}


@router.post("/{npc_id}/conversation")
def post_agent_conversation(
    npc_id: str,
    req: ConversationRequest,
    scene: Scene = Depends(scene_from_request),
) -> dict[str, Any]:
    agent = agent_or_404(scene, npc_id)
    logger.info("[AGENTS] Conversation %s for npc_id='%s'", "opened" if req.open else "closed", npc_id)
    agent.set_conversation_open(req.open)
    # Without a running conversation task the signal is applied here.
    applied = agent.process_conversation_signals_if_stopped()
    return {
        "ok": True,
        "npc_id": npc_id,
        "queued": applied is None,
        "conversation_state": agent.conversation_state.value,
    }


@router.post("/{npc_id}/chat")
def post_agent_chat(
    npc_id: str,
    req: ChatRequest,
    scene: Scene = Depends(scene_from_request),
) -> dict[str, Any]:
    agent = agent_or_404(scene, npc_id)
    logger.info("[AGENTS] Chat message for npc_id='%s' from '%s'", npc_id, req.player_name)
    result = scene.client.send_chat(agent.npc_id, req.player_message, req.player_name)
    raise_for_sync_result(result)
    return {"ok": True, "reply": result.value.model_dump()}
