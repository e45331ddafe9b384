"""Scene file loading.

A scene file is a JSON document listing the NPC agents to run::

    {
      "agents": [
        {
          "npc_id": "seoa",
          "name": "이서아",
          "spawn": [0, 0, 0],
          "waypoints": [[1, 0, 1], ...]
        }
      ]
    }
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional
import json

from pydantic import BaseModel, Field, ValidationError, field_validator

from .locations import DEFAULT_LOCATION_NAMES, Vec3


DEFAULT_ARRIVAL_DISTANCE = 2.0
DEFAULT_MOVEMENT_SPEED = 2.0
DEFAULT_STATUS_UPDATE_INTERVAL = 30.0


class SceneConfigError(ValueError):
    pass


class AgentConfig(BaseModel):
    npc_id: str = Field(min_length=1, max_length=120)
    name: str = ""
    persona: str = ""
    spawn: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    waypoints: list[list[float]] = Field(default_factory=list)
    location_names: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCATION_NAMES))
    arrival_distance: float = Field(default=DEFAULT_ARRIVAL_DISTANCE, gt=0.0)
    movement_speed: float = Field(default=DEFAULT_MOVEMENT_SPEED, gt=0.0)
    status_update_interval: float = Field(default=DEFAULT_STATUS_UPDATE_INTERVAL, ge=1.0, le=3600.0)
    autonomous: bool = True

    @field_validator("spawn")
    @classmethod
    def _spawn_is_point(cls, value: list[float]) -> list[float]:
        if len(value) != 3:
            raise ValueError("spawn must have exactly 3 coordinates")
        return value

    @field_validator("waypoints")
    @classmethod
    def _waypoints_are_points(cls, value: list[list[float]]) -> list[list[float]]:
        for idx, point in enumerate(value):
            if len(point) != 3:
                raise ValueError(f"waypoint {idx} must have exactly 3 coordinates")
        return value

    @field_validator("location_names")
    @classmethod
    def _unique_location_names(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        for name in value:
            if name in seen:
                raise ValueError(f"duplicate location name: {name}")
            seen.add(name)
        return value

    def spawn_point(self) -> Vec3:
        return Vec3.from_any(self.spawn)

    def waypoint_points(self) -> list[Vec3]:
        return [Vec3.from_any(point) for point in self.waypoints]


class SceneConfig(BaseModel):
    name: str = "scene"
    location_sync_delay_seconds: Optional[float] = Field(default=None, ge=0.0)
    agents: list[AgentConfig] = Field(default_factory=list)

    @field_validator("agents")
    @classmethod
    def _unique_npc_ids(cls, value: list[AgentConfig]) -> list[AgentConfig]:
        seen: set[str] = set()
        for agent in value:
            if agent.npc_id in seen:
                raise ValueError(f"duplicate npc_id: {agent.npc_id}")
            seen.add(agent.npc_id)
        return value


def parse_scene(raw: dict[str, Any]) -> SceneConfig:
    try:
        return SceneConfig.model_validate(raw)
    except ValidationError as exc:
        raise SceneConfigError(f"Invalid scene configuration: {exc}") from exc


def load_scene(path: Path) -> SceneConfig:
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as exc:
        raise SceneConfigError(f"Scene file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SceneConfigError(f"Scene file is not valid JSON: {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise SceneConfigError(f"Scene file must contain a JSON object: {path}")
    return parse_scene(raw)
