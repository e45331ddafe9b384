"""Scene geometry and configuration for NPC agents."""

from .locations import (
    DEFAULT_LOCATION_NAMES,
    FALLBACK_LOCATION_NAME,
    LocationAggregator,
    LocationRegistry,
    Vec3,
    collect_location_names,
)
from .scene_config import AgentConfig, SceneConfig, SceneConfigError, load_scene, parse_scene

__all__ = [
    "DEFAULT_LOCATION_NAMES",
    "FALLBACK_LOCATION_NAME",
    "LocationAggregator",
    "LocationRegistry",
    "Vec3",
    "collect_location_names",
    "AgentConfig",
    "SceneConfig",
    "SceneConfigError",
    "load_scene",
    "parse_scene",
]
