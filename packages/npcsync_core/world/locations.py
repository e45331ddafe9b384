"""Symbolic location registry for NPC agents.

Each agent maps the server's symbolic location names (``"도서관:열람실"``) to
points in its own scene. The scene-wide aggregator gathers every agent's names
once all agents have initialized and registers them with the remote service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence
import logging
import math
import random
import threading

logger = logging.getLogger("npcsync_core.world.locations")

DEFAULT_LOCATION_NAMES: tuple[str, ...] = (
    "집:침실",
    "집:부엌",
    "도서관:열람실",
    "카페:휴게실",
    "대학교:강의실",
    "대학교:중앙광장",
)
FALLBACK_LOCATION_NAME = "기본위치"
DEFAULT_LOCATION_SYNC_DELAY_SECONDS = 2.0


@dataclass(frozen=True)
class Vec3:
    """Point in scene coordinates."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: Vec3) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def as_list(self) -> list[float]:
        return [self.x, self.y, self.z]

    @staticmethod
    def from_any(raw: Any) -> Vec3:
        if isinstance(raw, Vec3):
            return raw
        if isinstance(raw, dict):
            return Vec3(float(raw.get("x", 0.0)), float(raw.get("y", 0.0)), float(raw.get("z", 0.0)))
        values = [float(v) for v in raw]
        if len(values) != 3:
            raise ValueError(f"Expected 3 coordinates, got {len(values)}")
        return Vec3(*values)


class LocationRegistry:
    """Read-only name -> point mapping for one agent.

    The waypoint list is positional: slot ``i`` is bound to ``names[i]``. A
    list shorter than ``names`` collapses the registry to one fallback entry at
    the spawn point, but unknown names can still resolve to any supplied
    waypoint.
    """

    def __init__(
        self,
        waypoints: Sequence[Vec3],
        *,
        spawn: Vec3,
        names: Sequence[str] = DEFAULT_LOCATION_NAMES,
        rng: random.Random | None = None,
    ) -> None:
        if len(set(names)) != len(names):
            raise ValueError("Location names must be unique")
        self._waypoints: tuple[Vec3, ...] = tuple(waypoints)
        self._rng = rng or random.Random()
        mapping: dict[str, Vec3] = {}
        if names and len(self._waypoints) >= len(names):
            for name, point in zip(names, self._waypoints):
                mapping[name] = point
        if not mapping:
            mapping[FALLBACK_LOCATION_NAME] = spawn
        self._mapping = mapping

    @property
    def waypoints(self) -> tuple[Vec3, ...]:
        return self._waypoints

    def location_names(self) -> set[str]:
        return set(self._mapping)

    def lookup(self, name: str) -> Vec3 | None:
        return self._mapping.get(name)

    def resolve(self, name: str | None, current_position: Vec3) -> Vec3:
        """Return a target for ``name``; never fails."""
        point = self._mapping.get(str(name or ""))
        if point is not None:
            return point
        if self._waypoints:
            return self._rng.choice(self._waypoints)
        return current_position

    def as_dict(self) -> dict[str, list[float]]:
        return {name: point.as_list() for name, point in self._mapping.items()}


RegisterFn = Callable[[list[str]], Any]


def collect_location_names(sources: Iterable[Any]) -> set[str]:
    names: set[str] = set()
    for source in sources:
        names.update(source.get_location_names())
    return names


class LocationAggregator:
    """Registers the union of all agents' location names once, after a delay."""

    def __init__(
        self,
        register: RegisterFn,
        *,
        sources: Callable[[], Iterable[Any]],
        delay_seconds: float = DEFAULT_LOCATION_SYNC_DELAY_SECONDS,
    ) -> None:
        self._register = register
        self._sources = sources
        self._delay_seconds = max(0.0, float(delay_seconds))
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._sent: list[str] | None = None

    @property
    def sent_locations(self) -> list[str] | None:
        return self._sent

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_after_delay,
                name="npcsync-location-aggregator",
                daemon=True,
            )
            thread.start()
            self._thread = thread
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> None:
        with self._state_lock:
            thread = self._thread
            self._stop_event.set()
        if thread:
            thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None

    def _run_after_delay(self) -> None:
        if self._stop_event.wait(self._delay_seconds):
            logger.info("[LOCATIONS] Registration cancelled before delay elapsed")
            return
        self.send_available_locations()

    def send_available_locations(self) -> Any:
        names = collect_location_names(self._sources())
        if not names:
            logger.warning("[LOCATIONS] No location names known in scene; nothing to register")
            return None
        ordered = sorted(names)
        logger.info("[LOCATIONS] Registering %d unique locations: %s", len(ordered), ", ".join(ordered))
        result = self._register(ordered)
        self._sent = ordered
        if getattr(result, "ok", True) is False:
            logger.warning(
                "[LOCATIONS] Location registration failed (%s); not retrying",
                getattr(result, "error_code", None),
            )
        return result
