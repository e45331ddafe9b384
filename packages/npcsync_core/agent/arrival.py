"""Movement intent bookkeeping and arrival detection."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
import logging
import threading

from packages.npcsync_core.world.locations import Vec3

from .mover import Mover


logger = logging.getLogger("npcsync_core.agent.arrival")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class MovementIntent:
    sequence: int
    target: Vec3
    location: str
    issued_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "target": self.target.as_list(),
            "location": self.location,
            "issued_at": self.issued_at,
        }


@dataclass(frozen=True)
class ArrivalEvent:
    npc_id: str
    sequence: int
    location: str
    target: Vec3
    arrived_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "npc_id": self.npc_id,
            "sequence": self.sequence,
            "location": self.location,
            "target": self.target.as_list(),
            "arrived_at": self.arrived_at,
        }


class ArrivalDetector:
    """Owns the single outstanding :class:`MovementIntent` of one agent.

    Issuing and clearing share one lock, so an arrival observed for an older
    destination can never clear a newer intent.
    """

    def __init__(
        self,
        npc_id: str,
        mover: Mover,
        *,
        arrival_distance: float = 2.0,
        history_limit: int = 20,
    ) -> None:
        self.npc_id = npc_id
        self._mover = mover
        self._arrival_distance = float(arrival_distance)
        self._lock = threading.Lock()
        self._intent: MovementIntent | None = None
        self._sequence = 0
        self._arrivals: deque[ArrivalEvent] = deque(maxlen=max(1, int(history_limit)))

    @property
    def arrival_distance(self) -> float:
        return self._arrival_distance

    @property
    def current_intent(self) -> MovementIntent | None:
        with self._lock:
            return self._intent

    def is_moving(self) -> bool:
        with self._lock:
            return self._intent is not None

    def issue(self, target: Vec3, location: str) -> MovementIntent:
        with self._lock:
            self._sequence += 1
            intent = MovementIntent(
                sequence=self._sequence,
                target=target,
                location=location,
                issued_at=_utc_now(),
            )
            self._mover.set_destination(target)
            self._intent = intent
        logger.info("[ARRIVAL] %s heading to '%s' (intent #%d)", self.npc_id, location, intent.sequence)
        return intent

    def check(self) -> ArrivalEvent | None:
        with self._lock:
            intent = self._intent
            if intent is None:
                return None
            mover = self._mover
            if not mover.is_active or mover.path_pending:
                return None
            if mover.remaining_distance >= self._arrival_distance:
                return None
            self._intent = None
            event = ArrivalEvent(
                npc_id=self.npc_id,
                sequence=intent.sequence,
                location=intent.location,
                target=intent.target,
                arrived_at=_utc_now(),
            )
            self._arrivals.append(event)
        logger.info("[ARRIVAL] %s arrived at '%s' (intent #%d)", self.npc_id, event.location, event.sequence)
        return event

    def recent_arrivals(self) -> list[ArrivalEvent]:
        with self._lock:
            return list(self._arrivals)
