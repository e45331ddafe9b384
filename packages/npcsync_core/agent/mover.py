"""Mover collaborator contract and a straight-line reference mover.

Path computation and traversal belong to the host (a navmesh agent in a game
engine). The core only issues destinations, suspends/resumes the mover and
reads its progress.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable
import threading
import time

from packages.npcsync_core.world.locations import Vec3


class Mover(ABC):
    @property
    @abstractmethod
    def position(self) -> Vec3: ...

    @property
    @abstractmethod
    def is_active(self) -> bool: ...

    @property
    @abstractmethod
    def path_pending(self) -> bool: ...

    @property
    @abstractmethod
    def remaining_distance(self) -> float: ...

    @property
    @abstractmethod
    def is_suspended(self) -> bool: ...

    @abstractmethod
    def set_destination(self, target: Vec3) -> None: ...

    @abstractmethod
    def suspend(self) -> None:
        """Halt in place, keeping the current destination."""

    @abstractmethod
    def resume(self) -> None: ...


class KinematicMover(Mover):
    """Moves in a straight line at constant speed, advanced lazily from a clock.

    Used for headless scenes and tests; a host engine supplies its own
    :class:`Mover`.
    """

    def __init__(
        self,
        position: Vec3,
        *,
        speed: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._position = position
        self._speed = max(0.0, float(speed))
        self._clock = clock
        self._last_update = clock()
        self._destination: Vec3 | None = None
        self._suspended = False
        self._lock = threading.Lock()

    def _advance(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_update)
        self._last_update = now
        if self._suspended or self._destination is None or elapsed <= 0.0:
            return
        remaining = self._position.distance_to(self._destination)
        step = self._speed * elapsed
        if step >= remaining:
            self._position = self._destination
            return
        ratio = step / remaining
        self._position = Vec3(
            self._position.x + (self._destination.x - self._position.x) * ratio,
            self._position.y + (self._destination.y - self._position.y) * ratio,
            self._position.z + (self._destination.z - self._position.z) * ratio,
        )

    @property
    def position(self) -> Vec3:
        with self._lock:
            self._advance()
            return self._position

    @property
    def destination(self) -> Vec3 | None:
        with self._lock:
            return self._destination

    @property
    def is_active(self) -> bool:
        return True

    @property
    def path_pending(self) -> bool:
        return False

    @property
    def remaining_distance(self) -> float:
        with self._lock:
            self._advance()
            if self._destination is None:
                return 0.0
            return self._position.distance_to(self._destination)

    @property
    def is_suspended(self) -> bool:
        with self._lock:
            return self._suspended

    def set_destination(self, target: Vec3) -> None:
        with self._lock:
            self._advance()
            self._destination = target

    def suspend(self) -> None:
        with self._lock:
            self._advance()
            self._suspended = True

    def resume(self) -> None:
        with self._lock:
            self._advance()
            self._suspended = False
