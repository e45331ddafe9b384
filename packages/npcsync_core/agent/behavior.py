"""Autonomous behavior loop: poll the remote status and walk to its location."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable
import logging
import threading

from packages.npcsync_core.sync.client import AgentStatus
from packages.npcsync_core.world.locations import LocationRegistry

from .arrival import ArrivalDetector
from .mover import Mover


logger = logging.getLogger("npcsync_core.agent.behavior")

DEFAULT_STATUS_UPDATE_INTERVAL = 30.0


class CycleOutcome(str, Enum):
    SKIPPED_DISABLED = "skipped_disabled"
    SKIPPED_INTERACTING = "skipped_interacting"
    FETCH_FAILED = "fetch_failed"
    DISCARDED = "discarded"
    STATUS_ONLY = "status_only"
    ALREADY_THERE = "already_there"
    MOVING = "moving"


class AutonomousBehaviorLoop:
    """One poll/move cycle per interval for a single agent.

    The loop is the only writer of the agent's :class:`AgentStatus`. A failed
    fetch leaves the previous status in place and the agent where it is.
    """

    def __init__(
        self,
        npc_id: str,
        *,
        client: Any,
        registry: LocationRegistry,
        mover: Mover,
        detector: ArrivalDetector,
        is_interacting: Callable[[], bool],
        enabled: bool = True,
        interval_seconds: float = DEFAULT_STATUS_UPDATE_INTERVAL,
    ) -> None:
        self.npc_id = npc_id
        self._client = client
        self._registry = registry
        self._mover = mover
        self._detector = detector
        self._is_interacting = is_interacting
        self._enabled = bool(enabled)
        self._interval_seconds = max(0.01, float(interval_seconds))
        self._lock = threading.Lock()
        self._cancelled = False
        self._generation = 0
        self._status: AgentStatus | None = None
        self._last_error: str | None = None
        self._last_outcome: CycleOutcome | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = bool(enabled)

    @property
    def current_status(self) -> AgentStatus | None:
        with self._lock:
            return self._status

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error

    @property
    def last_outcome(self) -> CycleOutcome | None:
        with self._lock:
            return self._last_outcome

    def cancel(self) -> None:
        """Discard the result of any fetch still in flight, even across a reset."""
        with self._lock:
            self._cancelled = True
            self._generation += 1

    def reset(self) -> None:
        with self._lock:
            self._cancelled = False

    def run_cycle(self) -> CycleOutcome:
        outcome = self._run_cycle()
        with self._lock:
            self._last_outcome = outcome
        return outcome

    def _run_cycle(self) -> CycleOutcome:
        if not self.enabled:
            return CycleOutcome.SKIPPED_DISABLED
        if self._is_interacting():
            return CycleOutcome.SKIPPED_INTERACTING

        with self._lock:
            generation = self._generation
        result = self._client.fetch_status(self.npc_id)

        with self._lock:
            if self._cancelled or self._generation != generation:
                logger.debug("[BEHAVIOR] %s discarding status fetched after stop", self.npc_id)
                return CycleOutcome.DISCARDED
            if not result.ok:
                self._last_error = result.error_code
                logger.warning(
                    "[BEHAVIOR] %s status unavailable (%s); keeping last known status",
                    self.npc_id,
                    result.error_code,
                )
                return CycleOutcome.FETCH_FAILED

            status: AgentStatus = result.value
            self._status = status
            self._last_error = None
            logger.info("[BEHAVIOR] %s status: %s @ %s", self.npc_id, status.display_line(), status.location)

            if not self._enabled or self._is_interacting() or not self._mover.is_active:
                return CycleOutcome.STATUS_ONLY

            position = self._mover.position
            target = self._registry.resolve(status.location, position)
            if position.distance_to(target) <= self._detector.arrival_distance:
                return CycleOutcome.ALREADY_THERE
            self._detector.issue(target, status.location)
            return CycleOutcome.MOVING
