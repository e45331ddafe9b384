"""Interaction session state machine.

The conversation UI reports open/close through :meth:`set_conversation_open`.
Signals are queued and applied in order by :meth:`InteractionSession.process`,
which only the agent's conversation task calls, so the talking flag has a
single writer.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional
import logging
import queue
import threading


logger = logging.getLogger("npcsync_core.agent.session")

SignalSource = Callable[[], bool]
TransitionHook = Callable[[], None]


class SessionState(str, Enum):
    IDLE = "idle"
    TALKING = "talking"


class InteractionSession:
    def __init__(
        self,
        npc_id: str,
        *,
        on_start_talking: TransitionHook,
        on_stop_talking: TransitionHook,
        signal_source: SignalSource | None = None,
    ) -> None:
        self.npc_id = npc_id
        self._on_start_talking = on_start_talking
        self._on_stop_talking = on_stop_talking
        self._signal_source = signal_source
        self._signals: queue.Queue[Optional[bool]] = queue.Queue()
        self._lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._player_interacting = False

    @property
    def is_talking(self) -> bool:
        with self._lock:
            return self._player_interacting

    @property
    def state(self) -> SessionState:
        return SessionState.TALKING if self.is_talking else SessionState.IDLE

    def set_conversation_open(self, is_open: bool) -> None:
        self._signals.put(bool(is_open))

    def wake(self) -> None:
        """Unblock a pending :meth:`process` call without changing state."""
        self._signals.put(None)

    def process(self, timeout: float = 0.0) -> list[SessionState]:
        """Apply queued signals; return the states entered, in order.

        Concurrent callers are serialized, so signals are applied by one
        caller at a time.
        """
        with self._process_lock:
            return self._process(timeout)

    def _process(self, timeout: float) -> list[SessionState]:
        pending: list[bool] = []
        try:
            first = self._signals.get(timeout=timeout) if timeout > 0 else self._signals.get_nowait()
            if first is not None:
                pending.append(first)
        except queue.Empty:
            pass
        while True:
            try:
                item = self._signals.get_nowait()
            except queue.Empty:
                break
            if item is not None:
                pending.append(item)
        if self._signal_source is not None:
            try:
                pending.append(bool(self._signal_source()))
            except Exception as exc:
                logger.warning("[SESSION] %s conversation signal source failed: %s", self.npc_id, exc)

        entered: list[SessionState] = []
        for is_open in pending:
            state = self._apply(is_open)
            if state is not None:
                entered.append(state)
        return entered

    def _apply(self, is_open: bool) -> SessionState | None:
        with self._lock:
            was_talking = self._player_interacting
            self._player_interacting = is_open
        if was_talking == is_open:
            return None
        if is_open:
            logger.info("[SESSION] %s conversation started; autonomous movement paused", self.npc_id)
            self._on_start_talking()
            return SessionState.TALKING
        logger.info("[SESSION] %s conversation ended; autonomous movement resumed", self.npc_id)
        self._on_stop_talking()
        return SessionState.IDLE
