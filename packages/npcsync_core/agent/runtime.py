"""Per-agent composition and the scene that owns all agents.

:class:`NpcAgent` arbitrates control of its mover: the mover runs only while
autonomous movement is enabled and no conversation is open. Each agent runs
three periodic tasks (conversation signals, behavior loop, arrival check) and
stopping the agent cancels all of them.
"""

from __future__ import annotations

from typing import Any, Callable
import logging
import random
import threading

from packages.npcsync_core.sync.client import AgentStatus
from packages.npcsync_core.world.locations import (
    DEFAULT_LOCATION_SYNC_DELAY_SECONDS,
    LocationAggregator,
    LocationRegistry,
    collect_location_names,
)
from packages.npcsync_core.world.scene_config import AgentConfig, SceneConfig

from .arrival import ArrivalDetector, ArrivalEvent, MovementIntent
from .behavior import DEFAULT_STATUS_UPDATE_INTERVAL, AutonomousBehaviorLoop, CycleOutcome
from .mover import KinematicMover, Mover
from .session import InteractionSession, SessionState, SignalSource
from .tasks import BackgroundNotifier, PeriodicTask


logger = logging.getLogger("npcsync_core.agent.runtime")

DEFAULT_CONVERSATION_POLL_SECONDS = 1.0
DEFAULT_ARRIVAL_TICK_SECONDS = 0.1

MoverFactory = Callable[[AgentConfig], Mover]


class NpcAgent:
    def __init__(
        self,
        npc_id: str,
        *,
        client: Any,
        registry: LocationRegistry,
        mover: Mover,
        name: str = "",
        persona: str = "",
        arrival_distance: float = 2.0,
        status_update_interval: float = DEFAULT_STATUS_UPDATE_INTERVAL,
        autonomous: bool = True,
        conversation_poll_seconds: float = DEFAULT_CONVERSATION_POLL_SECONDS,
        tick_seconds: float = DEFAULT_ARRIVAL_TICK_SECONDS,
        conversation_signal: SignalSource | None = None,
    ) -> None:
        self._npc_id = str(npc_id)
        self.name = name or self._npc_id
        self.persona = persona
        self._client = client
        self._registry = registry
        self._mover = mover
        self._motion_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._detector = ArrivalDetector(self._npc_id, mover, arrival_distance=arrival_distance)
        self._session = InteractionSession(
            self._npc_id,
            on_start_talking=self._on_start_talking,
            on_stop_talking=self._on_stop_talking,
            signal_source=conversation_signal,
        )
        self._loop = AutonomousBehaviorLoop(
            self._npc_id,
            client=client,
            registry=registry,
            mover=mover,
            detector=self._detector,
            is_interacting=lambda: self._session.is_talking,
            enabled=autonomous,
            interval_seconds=status_update_interval,
        )
        self._notifier = BackgroundNotifier(f"npc-{self._npc_id}")
        poll_seconds = max(0.05, float(conversation_poll_seconds))
        self._tasks = (
            PeriodicTask(
                f"npc-{self._npc_id}-conversation",
                lambda: self._session.process(timeout=poll_seconds),
                interval_seconds=0.0,
                on_stop=self._session.wake,
            ),
            PeriodicTask(
                f"npc-{self._npc_id}-behavior",
                self._loop.run_cycle,
                interval_seconds=self._loop.interval_seconds,
            ),
            PeriodicTask(
                f"npc-{self._npc_id}-arrival",
                self.tick,
                interval_seconds=max(0.01, float(tick_seconds)),
            ),
        )
        self._apply_motion_control()

    @property
    def npc_id(self) -> str:
        return self._npc_id

    @property
    def mover(self) -> Mover:
        return self._mover

    @property
    def registry(self) -> LocationRegistry:
        return self._registry

    @property
    def behavior(self) -> AutonomousBehaviorLoop:
        return self._loop

    @property
    def notifier(self) -> BackgroundNotifier:
        return self._notifier

    # Collaborator interface

    def get_current_status(self) -> AgentStatus | None:
        return self._loop.current_status

    def is_moving(self) -> bool:
        return self._detector.is_moving()

    def set_autonomous_movement(self, enabled: bool) -> None:
        self._loop.set_enabled(enabled)
        self._apply_motion_control()
        logger.info("[RUNTIME] %s autonomous movement %s", self._npc_id, "enabled" if enabled else "disabled")

    def get_location_names(self) -> set[str]:
        return self._registry.location_names()

    def set_conversation_open(self, is_open: bool) -> None:
        self._session.set_conversation_open(is_open)

    # Synchronous steps, also driven by the periodic tasks

    def process_conversation_signals(self) -> list[SessionState]:
        return self._session.process()

    def process_conversation_signals_if_stopped(self) -> list[SessionState] | None:
        """Apply queued signals here unless the conversation task is running.

        Returns ``None`` when the running task is left to apply them.
        """
        with self._lifecycle_lock:
            if self.is_running():
                return None
            return self._session.process()

    def run_behavior_cycle(self) -> CycleOutcome:
        return self._loop.run_cycle()

    def tick(self) -> ArrivalEvent | None:
        return self._detector.check()

    @property
    def conversation_state(self) -> SessionState:
        return self._session.state

    @property
    def current_intent(self) -> MovementIntent | None:
        return self._detector.current_intent

    def recent_arrivals(self) -> list[ArrivalEvent]:
        return self._detector.recent_arrivals()

    def _apply_motion_control(self) -> None:
        with self._motion_lock:
            if self._loop.enabled and not self._session.is_talking:
                self._mover.resume()
            else:
                self._mover.suspend()

    def _on_start_talking(self) -> None:
        self._apply_motion_control()

    def _on_stop_talking(self) -> None:
        self._apply_motion_control()
        self._notifier.submit(
            "end-interaction",
            lambda: self._client.notify_interaction_end(self._npc_id),
        )

    # Lifecycle

    def start(self) -> bool:
        with self._lifecycle_lock:
            if self.is_running():
                return False
            self._loop.reset()
            self._notifier.reset()
            for task in self._tasks:
                task.start()
        logger.info("[RUNTIME] %s autonomous runtime started", self._npc_id)
        return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._lifecycle_lock:
            self._loop.cancel()
            self._notifier.cancel()
            stopped = False
            for task in self._tasks:
                stopped = task.stop(join_timeout_seconds=join_timeout_seconds) or stopped
        if stopped:
            logger.info("[RUNTIME] %s autonomous runtime stopped", self._npc_id)
        return stopped

    def is_running(self) -> bool:
        return any(task.is_running() for task in self._tasks)

    def task_status(self) -> list[dict[str, object]]:
        return [task.status() for task in self._tasks]

    def snapshot(self) -> dict[str, Any]:
        status = self.get_current_status()
        intent = self.current_intent
        talking = self._session.is_talking
        return {
            "npc_id": self._npc_id,
            "name": self.name,
            "status": status.model_dump() if status else None,
            "status_line": status.display_line() if status else None,
            "status_ui_visible": not talking,
            "conversation_state": self._session.state.value,
            "autonomous": self._loop.enabled,
            "is_moving": intent is not None,
            "target": intent.to_dict() if intent else None,
            "position": self._mover.position.as_list(),
            "mover_suspended": self._mover.is_suspended,
            "last_error": self._loop.last_error,
            "last_outcome": self._loop.last_outcome.value if self._loop.last_outcome else None,
            "running": self.is_running(),
        }


class Scene:
    """All agents of a scene plus the shared client and location aggregator."""

    def __init__(
        self,
        client: Any,
        *,
        name: str = "scene",
        location_sync_delay_seconds: float = DEFAULT_LOCATION_SYNC_DELAY_SECONDS,
    ) -> None:
        self.name = name
        self.client = client
        self._agents: dict[str, NpcAgent] = {}
        self._lock = threading.Lock()
        self._running = False
        self._aggregator = LocationAggregator(
            client.register_locations,
            sources=self.agents,
            delay_seconds=location_sync_delay_seconds,
        )

    @property
    def aggregator(self) -> LocationAggregator:
        return self._aggregator

    def add_agent(self, agent: NpcAgent) -> NpcAgent:
        with self._lock:
            if agent.npc_id in self._agents:
                raise ValueError(f"Duplicate npc_id in scene: {agent.npc_id}")
            self._agents[agent.npc_id] = agent
        return agent

    def agents(self) -> list[NpcAgent]:
        with self._lock:
            return list(self._agents.values())

    def get_agent(self, npc_id: str) -> NpcAgent | None:
        with self._lock:
            return self._agents.get(npc_id)

    def location_names(self) -> set[str]:
        return collect_location_names(self.agents())

    def send_available_locations(self) -> Any:
        return self._aggregator.send_available_locations()

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
        for agent in self.agents():
            agent.start()
        self._aggregator.start()
        logger.info("[RUNTIME] Scene '%s' started with %d agents", self.name, len(self.agents()))
        return True

    def stop(self) -> bool:
        with self._lock:
            if not self._running:
                return False
            self._running = False
        self._aggregator.stop()
        for agent in self.agents():
            agent.stop()
        logger.info("[RUNTIME] Scene '%s' stopped", self.name)
        return True

    def status(self) -> dict[str, Any]:
        return {
            "scene": self.name,
            "running": self.is_running(),
            "agent_count": len(self.agents()),
            "registered_locations": self._aggregator.sent_locations,
            "agents": {agent.npc_id: agent.task_status() for agent in self.agents()},
        }


def _kinematic_mover(config: AgentConfig) -> Mover:
    return KinematicMover(config.spawn_point(), speed=config.movement_speed)


def build_agent(
    config: AgentConfig,
    client: Any,
    *,
    mover_factory: MoverFactory | None = None,
    status_update_interval: float | None = None,
    rng: random.Random | None = None,
) -> NpcAgent:
    registry = LocationRegistry(
        config.waypoint_points(),
        spawn=config.spawn_point(),
        names=config.location_names,
        rng=rng,
    )
    mover = (mover_factory or _kinematic_mover)(config)
    return NpcAgent(
        config.npc_id,
        client=client,
        registry=registry,
        mover=mover,
        name=config.name,
        persona=config.persona,
        arrival_distance=config.arrival_distance,
        status_update_interval=status_update_interval or config.status_update_interval,
        autonomous=config.autonomous,
    )


def build_scene(
    config: SceneConfig,
    client: Any,
    *,
    mover_factory: MoverFactory | None = None,
    status_update_interval: float | None = None,
    location_sync_delay_seconds: float | None = None,
    rng: random.Random | None = None,
) -> Scene:
    delay = location_sync_delay_seconds
    if delay is None:
        delay = config.location_sync_delay_seconds
    if delay is None:
        delay = DEFAULT_LOCATION_SYNC_DELAY_SECONDS
    scene = Scene(client, name=config.name, location_sync_delay_seconds=delay)
    for agent_config in config.agents:
        scene.add_agent(
            build_agent(
                agent_config,
                client,
                mover_factory=mover_factory,
                status_update_interval=status_update_interval,
                rng=rng,
            )
        )
    return scene
