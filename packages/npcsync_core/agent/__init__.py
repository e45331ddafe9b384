"""Per-agent coordination: conversation, autonomous movement and arrival."""

from .arrival import ArrivalDetector, ArrivalEvent, MovementIntent
from .behavior import AutonomousBehaviorLoop, CycleOutcome
from .mover import KinematicMover, Mover
from .runtime import NpcAgent, Scene, build_agent, build_scene
from .session import InteractionSession, SessionState
from .tasks import BackgroundNotifier, PeriodicTask

__all__ = [
    "ArrivalDetector",
    "ArrivalEvent",
    "MovementIntent",
    "AutonomousBehaviorLoop",
    "CycleOutcome",
    "KinematicMover",
    "Mover",
    "NpcAgent",
    "Scene",
    "build_agent",
    "build_scene",
    "InteractionSession",
    "SessionState",
    "BackgroundNotifier",
    "PeriodicTask",
]
