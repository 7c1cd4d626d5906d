"""Event fusion module for shots, scores, possession and player actions."""

from src.events.ball_trajectory import BallTrajectory, BallTrajectoryPoint
from src.events.fallback import synthesize_fallback_events
from src.events.fusion import EventFusionEngine, FusionInputs, deduplicate_events
from src.events.types import (
    EVENT_TYPES,
    SHOT_TYPES,
    UNKNOWN_TEAM,
    EventFactory,
    GameEvent,
    sort_events,
)

__all__ = [
    "BallTrajectory",
    "BallTrajectoryPoint",
    "synthesize_fallback_events",
    "EventFusionEngine",
    "FusionInputs",
    "deduplicate_events",
    "EVENT_TYPES",
    "SHOT_TYPES",
    "UNKNOWN_TEAM",
    "EventFactory",
    "GameEvent",
    "sort_events",
]
