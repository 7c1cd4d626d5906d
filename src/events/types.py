"""Game event records."""

import itertools
import math
from dataclasses import asdict, dataclass, field
from typing import Literal, get_args

EventType = Literal[
    "score",
    "shot_attempt",
    "missed_shot",
    "offensive_rebound",
    "defensive_rebound",
    "turnover",
    "steal",
    "3pt",
    "long_distance_attempt",
    "block",
    "pass",
    "assist",
    "dunk",
    "layup",
    "foul_shot",
    "dribble",
]
ShotType = Literal["1pt", "2pt", "3pt"]

EVENT_TYPES: tuple[str, ...] = get_args(EventType)
SHOT_TYPES: tuple[str, ...] = get_args(ShotType)
SHOT_POINTS = {"1pt": 1, "2pt": 2, "3pt": 3}
UNKNOWN_TEAM = "unknown"


@dataclass(frozen=True)
class GameEvent:
    """Single fused game event. Immutable once created."""

    id: str
    event_type: EventType
    team_id: str
    timestamp: float  # seconds
    confidence: float  # [0, 1]
    source: str  # Provenance tag, e.g. "ocr", "ball-movement", "fallback"
    player_id: str | None = None
    score_delta: int | None = None
    shot_type: ShotType | None = None
    notes: str | None = None
    frame_index: int | None = None
    sequence: int = field(default=0, repr=False, compare=False)  # Creation order within a run

    def __post_init__(self):
        if not self.id:
            raise ValueError("Event id must be non-empty")
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.event_type!r}")
        if not math.isfinite(self.timestamp) or self.timestamp < 0:
            raise ValueError(f"Invalid event timestamp: {self.timestamp}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be in [0, 1], got {self.confidence}")
        if self.shot_type is not None and self.shot_type not in SHOT_TYPES:
            raise ValueError(f"Unknown shot type: {self.shot_type!r}")

        if self.event_type == "score":
            if self.score_delta is None or self.score_delta <= 0:
                raise ValueError("Score events need a positive score_delta")
            if self.shot_type is None:
                raise ValueError("Score events need a shot_type")
        elif self.score_delta is not None:
            raise ValueError(f"score_delta is only valid on score events, not {self.event_type}")

    @property
    def is_fallback(self) -> bool:
        """Whether this event was synthesized without evidence."""
        return self.source == "fallback"

    def to_dict(self) -> dict:
        """Convert event to dictionary, using ``type`` for the event type."""
        data = asdict(self)
        data["type"] = data.pop("event_type")
        del data["sequence"]
        return data


class EventFactory:
    """Create events with unique, deterministic ids for one fusion run."""

    def __init__(self):
        self._counter = itertools.count(1)

    def create(
        self,
        event_type: EventType,
        team_id: str | None,
        timestamp: float,
        confidence: float,
        source: str,
        **fields,
    ) -> GameEvent:
        """
        Build an event.

        Args:
            event_type: Event type
            team_id: Team id (None becomes "unknown")
            timestamp: Time in seconds
            confidence: Confidence, clamped to [0, 1]
            source: Provenance tag
            **fields: Optional GameEvent fields

        Returns:
            New GameEvent
        """
        sequence = next(self._counter)
        return GameEvent(
            id=f"{event_type}-{sequence:04d}",
            event_type=event_type,
            team_id=team_id or UNKNOWN_TEAM,
            timestamp=max(0.0, float(timestamp)),
            confidence=round(min(1.0, max(0.0, float(confidence))), 4),
            source=source,
            sequence=sequence,
            **fields,
        )


def sort_events(events: list[GameEvent]) -> list[GameEvent]:
    """Order events by timestamp, then creation order."""
    return sorted(events, key=lambda e: (e.timestamp, e.sequence, e.id))
