"""Highlight clip synthesis from fused game events."""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field, replace

from src.config.schemas import HighlightConfig
from src.events.types import UNKNOWN_TEAM, GameEvent, sort_events

logger = logging.getLogger(__name__)

HIGHLIGHT_TYPES = (
    "score",
    "dunk",
    "3pt",
    "block",
    "steal",
    "assist",
    "offensive_rebound",
    "defensive_rebound",
    "turnover",
    "shot_attempt",
)

EVENT_PRIORITY = {
    "dunk": 10,
    "3pt": 9,
    "block": 8,
    "score": 7,
    "steal": 6,
    "assist": 5,
    "offensive_rebound": 4,
    "defensive_rebound": 3,
    "turnover": 2,
    "shot_attempt": 1,
}

TEAM_LABELS = {"teamA": "Team A", "teamB": "Team B"}


@dataclass
class HighlightClip:
    """Video segment anchored to one (or, once merged, several) events."""

    id: str
    event_id: str
    event_type: str
    team_id: str
    start_time: float
    end_time: float
    player_id: str | None = None
    description: str = ""
    confidence: float = 0.0
    event_ids: list[str] = field(default_factory=list)
    duration: float = field(init=False)

    def __post_init__(self):
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Clip end ({self.end_time}) must be after its start ({self.start_time})"
            )
        if self.start_time < 0:
            raise ValueError(f"Clip start must be non-negative, got {self.start_time}")
        self.duration = self.end_time - self.start_time
        if not self.event_ids:
            self.event_ids = [self.event_id]

    def to_dict(self) -> dict:
        """Convert clip to dictionary."""
        return asdict(self)


def describe_event(event: GameEvent) -> str:
    """
    Human-readable clip description.

    Args:
        event: Anchor event

    Returns:
        Description such as "Team A scores 3-pointer" or "Player #23 (Team B) blocks the shot"
    """
    team = TEAM_LABELS.get(event.team_id, "Unknown team" if event.team_id == UNKNOWN_TEAM else event.team_id)
    actor = f"Player #{event.player_id} ({team})" if event.player_id else team

    if event.event_type == "score":
        points = event.score_delta or 2
        if points == 3:
            return f"{actor} scores 3-pointer"
        if points == 1:
            return f"{actor} scores free throw"
        return f"{actor} scores {points} points"

    phrases = {
        "dunk": "dunks",
        "3pt": "shoots from 3",
        "block": "blocks the shot",
        "steal": "steals the ball",
        "assist": "assists",
        "offensive_rebound": "offensive rebound",
        "defensive_rebound": "defensive rebound",
        "turnover": "turnover",
        "shot_attempt": "shot attempt",
    }
    return f"{actor} {phrases.get(event.event_type, event.event_type.replace('_', ' '))}"


class HighlightSynthesizer:
    """Build minimum-length highlight clips around significant events."""

    def __init__(self, config: HighlightConfig | None = None):
        """
        Initialize highlight synthesizer.

        Args:
            config: Highlight configuration (defaults if None)
        """
        self.config = config or HighlightConfig()

    def clip_window(self, timestamp: float, video_duration: float) -> tuple[float, float]:
        """
        Clip boundaries for an event, stretched to the minimum duration.

        The window is the event buffered on both sides and clamped to the video.
        A short window is extended forward, then backward, rather than cut at
        the next event.

        Args:
            timestamp: Event time in seconds
            video_duration: Video duration in seconds

        Returns:
            (start_time, end_time)
        """
        min_duration = self.config.min_duration
        start = max(0.0, timestamp - self.config.before_buffer)
        end = min(video_duration, timestamp + self.config.after_buffer)

        if end - start < min_duration:
            end = min(video_duration, start + min_duration)
        if end - start < min_duration:
            start = max(0.0, end - min_duration)
        return start, end

    def synthesize(self, events: list[GameEvent], video_duration: float) -> list[HighlightClip]:
        """
        One clip per highlightable, confident event.

        Args:
            events: Fused events
            video_duration: Video duration in seconds

        Returns:
            Clips in event order (merged when ``merge_overlapping`` is set,
            trimmed to ``top_n`` when set)
        """
        clips = []
        dropped = 0

        for event in sort_events(events):
            if event.event_type not in HIGHLIGHT_TYPES:
                continue
            if event.confidence < self.config.min_confidence:
                continue

            start, end = self.clip_window(event.timestamp, video_duration)
            if end - start < self.config.min_duration:
                dropped += 1
                logger.debug(
                    "Dropping %s clip: %.1fs window is shorter than %.1fs",
                    event.id,
                    end - start,
                    self.config.min_duration,
                )
                continue

            clips.append(
                HighlightClip(
                    id=f"highlight-{event.id}",
                    event_id=event.id,
                    event_type=event.event_type,
                    team_id=event.team_id,
                    player_id=event.player_id,
                    start_time=start,
                    end_time=end,
                    description=describe_event(event),
                    confidence=event.confidence,
                )
            )

        if dropped:
            logger.warning(
                "Dropped %d highlight clips shorter than %.1fs (video is %.1fs)",
                dropped,
                self.config.min_duration,
                video_duration,
            )

        if self.config.merge_overlapping:
            clips = merge_overlapping(clips, self.config.merge_gap)
        if self.config.top_n is not None:
            clips = top_clips(clips, self.config.top_n)

        logger.info("Synthesized %d highlight clips", len(clips))
        return clips


def merge_overlapping(clips: list[HighlightClip], max_gap: float = 1.0) -> list[HighlightClip]:
    """
    Merge clips that overlap or start within ``max_gap`` seconds of the previous end.

    Args:
        clips: Clips to merge
        max_gap: Largest gap in seconds still merged

    Returns:
        Merged clips in start order; each keeps the id of its first clip
    """
    if not clips:
        return []

    ordered = sorted(clips, key=lambda c: (c.start_time, c.id))
    merged = []
    current = ordered[0]

    for clip in ordered[1:]:
        if clip.start_time - current.end_time <= max_gap:
            current = replace(
                current,
                end_time=max(current.end_time, clip.end_time),
                description=f"{current.description} + {clip.description}",
                confidence=max(current.confidence, clip.confidence),
                event_ids=current.event_ids + clip.event_ids,
            )
        else:
            merged.append(current)
            current = clip

    merged.append(current)
    return merged


def filter_clips(
    clips: list[HighlightClip],
    player_ids: list[str] | None = None,
    team_ids: list[str] | None = None,
    event_types: list[str] | None = None,
    min_confidence: float | None = None,
) -> list[HighlightClip]:
    """
    Filter clips by player, team, event type and confidence.

    Empty or None criteria do not filter.
    """
    filtered = clips
    if player_ids:
        filtered = [c for c in filtered if c.player_id is not None and c.player_id in player_ids]
    if team_ids:
        filtered = [c for c in filtered if c.team_id in team_ids]
    if event_types:
        filtered = [c for c in filtered if c.event_type in event_types]
    if min_confidence is not None:
        filtered = [c for c in filtered if c.confidence >= min_confidence]
    return filtered


def group_by_player(clips: list[HighlightClip]) -> dict[str, list[HighlightClip]]:
    """Group clips by player id ("unknown" for unattributed clips)."""
    grouped = defaultdict(list)
    for clip in clips:
        grouped[clip.player_id or UNKNOWN_TEAM].append(clip)
    return dict(grouped)


def group_by_type(clips: list[HighlightClip]) -> dict[str, list[HighlightClip]]:
    """Group clips by anchor event type."""
    grouped = defaultdict(list)
    for clip in clips:
        grouped[clip.event_type].append(clip)
    return dict(grouped)


def top_clips(clips: list[HighlightClip], n: int = 10) -> list[HighlightClip]:
    """
    Most significant clips.

    Args:
        clips: Candidate clips
        n: Number of clips to keep

    Returns:
        Up to ``n`` clips ranked by event priority, then confidence, then start time
    """
    ranked = sorted(
        clips,
        key=lambda c: (-EVENT_PRIORITY.get(c.event_type, 0), -c.confidence, c.start_time),
    )
    return ranked[:n]
