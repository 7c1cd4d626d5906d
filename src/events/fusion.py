"""Event fusion: combine detection streams into one ordered event list."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from src.config.schemas import FusionConfig
from src.events.actions import ActionDetector
from src.events.attribution import PersonIndex
from src.events.ball_trajectory import BallTrajectory
from src.events.fallback import synthesize_fallback_events
from src.events.scoring import detect_ocr_scores, detect_visual_scores
from src.events.shots import ShotAttempt, ShotDetector, detect_shooting_motions, motions_from_candidates
from src.events.types import EventFactory, GameEvent, sort_events
from src.vision.detect.types import (
    BallFrame,
    FrameDetectionSet,
    HoopDetection,
    PoseFrame,
    ScoreboardRead,
    ShotCandidate,
)

logger = logging.getLogger(__name__)


@dataclass
class FusionInputs:
    """Detection streams for one video. Any stream may be empty."""

    duration: float  # seconds
    person_frames: list[FrameDetectionSet] = field(default_factory=list)
    ball_frames: list[BallFrame] = field(default_factory=list)
    pose_frames: list[PoseFrame] = field(default_factory=list)
    shot_candidates: list[ShotCandidate] = field(default_factory=list)
    scoreboard_reads: list[ScoreboardRead] = field(default_factory=list)
    hoop_detections: list[HoopDetection] = field(default_factory=list)
    frame_width: int | None = None
    frame_height: int | None = None
    fps: float | None = None  # frame_index units per second


def deduplicate_events(events: list[GameEvent], time_window: float) -> list[GameEvent]:
    """
    Collapse same-team, same-type events within a time window.

    Args:
        events: Events to deduplicate
        time_window: Window in seconds, measured from the first event of a run

    Returns:
        Highest-confidence event of each run, in time order
    """
    groups: dict[tuple[str, str], list[GameEvent]] = defaultdict(list)
    for event in events:
        groups[(event.team_id, event.event_type)].append(event)

    deduplicated = []
    for group in groups.values():
        group = sort_events(group)
        i = 0
        while i < len(group):
            current = group[i]
            best_event = current

            j = i + 1
            while j < len(group) and group[j].timestamp - current.timestamp <= time_window:
                if group[j].confidence > best_event.confidence:
                    best_event = group[j]
                j += 1

            deduplicated.append(best_event)
            i = j

    return sort_events(deduplicated)


class EventFusionEngine:
    """Turn shot, score, possession and pose signals into typed game events."""

    def __init__(self, config: FusionConfig | None = None):
        """
        Initialize fusion engine.

        Args:
            config: Fusion configuration (defaults if None)
        """
        self.config = config or FusionConfig()
        self.stage_counts: dict[str, int] = {}

    def fuse(self, inputs: FusionInputs) -> list[GameEvent]:
        """
        Fuse all detection streams.

        Missing streams degrade to the next heuristic. When nothing at all can
        be produced, evenly spaced fallback events are returned instead.

        Args:
            inputs: Detection streams

        Returns:
            Events ordered by timestamp
        """
        config = self.config
        factory = EventFactory()
        self.stage_counts = {}

        people = PersonIndex(inputs.person_frames, inputs.frame_width, inputs.frame_height)
        trajectory = BallTrajectory.from_frames(inputs.ball_frames, max_gap=config.max_ball_gap)
        shot_detector = ShotDetector(config, factory, people, trajectory, fps=inputs.fps)
        actions = ActionDetector(config, factory, people, trajectory, inputs.pose_frames)

        shots = self._detect_shots(inputs, shot_detector)

        if inputs.scoreboard_reads:
            scores = detect_ocr_scores(inputs.scoreboard_reads, shots, config, factory)
        else:
            scores = detect_visual_scores(
                shots, trajectory, inputs.hoop_detections, people, config, factory
            )
        self._count("scores", scores)

        missed = self._count("missed_shots", actions.detect_missed_shots(shots, scores))
        rebounds = self._count("rebounds", actions.detect_rebounds(missed))

        possession_events = actions.detect_possession_changes(actions.track_possession())
        changes = [e for e in possession_events if e.event_type != "pass"]
        passes = [e for e in possession_events if e.event_type == "pass"]
        self._count("possession_changes", changes)

        three_pointers = []
        if config.estimate_three_pointers:
            three_pointers = self._count("three_point_estimates", actions.estimate_three_pointers(shots))

        action_events = []
        if config.detect_actions:
            action_events = (
                passes
                + actions.detect_assists(passes, scores)
                + actions.detect_blocks(shots)
                + actions.detect_dunks_and_layups(shots)
            )
            self._count("actions", action_events)

        events = (
            [s.event for s in shots] + scores + missed + rebounds + changes + three_pointers + action_events
        )
        events = [e for e in events if e.confidence >= config.min_event_confidence]
        if config.dedup_window is not None:
            events = deduplicate_events(events, config.dedup_window)
        events = sort_events(events)

        if not events:
            events = synthesize_fallback_events(inputs.duration, config, factory)
            self._count("fallback", events)

        logger.info("Fused %d events (%s)", len(events), self._summary())
        return events

    def _detect_shots(self, inputs: FusionInputs, detector: ShotDetector) -> list[ShotAttempt]:
        """Pose-derived shots, falling back to ball movement alone."""
        if inputs.shot_candidates:
            motions = motions_from_candidates(inputs.shot_candidates)
        else:
            motions = detect_shooting_motions(
                inputs.pose_frames,
                min_elevation=self.config.min_arm_elevation,
                window=self.config.shot_window,
            )

        shots = detector.from_motions(motions)
        if not shots:
            shots = detector.from_ball()
            if shots:
                logger.info("No pose-derived shots; using %d ball-only attempts", len(shots))
        return self._count("shots", shots)

    def _count(self, stage: str, items: list) -> list:
        self.stage_counts[stage] = len(items)
        logger.debug("Fusion stage %s: %d", stage, len(items))
        return items

    def _summary(self) -> str:
        return ", ".join(f"{stage}={count}" for stage, count in self.stage_counts.items())
