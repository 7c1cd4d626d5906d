"""Score detection from scoreboard OCR or ball-through-hoop tracking."""

import logging
import re

import numpy as np

from src.config.schemas import FusionConfig
from src.events.attribution import PersonIndex
from src.events.ball_trajectory import BallTrajectory, BallTrajectoryPoint
from src.events.shots import ShotAttempt
from src.events.types import SHOT_POINTS, UNKNOWN_TEAM, EventFactory, GameEvent
from src.vision.detect.types import HoopDetection, HoopRegion, ScoreboardRead, is_valid_frame

logger = logging.getLogger(__name__)

SCORE_PATTERNS = [
    re.compile(r"(\d+)\s*[-–]\s*(\d+)"),  # "45 - 42"
    re.compile(r"(\d+)\s*:\s*(\d+)"),  # "45:42"
    re.compile(r"(\d+)\s+(\d+)"),  # "45 42"
]
MAX_SCORE = 200
STABLE_READ_BONUS = 0.05
OCR_CONFIDENCE_SCALE = 0.95
RECENT_SHOT_WINDOW = 3.0  # seconds before a score change
MAX_PLAY_POINTS = max(SHOT_POINTS.values())

VISUAL_SCORE_SCALE = 0.75
THREE_POINT_CENTER_OFFSET = 0.35  # Shooter this far from frame center (fraction of width)

# Backboard scan
HOOP_SEARCH_BOTTOM = 0.4
HOOP_SEARCH_LEFT = 0.2
HOOP_SEARCH_RIGHT = 0.8
HOOP_BLOCK_SIZE = 20
HOOP_WHITE_RATIO = 0.6
HOOP_MAX_CONFIDENCE = 0.85


def parse_scoreboard_text(text: str) -> tuple[int, int] | None:
    """
    Extract (teamA, teamB) scores from scoreboard OCR text.

    Args:
        text: Raw OCR text

    Returns:
        Score pair, or None if no plausible pair is found
    """
    clean = " ".join((text or "").split()).lower()

    for pattern in SCORE_PATTERNS:
        match = pattern.search(clean)
        if match:
            team_a, team_b = int(match.group(1)), int(match.group(2))
            if team_a <= MAX_SCORE and team_b <= MAX_SCORE:
                return team_a, team_b

    numbers = re.findall(r"\d+", clean)
    if len(numbers) >= 2:
        team_a, team_b = int(numbers[0]), int(numbers[1])
        if team_a <= MAX_SCORE and team_b <= MAX_SCORE:
            return team_a, team_b

    return None


def shot_type_for_delta(delta: int) -> str | None:
    """Shot type implied by a score increment, or None if no single play scores it."""
    for shot_type, points in SHOT_POINTS.items():
        if points == delta:
            return shot_type
    return None


def detect_ocr_scores(
    reads: list[ScoreboardRead],
    shots: list[ShotAttempt],
    config: FusionConfig,
    factory: EventFactory,
) -> list[GameEvent]:
    """
    Score events from changes between scoreboard readings.

    Low-confidence and unparseable readings are ignored. A reading that drops
    below the baseline or jumps by more than one play can score is treated as
    a misread unless the next reading repeats it, in which case the baseline
    is resynced to it without an event. An event is emitted only when exactly
    one team's score went up.

    Args:
        reads: Scoreboard OCR readings
        shots: Shot attempts, used for player attribution
        config: Fusion configuration
        factory: Event factory for this run

    Returns:
        Score events
    """
    parsed = []
    for read in sorted(reads, key=lambda r: r.timestamp):
        if read.confidence < config.min_ocr_confidence:
            continue
        scores = parse_scoreboard_text(read.text)
        if scores is not None:
            parsed.append((read, scores))

    events = []
    baseline = None

    for i, (read, scores) in enumerate(parsed):
        if baseline is None:
            baseline = scores
            continue

        delta_a = scores[0] - baseline[0]
        delta_b = scores[1] - baseline[1]
        if delta_a == 0 and delta_b == 0:
            continue

        confirmed = i + 1 < len(parsed) and parsed[i + 1][1] == scores
        if min(delta_a, delta_b) < 0 or max(delta_a, delta_b) > MAX_PLAY_POINTS:
            if confirmed:
                logger.warning(
                    "Scoreboard jumped from %s to %s at %.2fs; resyncing without an event",
                    baseline,
                    scores,
                    read.timestamp,
                )
                baseline = scores
            else:
                logger.debug("Ignoring implausible scoreboard read %s at %.2fs", scores, read.timestamp)
            continue

        baseline = scores
        if delta_a > 0 and delta_b > 0:
            logger.warning("Both scores changed at %.2fs; skipping ambiguous read", read.timestamp)
            continue

        team_id, delta = ("teamA", delta_a) if delta_a > 0 else ("teamB", delta_b)
        confidence = min(
            1.0, OCR_CONFIDENCE_SCALE * read.confidence + (STABLE_READ_BONUS if confirmed else 0.0)
        )

        recent_shot = _recent_shot(shots, team_id, read.timestamp)

        events.append(
            factory.create(
                "score",
                team_id,
                read.timestamp,
                confidence,
                "ocr",
                player_id=recent_shot.event.player_id if recent_shot else None,
                score_delta=delta,
                shot_type=shot_type_for_delta(delta),
                frame_index=read.frame_index,
                notes=f"Scoreboard changed to {scores[0]}-{scores[1]} (+{delta})",
            )
        )

    return events


def _recent_shot(shots: list[ShotAttempt], team_id: str, timestamp: float) -> ShotAttempt | None:
    """Latest same-team shot attempt shortly before ``timestamp``."""
    recent = [
        s
        for s in shots
        if s.event.team_id == team_id and 0.0 <= timestamp - s.event.timestamp <= RECENT_SHOT_WINDOW
    ]
    return max(recent, key=lambda s: s.event.timestamp) if recent else None


def smooth_hoop_region(detections: list[HoopDetection]) -> HoopRegion | None:
    """Average hoop region across detections, or None if none found a hoop."""
    regions = [d.region for d in detections if d.region is not None]
    if not regions:
        return None
    return HoopRegion(
        x=float(np.mean([r.x for r in regions])),
        y=float(np.mean([r.y for r in regions])),
        width=float(np.mean([r.width for r in regions])),
        height=float(np.mean([r.height for r in regions])),
        confidence=float(np.mean([r.confidence for r in regions])),
    )


def detect_hoop_region(frame: np.ndarray, block_size: int = HOOP_BLOCK_SIZE) -> HoopRegion | None:
    """
    Locate the backboard as the whitest block in the upper middle of the frame.

    Args:
        frame: Video frame (BGR format)
        block_size: Scan block size in pixels

    Returns:
        Hoop region, or None if no block is white enough
    """
    if not is_valid_frame(frame):
        logger.warning("Skipping malformed frame for hoop detection")
        return None

    height, width = frame.shape[:2]
    b = frame[:, :, 0].astype(np.int16)
    g = frame[:, :, 1].astype(np.int16)
    r = frame[:, :, 2].astype(np.int16)
    white = (r > 180) & (g > 180) & (b > 180) & (np.abs(r - g) < 30) & (np.abs(g - b) < 30)

    best = None
    best_count = 0
    for y in range(0, int(height * HOOP_SEARCH_BOTTOM), block_size):
        for x in range(int(width * HOOP_SEARCH_LEFT), int(width * HOOP_SEARCH_RIGHT), block_size):
            block = white[y:y + block_size, x:x + block_size]
            count = int(block.sum())
            ratio = count / block.size
            if ratio > HOOP_WHITE_RATIO and count > best_count:
                best_count = count
                best = HoopRegion(
                    x=float(max(0, x - block_size)),
                    y=float(max(0, y - block_size)),
                    width=float(block_size * 3),
                    height=float(block_size * 2),
                    confidence=min(ratio, HOOP_MAX_CONFIDENCE),
                )
    return best


def find_rim_crossing(
    points: list[BallTrajectoryPoint],
    region: HoopRegion,
) -> BallTrajectoryPoint | None:
    """
    First point where the ball drops through the rim line inside the hoop.

    Args:
        points: Ball points in time order
        region: Hoop region

    Returns:
        Point just below the rim line, or None
    """
    for prev_point, point in zip(points, points[1:]):
        moving_down = point.position[1] > prev_point.position[1]
        crossed = prev_point.position[1] < region.mid_y < point.position[1]
        if moving_down and crossed and region.contains_x(point.position[0]):
            return point
    return None


def visual_shot_type(shot: ShotAttempt, frame_width: float) -> str:
    """Shot type from the attempt, or from how far off-center the shooter stood."""
    if shot.event.shot_type is not None:
        return shot.event.shot_type
    if shot.bbox is None:
        return "2pt"
    center_x = shot.bbox[0] + shot.bbox[2] / 2
    if abs(center_x - frame_width / 2) > frame_width * THREE_POINT_CENTER_OFFSET:
        return "3pt"
    return "2pt"


def detect_visual_scores(
    shots: list[ShotAttempt],
    trajectory: BallTrajectory,
    hoop_detections: list[HoopDetection],
    people: PersonIndex,
    config: FusionConfig,
    factory: EventFactory,
) -> list[GameEvent]:
    """
    Score events from the ball dropping through the hoop after a shot.

    Args:
        shots: Shot attempts
        trajectory: Ball trajectory
        hoop_detections: Hoop detector output
        people: Person detection index (for frame width)
        config: Fusion configuration
        factory: Event factory for this run

    Returns:
        Score events
    """
    region = smooth_hoop_region(hoop_detections)
    if region is None or len(trajectory) == 0:
        return []

    window = config.visual_score_window
    events = []

    for shot in shots:
        shot_time = shot.event.timestamp
        hoop_seen = any(
            d.region is not None and abs(d.timestamp - shot_time) < window for d in hoop_detections
        )
        if not hoop_seen:
            continue

        crossing = find_rim_crossing(trajectory.points_between(shot_time, shot_time + window), region)
        if crossing is None:
            continue

        team_id = shot.event.team_id
        if team_id == UNKNOWN_TEAM:
            team_id = people.team_majority(crossing.timestamp, config.score_attribution_window)

        shot_type = visual_shot_type(shot, people.frame_width)
        delta = SHOT_POINTS[shot_type]
        events.append(
            factory.create(
                "score",
                team_id,
                crossing.timestamp,
                VISUAL_SCORE_SCALE * region.confidence,
                "visual-ball-tracking",
                player_id=shot.event.player_id,
                score_delta=delta,
                shot_type=shot_type,
                frame_index=crossing.frame_idx,
                notes=f"Ball through hoop after {shot.event.id}, {shot_type} (+{delta})",
            )
        )

    return events
