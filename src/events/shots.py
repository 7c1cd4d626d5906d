"""Shot attempt detection from pose and ball signals."""

import logging
from dataclasses import dataclass

import numpy as np

from src.config.schemas import FusionConfig
from src.events.attribution import PersonIndex, attribution_factor
from src.events.ball_trajectory import BallTrajectory
from src.events.types import EventFactory, GameEvent
from src.vision.detect.types import (
    LEFT_ELBOW,
    LEFT_SHOULDER,
    LEFT_WRIST,
    RIGHT_ELBOW,
    RIGHT_SHOULDER,
    RIGHT_WRIST,
    BBox,
    Keypoint,
    Pose,
    PoseFrame,
    ShotCandidate,
    bbox_center,
    center_distance,
)

logger = logging.getLogger(__name__)

ARM_KEYPOINT_MIN_CONFIDENCE = 0.3
ARMS = (
    (LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST),
    (RIGHT_SHOULDER, RIGHT_ELBOW, RIGHT_WRIST),
)
FULL_ELEVATION = 0.5  # Wrist half a body height above the shoulder
SAME_SHOOTER_DISTANCE = 100.0  # pixels

# Confidence bands
POSE_SHOT_BASE = 0.6
POSE_SHOT_RANGE = 0.15
POSE_SHOT_MAX = 0.85
BALL_NEAR_BONUS = 0.1
BALL_ABOVE_BONUS = 0.05
BALL_ONLY_BASE = 0.5
BALL_ONLY_RANGE = 0.25
BALL_ONLY_SCALE = 40.0  # Extra pixels of rise for full confidence


@dataclass
class ArmElevation:
    """Raised-arm measurement of one pose."""

    elevation: float  # (shoulder.y - wrist.y) / bbox height
    extension: float  # Elbow angle / 180


@dataclass
class ShootingMotion:
    """Pose-derived shooting signal for one player."""

    frame_index: int
    timestamp: float
    bbox: BBox
    strength: float  # [0, 1]
    team_id: str | None = None
    player_id: str | None = None

    def same_shooter(self, other: "ShootingMotion") -> bool:
        """Whether two motions belong to the same player."""
        if self.player_id is not None and other.player_id is not None:
            return self.player_id == other.player_id
        return center_distance(self.bbox, other.bbox) < SAME_SHOOTER_DISTANCE


@dataclass
class ShotAttempt:
    """Shot attempt event with the shooter's box, when known."""

    event: GameEvent
    bbox: BBox | None = None


def elbow_angle(shoulder: Keypoint, elbow: Keypoint, wrist: Keypoint) -> float:
    """
    Angle at the elbow between upper arm and forearm.

    Args:
        shoulder: Shoulder keypoint
        elbow: Elbow keypoint
        wrist: Wrist keypoint

    Returns:
        Angle in degrees (180 = fully extended)
    """
    upper = np.array([shoulder.x - elbow.x, shoulder.y - elbow.y])
    lower = np.array([wrist.x - elbow.x, wrist.y - elbow.y])
    norms = np.linalg.norm(upper) * np.linalg.norm(lower)
    if norms < 1e-6:
        return 0.0
    cos_angle = np.clip(np.dot(upper, lower) / norms, -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_angle)))


def arm_elevation(pose: Pose) -> ArmElevation | None:
    """
    Measure the higher of the two arms.

    Args:
        pose: Person pose

    Returns:
        ArmElevation of the more raised arm, or None if no arm is visible
    """
    height = pose.bbox[3]
    if height <= 0:
        return None

    best = None
    for shoulder_idx, elbow_idx, wrist_idx in ARMS:
        shoulder = pose.keypoint(shoulder_idx, ARM_KEYPOINT_MIN_CONFIDENCE)
        elbow = pose.keypoint(elbow_idx, ARM_KEYPOINT_MIN_CONFIDENCE)
        wrist = pose.keypoint(wrist_idx, ARM_KEYPOINT_MIN_CONFIDENCE)
        if shoulder is None or elbow is None or wrist is None:
            continue

        arm = ArmElevation(
            elevation=(shoulder.y - wrist.y) / height,
            extension=elbow_angle(shoulder, elbow, wrist) / 180.0,
        )
        if best is None or arm.elevation > best.elevation:
            best = arm

    return best


def shooting_strength(arm: ArmElevation) -> float:
    """Combine elevation and extension into a [0, 1] strength."""
    elevation_score = min(1.0, max(0.0, arm.elevation) / FULL_ELEVATION)
    return float(np.clip(0.5 * elevation_score + 0.5 * arm.extension, 0.0, 1.0))


def collapse_motions(motions: list[ShootingMotion], window: float) -> list[ShootingMotion]:
    """Keep the strongest motion per shooter within each time window."""
    kept: list[ShootingMotion] = []
    for motion in sorted(motions, key=lambda m: m.timestamp):
        for i, other in enumerate(kept):
            if motion.timestamp - other.timestamp <= window and motion.same_shooter(other):
                if motion.strength > other.strength:
                    kept[i] = motion
                break
        else:
            kept.append(motion)
    return kept


def detect_shooting_motions(
    pose_frames: list[PoseFrame],
    min_elevation: float = 0.05,
    window: float = 1.0,
) -> list[ShootingMotion]:
    """
    Find raised-arm shooting motions in pose frames.

    Args:
        pose_frames: Poses per frame
        min_elevation: Minimum wrist-over-shoulder elevation (fraction of bbox height)
        window: Seconds within which one shooter yields one motion

    Returns:
        Shooting motions in time order
    """
    motions = []
    for pose_frame in pose_frames:
        for pose in pose_frame.poses:
            arm = arm_elevation(pose)
            if arm is None or arm.elevation <= min_elevation:
                continue
            motions.append(
                ShootingMotion(
                    frame_index=pose_frame.frame_index,
                    timestamp=pose_frame.timestamp,
                    bbox=pose.bbox,
                    strength=shooting_strength(arm),
                    team_id=pose.team_id,
                    player_id=pose.player_id,
                )
            )
    return collapse_motions(motions, window)


def motions_from_candidates(candidates: list[ShotCandidate]) -> list[ShootingMotion]:
    """Wrap externally estimated shot candidates as shooting motions."""
    return [
        ShootingMotion(
            frame_index=c.frame_index,
            timestamp=c.timestamp,
            bbox=c.bbox,
            strength=float(np.clip(c.confidence, 0.0, 1.0)),
            team_id=c.team_id,
            player_id=c.player_id,
        )
        for c in sorted(candidates, key=lambda c: c.timestamp)
    ]


class ShotDetector:
    """Turn shooting motions and ball movement into shot attempt events."""

    def __init__(
        self,
        config: FusionConfig,
        factory: EventFactory,
        people: PersonIndex,
        trajectory: BallTrajectory,
        fps: float | None = None,
    ):
        """
        Initialize shot detector.

        Args:
            config: Fusion configuration
            factory: Event factory for this run
            people: Person detection index
            trajectory: Ball trajectory (may be empty)
            fps: Frame rate of the frame indices (defaults to config.sampling_fps)
        """
        self.config = config
        self.factory = factory
        self.people = people
        self.trajectory = trajectory
        self.fps = fps or config.sampling_fps

    def from_motions(self, motions: list[ShootingMotion]) -> list[ShotAttempt]:
        """
        Shot attempts from shooting motions, up-weighted by ball proximity.

        Args:
            motions: Shooting motions

        Returns:
            Shot attempts
        """
        window_frames = max(1, int(round(self.config.shot_window * self.fps)))
        shots = []

        for motion in motions:
            center = bbox_center(motion.bbox)
            team_id, player_id = motion.team_id, motion.player_id

            shooter = None
            if team_id is None or player_id is None:
                match = self.people.nearest_person(
                    center,
                    motion.timestamp,
                    max_dt=self.config.score_attribution_window,
                    max_distance=SAME_SHOOTER_DISTANCE,
                )
                if match is not None:
                    shooter = match[0]
                    team_id = team_id or shooter.team_id
                    player_id = player_id or shooter.player_id

            nearby = [
                p
                for p in self.trajectory.points_near_frame(motion.frame_index, window_frames)
                if BallTrajectory.distance(p, center) < self.config.ball_proximity
            ]
            bonus = 0.0
            if nearby:
                bonus += BALL_NEAR_BONUS
                if any(p.position[1] < center[1] for p in nearby):
                    bonus += BALL_ABOVE_BONUS

            confidence = min(POSE_SHOT_MAX, POSE_SHOT_BASE + POSE_SHOT_RANGE * motion.strength + bonus)
            confidence *= attribution_factor(shooter)

            event = self.factory.create(
                "shot_attempt",
                team_id,
                motion.timestamp,
                confidence,
                "pose+ball-heuristic" if nearby else "pose-analysis",
                player_id=player_id,
                frame_index=motion.frame_index,
                notes=f"Shooting motion (strength {motion.strength:.2f})"
                + (", ball nearby" if nearby else ""),
            )
            shots.append(ShotAttempt(event=event, bbox=motion.bbox))

        return shots

    def from_ball(self) -> list[ShotAttempt]:
        """
        Shot attempts from upward ball movement alone.

        Returns:
            Shot attempts, one per upward run of the ball
        """
        shots = []
        threshold = self.config.min_upward_motion

        for start_idx, end_idx in self.trajectory.get_upward_segments(threshold):
            launch = self.trajectory.points[start_idx]
            rise = self.trajectory.max_rise(start_idx, end_idx)

            confidence = BALL_ONLY_BASE + BALL_ONLY_RANGE * min(1.0, (rise - threshold) / BALL_ONLY_SCALE)
            confidence = min(self.config.ball_only_max_confidence, confidence)

            match = self.people.nearest_person(
                launch.position,
                launch.timestamp,
                max_dt=self.config.score_attribution_window,
            )
            shooter = match[0] if match else None
            confidence *= attribution_factor(shooter)

            event = self.factory.create(
                "shot_attempt",
                shooter.team_id if shooter else None,
                launch.timestamp,
                confidence,
                "ball-movement",
                player_id=shooter.player_id if shooter else None,
                frame_index=launch.frame_idx,
                notes=f"Ball rose {rise:.0f}px between sampled frames",
            )
            shots.append(ShotAttempt(event=event, bbox=shooter.bbox if shooter else None))

        logger.debug("Ball-only shot detection found %d attempts", len(shots))
        return shots
