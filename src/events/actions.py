"""Secondary game actions inferred from shots, ball possession and poses."""

import logging
from dataclasses import dataclass

from src.config.schemas import FusionConfig
from src.events.attribution import PersonIndex, attribution_factor
from src.events.ball_trajectory import BallTrajectory
from src.events.shots import ShotAttempt
from src.events.types import UNKNOWN_TEAM, EventFactory, GameEvent
from src.vision.detect.types import (
    LEFT_SHOULDER,
    LEFT_WRIST,
    NOSE,
    RIGHT_SHOULDER,
    RIGHT_WRIST,
    PersonDetection,
    Pose,
    PoseFrame,
    bbox_center,
    center_distance,
)

logger = logging.getLogger(__name__)

KEYPOINT_MIN_CONFIDENCE = 0.3
MISSED_SHOT_FACTOR = 0.85
REBOUND_MIN_DELAY = 0.2  # seconds after the shot
REBOUND_DISTANCE = 100.0  # pixels
POSSESSION_DISTANCE = 80.0  # pixels
POSSESSION_MIN_SAMPLES = 2
STEAL_WINDOW = 1.0
PASS_WINDOW = 2.0
ASSIST_WINDOW = 2.0
BLOCK_WINDOW = 0.3
BLOCK_DISTANCE = 150.0
DUNK_WINDOW = 0.2
LAYUP_WINDOW = 0.5
SHOOTER_POSE_DISTANCE = 80.0

# Frame-relative geometry
RAISED_ARM_FRACTION = 0.1  # Wrist above shoulder/nose by this share of body height
LAYUP_RISE_FRACTION = 0.04
DUNK_TOP_FRACTION = 0.2  # bbox top within this share of frame height
LAYUP_TOP_FRACTION = 0.28
THREE_POINT_DEPTH = 0.6  # Shooter center below this share of frame height
LONG_DISTANCE_DEPTH = 0.5

CONFIDENCE = {
    "turnover": 0.5,
    "steal": 0.6,
    "pass": 0.6,
    "block": 0.65,
    "layup": 0.7,
    "dunk": 0.75,
    "3pt": 0.7,
    "long_distance_attempt": 0.4,
}


@dataclass
class PossessionSpell:
    """Consecutive ball samples held by the same player."""

    team_id: str | None
    player_id: str | None
    start: float
    end: float
    samples: int
    holder: PersonDetection

    def same_holder(self, detection: PersonDetection) -> bool:
        """Whether a detection continues this spell."""
        if self.player_id is not None or detection.player_id is not None:
            return self.player_id == detection.player_id
        return self.team_id == detection.team_id and center_distance(self.holder.bbox, detection.bbox) < POSSESSION_DISTANCE


class ActionDetector:
    """Detect rebounds, turnovers, passes and other actions around shots."""

    def __init__(
        self,
        config: FusionConfig,
        factory: EventFactory,
        people: PersonIndex,
        trajectory: BallTrajectory,
        pose_frames: list[PoseFrame] | None = None,
    ):
        """
        Initialize action detector.

        Args:
            config: Fusion configuration
            factory: Event factory for this run
            people: Person detection index
            trajectory: Ball trajectory (may be empty)
            pose_frames: Poses per frame (may be empty)
        """
        self.config = config
        self.factory = factory
        self.people = people
        self.trajectory = trajectory
        self.pose_frames = sorted(pose_frames or [], key=lambda f: f.timestamp)

    def detect_missed_shots(
        self,
        shots: list[ShotAttempt],
        scores: list[GameEvent],
    ) -> list[GameEvent]:
        """
        Shot attempts not followed by a same-team score.

        Args:
            shots: Shot attempts
            scores: Score events

        Returns:
            Missed shot events
        """
        window = self.config.missed_shot_window
        missed = []

        for shot in shots:
            event = shot.event
            scored = any(
                0.0 <= score.timestamp - event.timestamp <= window
                and (event.team_id == UNKNOWN_TEAM or score.team_id == event.team_id)
                for score in scores
            )
            if scored:
                continue

            missed.append(
                self.factory.create(
                    "missed_shot",
                    event.team_id,
                    event.timestamp,
                    event.confidence * MISSED_SHOT_FACTOR,
                    "inference",
                    player_id=event.player_id,
                    frame_index=event.frame_index,
                    notes=f"No score within {window:.1f}s of {event.id}",
                )
            )
        return missed

    def detect_rebounds(self, missed_shots: list[GameEvent]) -> list[GameEvent]:
        """
        First player to reach the ball after each missed shot.

        Args:
            missed_shots: Missed shot events

        Returns:
            Offensive and defensive rebound events
        """
        rebounds = []
        for missed in missed_shots:
            points = self.trajectory.points_between(
                missed.timestamp + REBOUND_MIN_DELAY,
                missed.timestamp + self.config.rebound_window,
            )
            for point in points:
                match = self.people.nearest_person(
                    point.position, point.timestamp, max_dt=0.25, max_distance=REBOUND_DISTANCE
                )
                if match is None or match[0].team_id is None:
                    continue

                rebounder, distance = match
                offensive = missed.team_id != UNKNOWN_TEAM and rebounder.team_id == missed.team_id
                proximity = 1.0 - distance / REBOUND_DISTANCE
                rebounds.append(
                    self.factory.create(
                        "offensive_rebound" if offensive else "defensive_rebound",
                        rebounder.team_id,
                        point.timestamp,
                        (0.5 + 0.1 * proximity) * attribution_factor(rebounder),
                        "ball+proximity-heuristic",
                        player_id=rebounder.player_id,
                        frame_index=point.frame_idx,
                        notes=f"Nearest player {distance:.0f}px from ball after {missed.id}",
                    )
                )
                break
        return rebounds

    def track_possession(self) -> list[PossessionSpell]:
        """
        Group ball samples into possession spells.

        A sample belongs to the nearest person within 80px; spells shorter than
        two samples are treated as noise.

        Returns:
            Possession spells in time order
        """
        spells: list[PossessionSpell] = []
        for point in self.trajectory.points:
            match = self.people.nearest_person(
                point.position, point.timestamp, max_dt=0.25, max_distance=POSSESSION_DISTANCE
            )
            if match is None:
                continue

            holder = match[0]
            if spells and spells[-1].same_holder(holder):
                spells[-1].end = point.timestamp
                spells[-1].samples += 1
            else:
                spells.append(
                    PossessionSpell(
                        team_id=holder.team_id,
                        player_id=holder.player_id,
                        start=point.timestamp,
                        end=point.timestamp,
                        samples=1,
                        holder=holder,
                    )
                )

        return [s for s in spells if s.samples >= POSSESSION_MIN_SAMPLES]

    def detect_possession_changes(self, spells: list[PossessionSpell]) -> list[GameEvent]:
        """
        Turnovers, steals and passes from consecutive possession spells.

        Args:
            spells: Possession spells

        Returns:
            Turnover, steal and pass events
        """
        events = []
        for prev_spell, spell in zip(spells, spells[1:]):
            gap = spell.start - prev_spell.end
            if prev_spell.team_id is None or spell.team_id is None:
                continue

            if spell.team_id != prev_spell.team_id:
                if gap < STEAL_WINDOW:
                    event_type, team_id, player_id = "steal", spell.team_id, spell.player_id
                    holder = spell.holder
                else:
                    event_type, team_id, player_id = "turnover", prev_spell.team_id, prev_spell.player_id
                    holder = prev_spell.holder
                events.append(
                    self.factory.create(
                        event_type,
                        team_id,
                        spell.start,
                        CONFIDENCE[event_type] * attribution_factor(holder),
                        "possession-heuristic",
                        player_id=player_id,
                        notes=f"Possession {prev_spell.team_id} -> {spell.team_id} after {gap:.1f}s",
                    )
                )
            elif (
                prev_spell.player_id is not None
                and spell.player_id is not None
                and prev_spell.player_id != spell.player_id
                and gap < PASS_WINDOW
            ):
                events.append(
                    self.factory.create(
                        "pass",
                        prev_spell.team_id,
                        prev_spell.end,
                        CONFIDENCE["pass"],
                        "action-recognition",
                        player_id=prev_spell.player_id,
                        notes=f"Pass to {spell.player_id}",
                    )
                )
        return events

    def detect_assists(self, passes: list[GameEvent], scores: list[GameEvent]) -> list[GameEvent]:
        """
        Passes shortly before a same-team score.

        Args:
            passes: Pass events
            scores: Score events

        Returns:
            Assist events
        """
        assists = []
        for score in scores:
            recent = [
                p
                for p in passes
                if p.team_id == score.team_id and 0.0 < score.timestamp - p.timestamp < ASSIST_WINDOW
            ]
            if not recent:
                continue

            last_pass = max(recent, key=lambda p: p.timestamp)
            assists.append(
                self.factory.create(
                    "assist",
                    score.team_id,
                    last_pass.timestamp,
                    0.7 * last_pass.confidence * score.confidence,
                    "action-recognition",
                    player_id=last_pass.player_id,
                    notes=f"Pass {last_pass.id} led to {score.id}",
                )
            )
        return assists

    def estimate_three_pointers(self, shots: list[ShotAttempt]) -> list[GameEvent]:
        """
        Flag long-range attempts from how deep in the frame the shooter stands.

        Args:
            shots: Shot attempts

        Returns:
            3pt and long_distance_attempt events
        """
        events = []
        for shot in shots:
            if shot.bbox is None:
                continue

            depth = bbox_center(shot.bbox)[1] / self.people.frame_height
            if depth > THREE_POINT_DEPTH:
                event_type = "3pt"
            elif depth > LONG_DISTANCE_DEPTH:
                event_type = "long_distance_attempt"
            else:
                continue

            events.append(
                self.factory.create(
                    event_type,
                    shot.event.team_id,
                    shot.event.timestamp,
                    CONFIDENCE[event_type],
                    "court-geometry-heuristic",
                    player_id=shot.event.player_id,
                    shot_type="3pt" if event_type == "3pt" else None,
                    frame_index=shot.event.frame_index,
                    notes=f"Shooter at {depth:.0%} of frame height",
                )
            )
        return events

    def detect_blocks(self, shots: list[ShotAttempt]) -> list[GameEvent]:
        """
        Defenders with a raised arm right next to a shooter.

        Args:
            shots: Shot attempts

        Returns:
            Block events
        """
        blocks = []
        for shot in shots:
            shot_team = shot.event.team_id
            if shot.bbox is None or shot_team == UNKNOWN_TEAM:
                continue

            pose_frame = self._nearest_pose_frame(shot.event.timestamp, BLOCK_WINDOW)
            if pose_frame is None:
                continue

            for pose in pose_frame.poses:
                if pose.team_id is None or pose.team_id == shot_team:
                    continue
                if not _arm_raised(pose, (LEFT_SHOULDER, RIGHT_SHOULDER)):
                    continue
                if center_distance(pose.bbox, shot.bbox) >= BLOCK_DISTANCE:
                    continue

                blocks.append(
                    self.factory.create(
                        "block",
                        pose.team_id,
                        pose_frame.timestamp,
                        CONFIDENCE["block"],
                        "action-recognition",
                        player_id=pose.player_id,
                        frame_index=pose_frame.frame_index,
                        notes=f"Raised arm next to shooter of {shot.event.id}",
                    )
                )
                break
        return blocks

    def detect_dunks_and_layups(self, shots: list[ShotAttempt]) -> list[GameEvent]:
        """
        Close-range finishes: hands over the head near the rim, or a rising
        wrist close to the hoop.

        Args:
            shots: Shot attempts

        Returns:
            Dunk and layup events
        """
        events = []
        for shot in shots:
            if shot.bbox is None:
                continue

            event_type = None
            pose_frame = self._nearest_pose_frame(shot.event.timestamp, DUNK_WINDOW)
            shooter = self._shooter_pose(pose_frame, shot) if pose_frame else None
            if shooter is not None and self._is_dunk(shooter, pose_frame):
                event_type = "dunk"
            elif self._is_layup(shot):
                event_type = "layup"

            if event_type is None:
                continue

            events.append(
                self.factory.create(
                    event_type,
                    shot.event.team_id,
                    shot.event.timestamp,
                    CONFIDENCE[event_type],
                    "action-recognition",
                    player_id=shot.event.player_id,
                    frame_index=shot.event.frame_index,
                    notes=f"Close-range finish of {shot.event.id}",
                )
            )
        return events

    def _is_dunk(self, pose: Pose, pose_frame: PoseFrame) -> bool:
        frame_height = pose_frame.height or self.people.frame_height
        near_rim = pose.bbox[1] < frame_height * DUNK_TOP_FRACTION
        return near_rim and _arm_raised(pose, (NOSE, NOSE))

    def _is_layup(self, shot: ShotAttempt) -> bool:
        sequence = [
            (frame, self._shooter_pose(frame, shot))
            for frame in self._pose_frames_between(
                shot.event.timestamp - LAYUP_WINDOW, shot.event.timestamp + LAYUP_WINDOW
            )
        ]
        sequence = [(frame, pose) for frame, pose in sequence if pose is not None]

        for (_, prev_pose), (frame, pose) in zip(sequence, sequence[1:]):
            prev_wrist = _highest_wrist(prev_pose)
            wrist = _highest_wrist(pose)
            if prev_wrist is None or wrist is None:
                continue
            rising = wrist.y < prev_wrist.y - pose.bbox[3] * LAYUP_RISE_FRACTION
            frame_height = frame.height or self.people.frame_height
            if rising and pose.bbox[1] < frame_height * LAYUP_TOP_FRACTION:
                return True
        return False

    def _nearest_pose_frame(self, timestamp: float, max_dt: float) -> PoseFrame | None:
        candidates = self._pose_frames_between(timestamp - max_dt, timestamp + max_dt)
        if not candidates:
            return None
        return min(candidates, key=lambda f: abs(f.timestamp - timestamp))

    def _pose_frames_between(self, start: float, end: float) -> list[PoseFrame]:
        return [f for f in self.pose_frames if start <= f.timestamp <= end]

    @staticmethod
    def _shooter_pose(pose_frame: PoseFrame, shot: ShotAttempt) -> Pose | None:
        best, best_distance = None, SHOOTER_POSE_DISTANCE
        for pose in pose_frame.poses:
            if shot.event.player_id is not None and pose.player_id == shot.event.player_id:
                return pose
            distance = center_distance(pose.bbox, shot.bbox)
            if distance < best_distance:
                best, best_distance = pose, distance
        return best


def _highest_wrist(pose: Pose):
    wrists = [
        kp
        for kp in (
            pose.keypoint(LEFT_WRIST, KEYPOINT_MIN_CONFIDENCE),
            pose.keypoint(RIGHT_WRIST, KEYPOINT_MIN_CONFIDENCE),
        )
        if kp is not None
    ]
    return min(wrists, key=lambda kp: kp.y) if wrists else None


def _arm_raised(pose: Pose, references: tuple[int, int]) -> bool:
    """Whether either wrist is well above its reference keypoint (shoulder or nose)."""
    margin = pose.bbox[3] * RAISED_ARM_FRACTION
    for wrist_idx, reference_idx in zip((LEFT_WRIST, RIGHT_WRIST), references):
        wrist = pose.keypoint(wrist_idx, KEYPOINT_MIN_CONFIDENCE)
        reference = pose.keypoint(reference_idx, KEYPOINT_MIN_CONFIDENCE)
        if wrist is not None and reference is not None and wrist.y < reference.y - margin:
            return True
    return False
