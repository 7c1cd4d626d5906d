"""Tests for shot attempt detection."""

import pytest

from src.config.schemas import FusionConfig
from src.events.attribution import PersonIndex
from src.events.ball_trajectory import BallTrajectory
from src.events.shots import (
    ShotDetector,
    arm_elevation,
    detect_shooting_motions,
    elbow_angle,
    motions_from_candidates,
)
from src.events.types import EventFactory
from src.vision.detect.types import (
    BallDetection,
    BallFrame,
    FrameDetectionSet,
    Keypoint,
    PersonDetection,
    Pose,
    PoseFrame,
    ShotCandidate,
)


def shooting_pose(x=100.0, y=100.0, raised=True, team_id=None, player_id=None):
    """Pose with both arms straight up (or hanging down)."""
    keypoints = [Keypoint(0.0, 0.0, 0.0) for _ in range(17)]
    keypoints[0] = Keypoint(x + 25, y + 20, 0.9)
    for shoulder, elbow, wrist, dx in ((5, 7, 9, 10), (6, 8, 10, 40)):
        keypoints[shoulder] = Keypoint(x + dx, y + 40, 0.9)
        if raised:
            keypoints[elbow] = Keypoint(x + dx, y + 10, 0.9)
            keypoints[wrist] = Keypoint(x + dx, y - 40, 0.9)
        else:
            keypoints[elbow] = Keypoint(x + dx, y + 80, 0.9)
            keypoints[wrist] = Keypoint(x + dx, y + 120, 0.9)
    return Pose(keypoints=keypoints, bbox=(x, y, 50.0, 200.0), team_id=team_id, player_id=player_id)


def ball_frames(positions, start_frame=0, fps=30.0):
    """Ball frames from (x, y) centers at consecutive frames."""
    return [
        BallFrame(
            frame_index=start_frame + i,
            timestamp=(start_frame + i) / fps,
            detections=[BallDetection(bbox=(x - 5, y - 5, 10, 10), confidence=0.8)],
        )
        for i, (x, y) in enumerate(positions)
    ]


def detector(person_frames=None, balls=None, fps=None):
    """Shot detector over the given streams."""
    return ShotDetector(
        FusionConfig(),
        EventFactory(),
        PersonIndex(person_frames or [], 1920, 1080),
        BallTrajectory.from_frames(balls or []),
        fps=fps,
    )


def test_elbow_angle_straight_arm():
    """Test a straight arm measures 180 degrees."""
    angle = elbow_angle(Keypoint(0, 100, 1), Keypoint(0, 50, 1), Keypoint(0, 0, 1))

    assert angle == pytest.approx(180.0)


def test_arm_elevation_needs_visible_arm():
    """Test elevation is None without confident arm keypoints."""
    pose = Pose(keypoints=[Keypoint(0, 0, 0.1) for _ in range(17)], bbox=(0, 0, 50, 200))

    assert arm_elevation(pose) is None
    assert arm_elevation(shooting_pose()).elevation == pytest.approx(0.4)


def test_detect_shooting_motions_collapses_per_shooter():
    """Test one shooter in consecutive frames yields one motion."""
    pose_frames = [
        PoseFrame(frame_index=i, timestamp=i / 30, poses=[shooting_pose(), shooting_pose(x=600, raised=False)])
        for i in range(10)
    ]

    motions = detect_shooting_motions(pose_frames, min_elevation=0.05, window=1.0)

    assert len(motions) == 1
    assert 0.0 < motions[0].strength <= 1.0


def test_shot_with_ball_nearby():
    """Test a raised arm with the ball above the shooter is a pose+ball shot."""
    pose_frames = [PoseFrame(frame_index=30, timestamp=1.0, poses=[shooting_pose(team_id="teamA")])]
    balls = ball_frames([(125, 80), (125, 70)], start_frame=30)

    shots = detector(balls=balls).from_motions(detect_shooting_motions(pose_frames))

    assert len(shots) == 1
    event = shots[0].event
    assert event.event_type == "shot_attempt"
    assert event.source == "pose+ball-heuristic"
    assert event.team_id == "teamA"
    assert event.confidence == pytest.approx(0.85)


def test_shot_without_ball():
    """Test a raised arm without a ball is a lower-confidence pose shot."""
    pose_frames = [PoseFrame(frame_index=30, timestamp=1.0, poses=[shooting_pose()])]

    shots = detector().from_motions(detect_shooting_motions(pose_frames))

    assert shots[0].event.source == "pose-analysis"
    assert 0.6 <= shots[0].event.confidence < 0.85


def test_shot_attributed_to_nearest_person():
    """Test shots without ids take team and player from the nearest person."""
    people = [
        FrameDetectionSet(
            frame_index=30,
            timestamp=1.0,
            detections=[
                PersonDetection(bbox=(100, 100, 50, 200), confidence=0.9, team_id="teamB", player_id="7")
            ],
        )
    ]
    candidates = [ShotCandidate(frame_index=30, timestamp=1.0, bbox=(100, 100, 50, 200), confidence=0.8)]

    shots = detector(person_frames=people).from_motions(motions_from_candidates(candidates))

    assert shots[0].event.team_id == "teamB"
    assert shots[0].event.player_id == "7"


def test_positional_team_lowers_confidence():
    """Test shots credited through a positional team guess are trusted less."""
    def people(source):
        return [
            FrameDetectionSet(
                frame_index=30,
                timestamp=1.0,
                detections=[
                    PersonDetection(bbox=(100, 100, 50, 200), confidence=0.9, team_id="teamA", team_source=source)
                ],
            )
        ]

    candidates = [ShotCandidate(frame_index=30, timestamp=1.0, bbox=(100, 100, 50, 200), confidence=0.8)]
    by_color = detector(people("color")).from_motions(motions_from_candidates(candidates))[0]
    by_position = detector(people("position")).from_motions(motions_from_candidates(candidates))[0]

    assert by_position.event.confidence == pytest.approx(by_color.event.confidence * 0.9, abs=1e-4)


def test_ball_only_shots():
    """Test a rising ball yields one ball-movement shot per upward run."""
    positions = [(500, 600), (500, 580), (500, 560), (500, 540), (500, 545), (500, 560)]

    shots = detector(balls=ball_frames(positions)).from_ball()

    assert len(shots) == 1
    event = shots[0].event
    assert event.source == "ball-movement"
    assert event.frame_index == 0
    assert 0.5 <= event.confidence <= 0.75


def test_ball_only_ignores_small_rises():
    """Test rises at or below 8px per step are not shots."""
    positions = [(500, 600), (500, 595), (500, 590), (500, 585)]

    assert detector(balls=ball_frames(positions)).from_ball() == []


def test_ball_only_shots_at_one_fps():
    """Test a ball sampled once per second still yields a ball-movement shot."""
    positions = [(140, 600), (140, 560), (140, 520), (140, 480)]
    person_frames = [
        FrameDetectionSet(
            frame_index=i,
            timestamp=float(i),
            detections=[PersonDetection(bbox=(100, 300, 50, 150), confidence=0.9, team_id="teamA")],
        )
        for i in range(4)
    ]

    shots = detector(person_frames, balls=ball_frames(positions, fps=1.0)).from_ball()

    assert len(shots) == 1
    event = shots[0].event
    assert event.team_id == "teamA"
    assert event.timestamp == 0.0
    assert event.confidence == pytest.approx(0.7)


def test_ball_window_follows_frame_rate():
    """Test the shot window in frames scales with the video frame rate."""
    candidates = [ShotCandidate(frame_index=60, timestamp=1.0, bbox=(100, 100, 50, 200), confidence=0.8)]
    balls = [
        BallFrame(
            frame_index=110,
            timestamp=110 / 60,
            detections=[BallDetection(bbox=(125, 145, 10, 10), confidence=0.8)],
        )
    ]

    at_default = detector(balls=balls).from_motions(motions_from_candidates(candidates))[0]
    at_60fps = detector(balls=balls, fps=60.0).from_motions(motions_from_candidates(candidates))[0]

    assert at_default.event.source == "pose-analysis"
    assert at_60fps.event.source == "pose+ball-heuristic"
