"""Tests for secondary action detection."""

import pytest

from src.config.schemas import FusionConfig
from src.events.actions import ActionDetector
from src.events.attribution import PersonIndex
from src.events.ball_trajectory import BallTrajectory
from src.events.shots import ShotAttempt
from src.events.types import EventFactory
from src.vision.detect.types import (
    BallDetection,
    BallFrame,
    FrameDetectionSet,
    Keypoint,
    PersonDetection,
    Pose,
    PoseFrame,
)


def player(cx, cy, team_id, player_id=None):
    """Person detection centered at (cx, cy)."""
    return PersonDetection(bbox=(cx - 25, cy - 50, 50, 100), confidence=0.9, team_id=team_id, player_id=player_id)


def people_at(timestamp, *detections):
    """Person frame at a timestamp."""
    return FrameDetectionSet(frame_index=int(round(timestamp * 30)), timestamp=timestamp, detections=list(detections))


def ball_at(timestamp, cx, cy):
    """Ball frame with one ball centered at (cx, cy)."""
    return BallFrame(
        frame_index=int(round(timestamp * 30)),
        timestamp=timestamp,
        detections=[BallDetection(bbox=(cx - 5, cy - 5, 10, 10), confidence=0.8)],
    )


def pose(bbox, team_id=None, player_id=None, wrist_dy=100.0):
    """Pose with nose, shoulders and wrists placed relative to the bbox top."""
    x, y = bbox[0], bbox[1]
    keypoints = [Keypoint(0.0, 0.0, 0.0) for _ in range(17)]
    keypoints[0] = Keypoint(x + 25, y + 20, 0.9)
    keypoints[5] = Keypoint(x + 10, y + 40, 0.9)
    keypoints[6] = Keypoint(x + 40, y + 40, 0.9)
    keypoints[9] = Keypoint(x + 10, y + wrist_dy, 0.9)
    keypoints[10] = Keypoint(x + 40, y + wrist_dy, 0.9)
    return Pose(keypoints=keypoints, bbox=bbox, team_id=team_id, player_id=player_id)


def detector(person_frames=None, balls=None, pose_frames=None, factory=None):
    """Action detector over the given streams."""
    return ActionDetector(
        FusionConfig(),
        factory or EventFactory(),
        PersonIndex(person_frames or [], 1920, 1080),
        BallTrajectory.from_frames(balls or []),
        pose_frames,
    )


def shot(factory, timestamp, team_id="teamA", bbox=None, confidence=0.8, player_id=None):
    """Shot attempt at a timestamp."""
    event = factory.create("shot_attempt", team_id, timestamp, confidence, "pose-analysis", player_id=player_id)
    return ShotAttempt(event=event, bbox=bbox)


def test_missed_shot_without_same_team_score():
    """Test shots not followed by their team's score become missed shots."""
    factory = EventFactory()
    made = shot(factory, 1.0, "teamA")
    missed = shot(factory, 5.0, "teamB")
    score = factory.create("score", "teamA", 2.0, 0.9, "ocr", score_delta=2, shot_type="2pt")

    events = detector(factory=factory).detect_missed_shots([made, missed], [score])

    assert len(events) == 1
    assert events[0].event_type == "missed_shot"
    assert events[0].team_id == "teamB"
    assert events[0].source == "inference"
    assert events[0].confidence == pytest.approx(0.8 * 0.85)


def test_unknown_team_shot_matches_any_score():
    """Test a shot with unknown team counts as made by any nearby score."""
    factory = EventFactory()
    attempt = shot(factory, 1.0, None)
    score = factory.create("score", "teamB", 1.5, 0.9, "ocr", score_delta=2, shot_type="2pt")

    assert detector(factory=factory).detect_missed_shots([attempt], [score]) == []


@pytest.mark.parametrize(
    "rebounder_team, expected_type",
    [("teamB", "defensive_rebound"), ("teamA", "offensive_rebound")],
)
def test_rebound_goes_to_nearest_player(rebounder_team, expected_type):
    """Test the first player near the ball after a miss gets the rebound."""
    factory = EventFactory()
    missed = factory.create("missed_shot", "teamA", 1.0, 0.6, "inference")
    people = [people_at(1.5, player(500, 520, rebounder_team, "12"), player(1500, 500, "teamA"))]
    balls = [ball_at(1.1, 500, 520), ball_at(1.5, 500, 500)]

    events = detector(people, balls, factory=factory).detect_rebounds([missed])

    assert len(events) == 1
    event = events[0]
    assert event.event_type == expected_type
    assert event.team_id == rebounder_team
    assert event.player_id == "12"
    assert event.timestamp == 1.5
    assert event.source == "ball+proximity-heuristic"
    assert event.confidence == pytest.approx(0.5 + 0.1 * 0.8)


def test_no_rebound_without_nearby_player():
    """Test a ball far from everyone yields no rebound."""
    factory = EventFactory()
    missed = factory.create("missed_shot", "teamA", 1.0, 0.6, "inference")
    people = [people_at(1.5, player(1500, 500, "teamB"))]

    assert detector(people, [ball_at(1.5, 500, 500)], factory=factory).detect_rebounds([missed]) == []


def possession_streams(holders):
    """People and ball frames from (timestamp, holder) pairs; the ball sits on each holder."""
    a5 = (100, 100, "teamA", "5")
    a8 = (400, 100, "teamA", "8")
    b9 = (800, 100, "teamB", "9")
    spots = {"a5": a5, "a8": a8, "b9": b9}
    people, balls = [], []
    for timestamp, holder in holders:
        people.append(people_at(timestamp, *(player(*spot) for spot in spots.values())))
        cx, cy = spots[holder][:2]
        balls.append(ball_at(timestamp, cx, cy))
    return people, balls


def test_quick_possession_change_is_steal():
    """Test the ball changing teams within a second is a steal."""
    people, balls = possession_streams(
        [(0.0, "a5"), (0.1, "a5"), (0.2, "a5"), (0.5, "b9"), (0.6, "b9")]
    )
    actions = detector(people, balls)

    events = actions.detect_possession_changes(actions.track_possession())

    assert [(e.event_type, e.team_id, e.player_id) for e in events] == [("steal", "teamB", "9")]
    assert events[0].timestamp == 0.5
    assert events[0].confidence == pytest.approx(0.6)
    assert events[0].source == "possession-heuristic"


def test_slow_possession_change_is_turnover():
    """Test a longer gap between possessions is a turnover by the losing team."""
    people, balls = possession_streams(
        [(0.0, "a5"), (0.1, "a5"), (2.0, "b9"), (2.1, "b9")]
    )
    actions = detector(people, balls)

    events = actions.detect_possession_changes(actions.track_possession())

    assert [(e.event_type, e.team_id, e.player_id) for e in events] == [("turnover", "teamA", "5")]
    assert events[0].confidence == pytest.approx(0.5)


def test_single_sample_flicker_is_ignored():
    """Test one stray sample near the other team does not change possession."""
    people, balls = possession_streams(
        [(0.0, "a5"), (0.1, "a5"), (0.2, "b9"), (0.3, "a5"), (0.4, "a5")]
    )
    actions = detector(people, balls)

    spells = actions.track_possession()

    assert [s.player_id for s in spells] == ["5", "5"]
    assert actions.detect_possession_changes(spells) == []


def test_same_team_handoff_is_pass():
    """Test the ball moving between teammates is a pass from the first."""
    people, balls = possession_streams(
        [(0.0, "a5"), (0.1, "a5"), (0.4, "a8"), (0.5, "a8")]
    )
    actions = detector(people, balls)

    events = actions.detect_possession_changes(actions.track_possession())

    assert len(events) == 1
    event = events[0]
    assert event.event_type == "pass"
    assert event.player_id == "5"
    assert event.timestamp == 0.1
    assert event.source == "action-recognition"


def test_assist_from_pass_before_score():
    """Test a same-team pass shortly before a score is an assist."""
    factory = EventFactory()
    recent_pass = factory.create("pass", "teamA", 1.0, 0.6, "action-recognition", player_id="5")
    old_pass = factory.create("pass", "teamA", 0.0, 0.6, "action-recognition", player_id="8")
    score = factory.create("score", "teamA", 2.5, 0.9, "ocr", score_delta=2, shot_type="2pt")
    other_score = factory.create("score", "teamB", 2.6, 0.9, "ocr", score_delta=2, shot_type="2pt")

    events = detector(factory=factory).detect_assists([old_pass, recent_pass], [score, other_score])

    assert len(events) == 1
    assert events[0].player_id == "5"
    assert events[0].timestamp == 1.0
    assert events[0].confidence == pytest.approx(0.7 * 0.6 * 0.9)


def test_three_point_estimate_by_depth():
    """Test shooters low in the frame are flagged as long-range attempts."""
    factory = EventFactory()
    deep = shot(factory, 1.0, bbox=(100, 600, 50, 200))
    mid = shot(factory, 2.0, bbox=(100, 480, 50, 200))
    close = shot(factory, 3.0, bbox=(100, 100, 50, 200))
    unknown = shot(factory, 4.0)

    events = detector(factory=factory).estimate_three_pointers([deep, mid, close, unknown])

    assert [(e.event_type, e.timestamp) for e in events] == [("3pt", 1.0), ("long_distance_attempt", 2.0)]
    assert [e.shot_type for e in events] == ["3pt", None]
    assert all(e.source == "court-geometry-heuristic" for e in events)
    assert [e.confidence for e in events] == [0.7, 0.4]


def test_block_by_nearby_defender():
    """Test an opponent with a raised arm next to the shooter is a block."""
    factory = EventFactory()
    attempt = shot(factory, 2.0, bbox=(500, 300, 50, 200))
    pose_frames = [
        PoseFrame(
            frame_index=63,
            timestamp=2.1,
            poses=[
                pose((500, 300, 50, 200), "teamA", "23", wrist_dy=-10),
                pose((1400, 300, 50, 200), "teamB", "4", wrist_dy=-10),
                pose((560, 300, 50, 200), "teamB", "11", wrist_dy=-10),
            ],
        )
    ]

    events = detector(pose_frames=pose_frames, factory=factory).detect_blocks([attempt])

    assert len(events) == 1
    assert events[0].event_type == "block"
    assert events[0].team_id == "teamB"
    assert events[0].player_id == "11"
    assert events[0].confidence == pytest.approx(0.65)


def test_no_block_with_lowered_arms():
    """Test a nearby defender without a raised arm is not a block."""
    factory = EventFactory()
    attempt = shot(factory, 2.0, bbox=(500, 300, 50, 200))
    pose_frames = [PoseFrame(frame_index=60, timestamp=2.0, poses=[pose((560, 300, 50, 200), "teamB")])]

    assert detector(pose_frames=pose_frames, factory=factory).detect_blocks([attempt]) == []


def test_dunk_near_rim():
    """Test hands over the head high in the frame is a dunk."""
    factory = EventFactory()
    bbox = (500, 50, 50, 200)
    attempt = shot(factory, 3.0, bbox=bbox)
    pose_frames = [PoseFrame(frame_index=91, timestamp=3.05, poses=[pose(bbox, "teamA", wrist_dy=-10)])]

    events = detector(pose_frames=pose_frames, factory=factory).detect_dunks_and_layups([attempt])

    assert [(e.event_type, e.confidence) for e in events] == [("dunk", 0.75)]


def test_layup_from_rising_wrist():
    """Test a rising wrist close to the hoop is a layup."""
    factory = EventFactory()
    bbox = (500, 200, 50, 200)
    attempt = shot(factory, 3.0, bbox=bbox)
    pose_frames = [
        PoseFrame(frame_index=84, timestamp=2.8, poses=[pose(bbox, "teamA", wrist_dy=100)]),
        PoseFrame(frame_index=90, timestamp=3.0, poses=[pose(bbox, "teamA", wrist_dy=60)]),
    ]

    events = detector(pose_frames=pose_frames, factory=factory).detect_dunks_and_layups([attempt])

    assert [(e.event_type, e.confidence) for e in events] == [("layup", 0.7)]


def test_no_finish_far_from_hoop():
    """Test shots low in the frame are neither dunks nor layups."""
    factory = EventFactory()
    bbox = (500, 600, 50, 200)
    attempt = shot(factory, 3.0, bbox=bbox)
    pose_frames = [
        PoseFrame(frame_index=84, timestamp=2.8, poses=[pose(bbox, wrist_dy=100)]),
        PoseFrame(frame_index=90, timestamp=3.0, poses=[pose(bbox, wrist_dy=-10)]),
    ]

    assert detector(pose_frames=pose_frames, factory=factory).detect_dunks_and_layups([attempt]) == []
