"""Tests for event fusion."""

import pytest

from src.config.schemas import FusionConfig
from src.events.fusion import EventFusionEngine, FusionInputs, deduplicate_events
from src.events.types import EventFactory
from src.vision.detect.types import (
    BallDetection,
    BallFrame,
    FrameDetectionSet,
    PersonDetection,
    ScoreboardRead,
)


def people_frames(count=10):
    """Person frames with two players each, one per second."""
    return [
        FrameDetectionSet(
            frame_index=i * 30,
            timestamp=float(i),
            detections=[
                PersonDetection(bbox=(100, 300, 50, 150), confidence=0.9, team_id="teamA"),
                PersonDetection(bbox=(1500, 300, 50, 150), confidence=0.9, team_id="teamB"),
            ],
        )
        for i in range(count)
    ]


def rising_ball():
    """Ball frames with one clear upward run."""
    positions = [(500, 600), (500, 580), (500, 560), (500, 540), (500, 545), (500, 560)]
    return [
        BallFrame(
            frame_index=i,
            timestamp=i / 30,
            detections=[BallDetection(bbox=(x - 5, y - 5, 10, 10), confidence=0.8)],
        )
        for i, (x, y) in enumerate(positions)
    ]


def test_people_without_ball_or_pose_falls_back():
    """Test a 120s video with only person detections yields the six fallback events."""
    engine = EventFusionEngine()

    events = engine.fuse(FusionInputs(duration=120.0, person_frames=people_frames()))

    assert len(events) == 6
    assert all(e.source == "fallback" for e in events)
    assert [e.team_id for e in events] == ["teamA", "teamB"] * 3
    assert engine.stage_counts["fallback"] == 6
    assert engine.stage_counts["shots"] == 0


def test_empty_inputs_without_duration():
    """Test no detections and no duration yields no events."""
    assert EventFusionEngine().fuse(FusionInputs(duration=0.0)) == []


def test_ball_only_path():
    """Test ball movement alone yields a shot and its miss."""
    engine = EventFusionEngine()

    events = engine.fuse(FusionInputs(duration=30.0, ball_frames=rising_ball()))

    # Same timestamp, ordered by creation
    assert [e.event_type for e in events] == ["shot_attempt", "missed_shot"]
    shot = next(e for e in events if e.event_type == "shot_attempt")
    assert shot.source == "ball-movement"
    assert engine.stage_counts["shots"] == 1
    assert engine.stage_counts["missed_shots"] == 1
    assert not any(e.is_fallback for e in events)


def one_fps_rising_ball():
    """Ball sampled once per second, rising 40px per sample."""
    return [
        BallFrame(
            frame_index=i * 30,
            timestamp=float(i),
            detections=[BallDetection(bbox=(135, 595 - 40 * i, 10, 10), confidence=0.8)],
        )
        for i in range(4)
    ]


def test_ball_only_path_at_one_fps():
    """Test sparse ball sampling still produces ball-movement shots instead of fallback."""
    engine = EventFusionEngine()

    events = engine.fuse(
        FusionInputs(duration=120.0, person_frames=people_frames(), ball_frames=one_fps_rising_ball())
    )

    shots = [e for e in events if e.event_type == "shot_attempt"]
    assert [(e.source, e.team_id, e.timestamp) for e in shots] == [("ball-movement", "teamA", 0.0)]
    assert not any(e.is_fallback for e in events)
    assert "fallback" not in engine.stage_counts


def test_max_ball_gap_skips_sparse_samples():
    """Test a configured gap limit ignores rises between distant samples."""
    engine = EventFusionEngine(FusionConfig(max_ball_gap=0.5))

    events = engine.fuse(
        FusionInputs(duration=120.0, person_frames=people_frames(), ball_frames=one_fps_rising_ball())
    )

    assert engine.stage_counts["shots"] == 0
    assert all(e.is_fallback for e in events)


def test_ocr_scores_are_fused():
    """Test scoreboard reads produce score events without other streams."""
    reads = [
        ScoreboardRead(frame_index=0, timestamp=1.0, text="10 - 8", confidence=0.9),
        ScoreboardRead(frame_index=300, timestamp=10.0, text="13 - 8", confidence=0.9),
    ]

    events = EventFusionEngine().fuse(FusionInputs(duration=30.0, scoreboard_reads=reads))

    assert [(e.event_type, e.team_id, e.shot_type) for e in events] == [("score", "teamA", "3pt")]
    assert events[0].source == "ocr"


def test_min_confidence_filter_can_trigger_fallback():
    """Test events below the confidence floor are dropped before fallback."""
    engine = EventFusionEngine(FusionConfig(min_event_confidence=0.99))

    events = engine.fuse(FusionInputs(duration=40.0, ball_frames=rising_ball()))

    assert [e.source for e in events] == ["fallback", "fallback"]


def test_events_are_time_ordered():
    """Test fused events come back sorted by timestamp."""
    reads = [
        ScoreboardRead(frame_index=0, timestamp=1.0, text="0 - 0", confidence=0.9),
        ScoreboardRead(frame_index=60, timestamp=2.0, text="0 - 2", confidence=0.9),
        ScoreboardRead(frame_index=120, timestamp=4.0, text="3 - 2", confidence=0.9),
    ]

    events = EventFusionEngine().fuse(
        FusionInputs(duration=30.0, ball_frames=rising_ball(), scoreboard_reads=reads)
    )

    timestamps = [e.timestamp for e in events]
    assert timestamps == sorted(timestamps)
    assert [e.team_id for e in events if e.event_type == "score"] == ["teamB", "teamA"]


def test_deduplicate_keeps_most_confident():
    """Test same-team, same-type events within the window collapse to the best one."""
    factory = EventFactory()
    events = [
        factory.create("shot_attempt", "teamA", 1.0, 0.6, "pose-analysis"),
        factory.create("shot_attempt", "teamA", 1.5, 0.8, "ball-movement"),
        factory.create("shot_attempt", "teamB", 1.2, 0.5, "pose-analysis"),
        factory.create("shot_attempt", "teamA", 5.0, 0.7, "pose-analysis"),
    ]

    deduplicated = deduplicate_events(events, time_window=1.0)

    assert [(e.team_id, e.timestamp) for e in deduplicated] == [
        ("teamB", 1.2),
        ("teamA", 1.5),
        ("teamA", 5.0),
    ]


def test_dedup_is_off_by_default():
    """Test duplicates survive unless a dedup window is configured."""
    reads = [
        ScoreboardRead(frame_index=0, timestamp=1.0, text="0 - 0", confidence=0.9),
        ScoreboardRead(frame_index=30, timestamp=2.0, text="2 - 0", confidence=0.9),
        ScoreboardRead(frame_index=45, timestamp=2.5, text="4 - 0", confidence=0.9),
    ]

    default = EventFusionEngine().fuse(FusionInputs(duration=30.0, scoreboard_reads=reads))
    deduplicated = EventFusionEngine(FusionConfig(dedup_window=1.0)).fuse(
        FusionInputs(duration=30.0, scoreboard_reads=reads)
    )

    assert len(default) == 2
    assert len(deduplicated) == 1
    assert deduplicated[0].confidence == pytest.approx(max(e.confidence for e in default))
