"""Tests for fallback event synthesis."""

import pytest

from src.config.schemas import FusionConfig
from src.events.fallback import fallback_event_count, synthesize_fallback_events
from src.events.types import EventFactory


@pytest.mark.parametrize(
    "duration, expected",
    [(0.0, 0), (5.0, 1), (39.9, 1), (60.0, 3), (120.0, 6), (3600.0, 8)],
)
def test_fallback_event_count(duration, expected):
    """Test one event per 20s of video, between 1 and 8."""
    assert fallback_event_count(duration, FusionConfig()) == expected


def test_two_minute_video_layout():
    """Test a 120s video yields the standard six-event layout."""
    events = synthesize_fallback_events(120.0, FusionConfig(), EventFactory())

    assert [(e.event_type, e.team_id) for e in events] == [
        ("score", "teamA"),
        ("shot_attempt", "teamB"),
        ("defensive_rebound", "teamA"),
        ("turnover", "teamB"),
        ("shot_attempt", "teamA"),
        ("score", "teamB"),
    ]
    assert [e.timestamp for e in events] == pytest.approx([120.0 / 7 * (i + 1) for i in range(6)])
    assert [e.shot_type for e in events if e.event_type == "score"] == ["2pt", "3pt"]
    assert [e.score_delta for e in events if e.event_type == "score"] == [2, 3]


def test_fallback_events_are_tagged_and_inside_video():
    """Test every fallback event is tagged, uniform in confidence and inside the video."""
    duration = 75.0
    events = synthesize_fallback_events(duration, FusionConfig(), EventFactory())

    assert events
    assert all(e.is_fallback and e.source == "fallback" for e in events)
    assert all(e.confidence == 0.6 for e in events)
    assert all(0.0 < e.timestamp < duration for e in events)
    assert [e.timestamp for e in events] == sorted(e.timestamp for e in events)


def test_short_video_has_no_extras():
    """Test sets under four events keep the plain score/attempt cycle."""
    events = synthesize_fallback_events(60.0, FusionConfig(), EventFactory())

    assert [e.event_type for e in events] == ["score", "shot_attempt", "shot_attempt"]
    assert [e.team_id for e in events] == ["teamA", "teamB", "teamA"]


def test_long_video_is_capped():
    """Test long videos get at most eight events, still alternating teams."""
    events = synthesize_fallback_events(3600.0, FusionConfig(), EventFactory())

    assert len(events) == 8
    assert [e.team_id for e in events] == ["teamA", "teamB"] * 4
    assert sum(e.event_type == "turnover" for e in events) == 1
    assert sum(e.event_type == "defensive_rebound" for e in events) == 1


def test_no_duration_gives_no_events():
    """Test a video without duration yields an empty list."""
    assert synthesize_fallback_events(0.0, FusionConfig(), EventFactory()) == []


def test_fallback_settings_are_configurable():
    """Test spacing and confidence come from configuration."""
    config = FusionConfig(fallback_spacing=10.0, fallback_confidence=0.4, max_fallback_events=5)

    events = synthesize_fallback_events(45.0, config, EventFactory())

    assert len(events) == 4
    assert all(e.confidence == 0.4 for e in events)
