"""Tests for player identity tracking."""

import numpy as np
import pytest

from src.config.schemas import IdentityConfig
from src.vision.detect.types import FrameDetectionSet, MissingFrameError, PersonDetection
from src.vision.identity.ocr import DigitRecognizer, JerseyNumberReader, OCRResult
from src.vision.identity.tracker import (
    PlayerIdentityTracker,
    PlayerTrack,
    extract_visual_features,
    merge_identity_detections,
)


class ScriptedRecognizer(DigitRecognizer):
    """Recognizer returning scripted (text, confidence) results in order."""

    def __init__(self, results):
        super().__init__(name="scripted")
        self.results = list(results)

    def recognize(self, image: np.ndarray) -> OCRResult:
        text, confidence = self.results.pop(0) if self.results else ("", 0.0)
        return OCRResult(text=text, confidence=confidence, engine=self.name)


def gray_frame(value=100, height=300, width=400):
    """Create a uniform BGR frame."""
    return np.full((height, width, 3), value, dtype=np.uint8)


def person(x=50, team_id=None, player_id=None):
    """Person detection at a horizontal offset."""
    return PersonDetection(bbox=(x, 40, 60, 160), confidence=0.9, team_id=team_id, player_id=player_id)


def test_ocr_identity_skips_reidentification(monkeypatch):
    """Test a confident jersey read is used without visual matching."""
    reader = JerseyNumberReader(ScriptedRecognizer([("23", 0.7)]))
    tracker = PlayerIdentityTracker(reader)

    def fail(*args, **kwargs):
        raise AssertionError("visual re-identification should not run")

    monkeypatch.setattr(tracker, "find_matching_track", fail)

    resolution = tracker.resolve(gray_frame(), person(), timestamp=1.0)

    assert resolution.player_id == "23"
    assert resolution.confidence == 0.7
    assert resolution.method == "ocr"
    assert tracker.tracks["23"].last_seen == 1.0


def test_visual_reidentification_after_occlusion():
    """Test an unreadable jersey is matched to the previous track visually."""
    reader = JerseyNumberReader(ScriptedRecognizer([("23", 0.9), ("", 0.0)]))
    tracker = PlayerIdentityTracker(reader)
    frame = gray_frame()

    tracker.resolve(frame, person(team_id="teamA"), timestamp=0.0)
    resolution = tracker.resolve(frame, person(team_id="teamA"), timestamp=1.0)

    assert resolution.player_id == "23"
    assert resolution.confidence == 0.5
    assert resolution.method == "visual"


def test_unknown_ids_are_sequential_and_unique_per_frame():
    """Test unidentifiable detections get distinct unknown ids."""
    tracker = PlayerIdentityTracker()
    frame_set = FrameDetectionSet(frame_index=0, timestamp=0.0, detections=[person(50), person(250)])

    result = tracker.process_frame(gray_frame(), frame_set)

    assert [d.player_id for d in result.detections] == ["unknown-1", "unknown-2"]
    assert all(d.player_confidence == 0.3 for d in result.detections)
    # Input detections are not modified
    assert all(d.player_id is None for d in frame_set.detections)


def test_reidentification_window_and_team_gate():
    """Test stale or other-team tracks are not matched."""
    tracker = PlayerIdentityTracker()
    frame = gray_frame()

    first = tracker.resolve(frame, person(team_id="teamA"), timestamp=0.0)
    later = tracker.resolve(frame, person(team_id="teamA"), timestamp=6.0)
    other_team = tracker.resolve(frame, person(team_id="teamB"), timestamp=6.5)

    assert first.player_id == "unknown-1"
    assert later.player_id == "unknown-2"
    assert other_team.player_id == "unknown-3"


def test_similarity_weights():
    """Test similarity combines color and height with 0.7/0.3 weights."""
    tracker = PlayerIdentityTracker(config=IdentityConfig())
    frame = gray_frame()
    track = PlayerTrack(player_id="7", visual_features=extract_visual_features(frame, (0, 0, 60, 100)))
    features = extract_visual_features(frame, (0, 0, 60, 150))

    # Same color, height differs by 50 of a 100px normalizer
    assert tracker.similarity(features, track) == pytest.approx(0.7 + 0.3 * 0.5)


def test_last_seen_is_monotonic():
    """Test out-of-order sightings never move last_seen backwards."""
    track = PlayerTrack(player_id="5")
    track.record(5.0, (0, 0, 10, 10), 0.9)
    track.record(3.0, (0, 0, 10, 10), 0.9)

    assert track.last_seen == 5.0
    assert len(track.appearances) == 2


def test_cleanup_stale_tracks():
    """Test tracks unseen for more than max_age are removed."""
    tracker = PlayerIdentityTracker(config=IdentityConfig(max_age=10.0))
    tracker.tracks["1"] = PlayerTrack(player_id="1", last_seen=0.0)
    tracker.tracks["2"] = PlayerTrack(player_id="2", last_seen=5.0)

    assert tracker.cleanup_stale_tracks(10.0) == []
    assert tracker.cleanup_stale_tracks(10.5) == ["1"]
    assert [t.player_id for t in tracker.tracked_players()] == ["2"]


def test_process_runs_periodic_cleanup():
    """Test processing prunes stale tracks every cleanup_interval frames."""
    tracker = PlayerIdentityTracker(config=IdentityConfig(cleanup_interval=2, max_age=1.0))
    frame_sets = [
        FrameDetectionSet(frame_index=0, timestamp=0.0, detections=[person()]),
        FrameDetectionSet(frame_index=60, timestamp=5.0, detections=[]),
    ]

    results = tracker.process(frame_sets, {0: gray_frame(), 60: gray_frame()})

    assert results[0].detections[0].player_id == "unknown-1"
    assert tracker.tracked_players() == []


def test_process_missing_frame_raises():
    """Test a frame set without its frame is a contract violation."""
    tracker = PlayerIdentityTracker()
    frame_sets = [FrameDetectionSet(frame_index=3, timestamp=0.1, detections=[person()])]

    with pytest.raises(MissingFrameError):
        tracker.process(frame_sets, {})


def test_malformed_frame_is_skipped():
    """Test a malformed frame leaves detections unidentified."""
    tracker = PlayerIdentityTracker()
    frame_set = FrameDetectionSet(frame_index=0, timestamp=0.0, detections=[person()])

    result = tracker.process_frame(np.zeros((0, 0, 3), dtype=np.uint8), frame_set)

    assert result.detections[0].player_id is None
    assert tracker.tracks == {}


def test_merge_identity_detections_is_idempotent():
    """Test merging copies nearest player ids and can be repeated safely."""
    person_frames = [
        FrameDetectionSet(
            frame_index=0,
            timestamp=0.0,
            detections=[person(50), person(250, player_id="11")],
        )
    ]
    identity_frames = [
        FrameDetectionSet(
            frame_index=0,
            timestamp=0.0,
            detections=[
                PersonDetection(bbox=(55, 45, 60, 160), confidence=0.9, player_id="23", player_confidence=0.7)
            ],
        )
    ]

    once = merge_identity_detections(person_frames, identity_frames)
    twice = merge_identity_detections(once, identity_frames)

    assert [d.player_id for d in once[0].detections] == ["23", "11"]
    assert once == twice
    assert person_frames[0].detections[0].player_id is None
