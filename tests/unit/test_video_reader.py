"""Tests for video frame reading."""

import cv2
import numpy as np
import pytest

from src.video.reader import VideoReader


def write_video(path, n_frames=12, width=160, height=120, fps=10.0):
    """Write a MJPG video whose frame i is uniformly gray at level 20 * i."""
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, (width, height))
    if not writer.isOpened():
        pytest.skip("MJPG video writer unavailable")
    for i in range(n_frames):
        writer.write(np.full((height, width, 3), 20 * i, dtype=np.uint8))
    writer.release()
    return path


def test_missing_video_raises(tmp_path):
    """Test a nonexistent path is rejected."""
    with pytest.raises(ValueError):
        VideoReader(tmp_path / "missing.avi")


def test_metadata(tmp_path):
    """Test metadata reflects the written video."""
    path = write_video(tmp_path / "clip.avi")

    with VideoReader(path) as reader:
        metadata = reader.metadata

    assert (metadata.width, metadata.height) == (160, 120)
    assert metadata.total_frames == 12
    assert metadata.duration == pytest.approx(1.2)
    assert metadata.to_dict()["fps"] == pytest.approx(10.0)


def test_read_frames_by_index(tmp_path):
    """Test requested frames are decoded and out-of-range indices skipped."""
    path = write_video(tmp_path / "clip.avi")

    with VideoReader(path) as reader:
        frames = reader.read_frames([9, 0, 3, 3, 40])

    assert sorted(frames) == [0, 3, 9]
    for frame_idx, frame in frames.items():
        assert frame.shape == (120, 160, 3)
        assert float(frame.mean()) == pytest.approx(20 * frame_idx, abs=6)


def test_close_is_idempotent(tmp_path):
    """Test closing twice is safe."""
    reader = VideoReader(write_video(tmp_path / "clip.avi"))

    reader.close()
    reader.close()

    assert reader.cap is None
