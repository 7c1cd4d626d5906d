"""Detection records produced by upstream detectors and consumed by the core."""

from src.vision.detect.types import (
    BallDetection,
    BallFrame,
    BBox,
    FrameDetectionSet,
    HoopDetection,
    HoopRegion,
    Keypoint,
    MissingFrameError,
    PersonDetection,
    Pose,
    PoseFrame,
    ScoreboardRead,
    ShotCandidate,
    bbox_center,
    center_distance,
    is_valid_frame,
)

__all__ = [
    "BallDetection",
    "BallFrame",
    "BBox",
    "FrameDetectionSet",
    "HoopDetection",
    "HoopRegion",
    "Keypoint",
    "MissingFrameError",
    "PersonDetection",
    "Pose",
    "PoseFrame",
    "ScoreboardRead",
    "ShotCandidate",
    "bbox_center",
    "center_distance",
    "is_valid_frame",
]
