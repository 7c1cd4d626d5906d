"""Detection records consumed by the fusion core.

All bounding boxes are ``(x, y, w, h)`` in pixels with ``(x, y)`` the top-left
corner. Frames are OpenCV images (BGR, HxWx3 uint8).
"""

from dataclasses import dataclass, field
from typing import Literal

import numpy as np

BBox = tuple[float, float, float, float]

# COCO keypoint order used by MoveNet
NOSE = 0
LEFT_SHOULDER, RIGHT_SHOULDER = 5, 6
LEFT_ELBOW, RIGHT_ELBOW = 7, 8
LEFT_WRIST, RIGHT_WRIST = 9, 10


class MissingFrameError(LookupError):
    """A detection references a frame index that was not supplied."""

    def __init__(self, frame_index: int):
        super().__init__(f"No frame supplied for frame index {frame_index}")
        self.frame_index = frame_index


def bbox_center(bbox: BBox) -> tuple[float, float]:
    """Get center point of an (x, y, w, h) box."""
    x, y, w, h = bbox
    return (x + w / 2, y + h / 2)


def center_distance(bbox1: BBox, bbox2: BBox) -> float:
    """Euclidean distance between two box centers."""
    cx1, cy1 = bbox_center(bbox1)
    cx2, cy2 = bbox_center(bbox2)
    return float(np.hypot(cx1 - cx2, cy1 - cy2))


def is_valid_frame(frame: np.ndarray | None) -> bool:
    """Check that a frame is a non-empty HxWx3 image."""
    return (
        frame is not None
        and isinstance(frame, np.ndarray)
        and frame.ndim == 3
        and frame.shape[2] >= 3
        and frame.shape[0] > 0
        and frame.shape[1] > 0
    )


@dataclass
class PersonDetection:
    """Single person detection, enriched in place with team and player ids."""

    bbox: BBox
    confidence: float
    team_id: str | None = None
    player_id: str | None = None
    team_source: Literal["color", "position"] | None = None
    player_confidence: float | None = None

    @property
    def center(self) -> tuple[float, float]:
        """Get center point of bounding box."""
        return bbox_center(self.bbox)

    @property
    def width(self) -> float:
        """Get width of bounding box."""
        return self.bbox[2]

    @property
    def height(self) -> float:
        """Get height of bounding box."""
        return self.bbox[3]

    @property
    def area(self) -> float:
        """Get area of bounding box."""
        return self.width * self.height

    def to_dict(self) -> dict:
        """Convert detection to dictionary."""
        return {
            "bbox": list(self.bbox),
            "center": list(self.center),
            "confidence": self.confidence,
            "team_id": self.team_id,
            "player_id": self.player_id,
            "team_source": self.team_source,
            "player_confidence": self.player_confidence,
        }


@dataclass
class FrameDetectionSet:
    """Person detections for one sampled frame."""

    frame_index: int
    timestamp: float
    detections: list[PersonDetection] = field(default_factory=list)
    width: int | None = None  # Frame size, when known
    height: int | None = None


@dataclass
class BallDetection:
    """Single ball detection."""

    bbox: BBox
    confidence: float

    @property
    def center(self) -> tuple[float, float]:
        """Get center point of bounding box."""
        return bbox_center(self.bbox)


@dataclass
class BallFrame:
    """Ball detections for one sampled frame."""

    frame_index: int
    timestamp: float
    detections: list[BallDetection] = field(default_factory=list)

    def best(self) -> BallDetection | None:
        """Highest-confidence ball in this frame."""
        if not self.detections:
            return None
        return max(self.detections, key=lambda d: d.confidence)


@dataclass
class Keypoint:
    """Single pose keypoint."""

    x: float
    y: float
    confidence: float


@dataclass
class Pose:
    """Keypoints of one person."""

    keypoints: list[Keypoint]
    bbox: BBox
    team_id: str | None = None
    player_id: str | None = None

    def keypoint(self, index: int, min_confidence: float = 0.0) -> Keypoint | None:
        """Get a keypoint if present and confident enough."""
        if index >= len(self.keypoints):
            return None
        kp = self.keypoints[index]
        if kp.confidence < min_confidence:
            return None
        return kp


@dataclass
class PoseFrame:
    """Poses for one sampled frame."""

    frame_index: int
    timestamp: float
    poses: list[Pose] = field(default_factory=list)
    width: int | None = None
    height: int | None = None


@dataclass
class ShotCandidate:
    """Pose-derived shot attempt supplied by an upstream estimator."""

    frame_index: int
    timestamp: float
    bbox: BBox
    confidence: float
    team_id: str | None = None
    player_id: str | None = None


@dataclass
class ScoreboardRead:
    """Raw OCR reading of the scoreboard crop."""

    frame_index: int
    timestamp: float
    text: str
    confidence: float  # 0-1


@dataclass
class HoopRegion:
    """Hoop/backboard location in pixels."""

    x: float
    y: float
    width: float
    height: float
    confidence: float

    @property
    def mid_y(self) -> float:
        """Vertical middle of the region, used as the rim line."""
        return self.y + self.height / 2

    def contains_x(self, x: float) -> bool:
        """Check whether x falls within the region horizontally."""
        return self.x <= x <= self.x + self.width


@dataclass
class HoopDetection:
    """Hoop detector output for one frame."""

    frame_index: int
    timestamp: float
    region: HoopRegion | None = None
