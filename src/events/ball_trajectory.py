"""Ball trajectory analysis for event detection."""

import bisect
from dataclasses import dataclass

import numpy as np

from src.vision.detect.types import BallFrame


@dataclass
class BallTrajectoryPoint:
    """Single point in ball trajectory."""

    frame_idx: int
    timestamp: float
    position: tuple[float, float]  # (x, y) center
    confidence: float
    rise: float | None = None  # Upward pixels since previous point (positive = up)


class BallTrajectory:
    """Analyze ball movement from per-frame ball detections."""

    def __init__(self, max_gap: float | None = None):
        """
        Initialize ball trajectory analyzer.

        Args:
            max_gap: Largest time gap (seconds) across which consecutive points are
                compared (None compares every consecutive pair)
        """
        self.max_gap = max_gap
        self.points: list[BallTrajectoryPoint] = []
        self._timestamps: list[float] = []

    @classmethod
    def from_frames(
        cls, ball_frames: list[BallFrame], max_gap: float | None = None
    ) -> "BallTrajectory":
        """Build a trajectory from ball frames."""
        trajectory = cls(max_gap=max_gap)
        trajectory.add_from_frames(ball_frames)
        return trajectory

    def add_from_frames(self, ball_frames: list[BallFrame]) -> None:
        """
        Build trajectory from ball detections.

        Frames without a ball are skipped; the most confident ball is used
        when a frame has several.

        Args:
            ball_frames: Ball detections per frame
        """
        self.points = []

        for ball_frame in sorted(ball_frames, key=lambda f: f.timestamp):
            ball = ball_frame.best()
            if ball is None:
                continue
            self.points.append(
                BallTrajectoryPoint(
                    frame_idx=ball_frame.frame_index,
                    timestamp=ball_frame.timestamp,
                    position=ball.center,
                    confidence=ball.confidence,
                )
            )

        self._timestamps = [p.timestamp for p in self.points]
        self._compute_rises()

    def _compute_rises(self) -> None:
        """Compute upward displacement between consecutive sampled points."""
        for i in range(1, len(self.points)):
            prev_point = self.points[i - 1]
            point = self.points[i]
            if self.max_gap is not None and point.timestamp - prev_point.timestamp > self.max_gap:
                continue
            # Image y grows downward
            point.rise = prev_point.position[1] - point.position[1]

    def __len__(self) -> int:
        return len(self.points)

    def get_upward_segments(self, min_rise: float) -> list[tuple[int, int]]:
        """
        Find runs of consecutive points each rising more than ``min_rise``.

        Args:
            min_rise: Minimum upward displacement in pixels per step

        Returns:
            List of (start_idx, end_idx) tuples into self.points, where start_idx
            is the first point of the rise (the launch point)
        """
        segments = []
        in_segment = False
        segment_start = 0

        for i, point in enumerate(self.points):
            if point.rise is not None and point.rise > min_rise:
                if not in_segment:
                    in_segment = True
                    segment_start = i - 1
            else:
                if in_segment:
                    segments.append((segment_start, i - 1))
                    in_segment = False

        # Handle segment at end
        if in_segment:
            segments.append((segment_start, len(self.points) - 1))

        return segments

    def max_rise(self, start_idx: int, end_idx: int) -> float:
        """Largest single-step rise within a segment."""
        rises = [
            p.rise for p in self.points[start_idx + 1:end_idx + 1] if p.rise is not None
        ]
        return float(max(rises)) if rises else 0.0

    def points_between(self, start_time: float, end_time: float) -> list[BallTrajectoryPoint]:
        """
        Points with ``start_time <= timestamp <= end_time``.

        Args:
            start_time: Window start in seconds
            end_time: Window end in seconds

        Returns:
            Points in time order
        """
        lo = bisect.bisect_left(self._timestamps, start_time)
        hi = bisect.bisect_right(self._timestamps, end_time)
        return self.points[lo:hi]

    def points_near_frame(self, frame_idx: int, window_frames: int) -> list[BallTrajectoryPoint]:
        """Points within ``window_frames`` frame indices of ``frame_idx``."""
        return [p for p in self.points if abs(p.frame_idx - frame_idx) <= window_frames]

    @staticmethod
    def distance(point: BallTrajectoryPoint, position: tuple[float, float]) -> float:
        """Distance from a trajectory point to a pixel position."""
        return float(np.hypot(point.position[0] - position[0], point.position[1] - position[1]))
