"""Team and player attribution from person detections."""

import bisect

import numpy as np

from src.vision.detect.types import FrameDetectionSet, PersonDetection

# Events credited through a court-side team guess are trusted less
POSITIONAL_TEAM_FACTOR = 0.9


class PersonIndex:
    """Time-indexed lookup over person detection frames."""

    def __init__(
        self,
        frame_sets: list[FrameDetectionSet],
        frame_width: float | None = None,
        frame_height: float | None = None,
    ):
        """
        Initialize person index.

        Args:
            frame_sets: Person detections per frame
            frame_width: Video frame width, if known
            frame_height: Video frame height, if known
        """
        self.frame_sets = sorted(frame_sets, key=lambda f: f.timestamp)
        self._timestamps = [f.timestamp for f in self.frame_sets]
        self.frame_width = frame_width or self._known_size("width") or 1920.0
        self.frame_height = frame_height or self._known_size("height") or 1080.0

    def _known_size(self, attr: str) -> float | None:
        for frame_set in self.frame_sets:
            value = getattr(frame_set, attr)
            if value:
                return float(value)
        return None

    def __len__(self) -> int:
        return len(self.frame_sets)

    @property
    def has_people(self) -> bool:
        """Whether any frame contains a person."""
        return any(f.detections for f in self.frame_sets)

    def nearest_frame(self, timestamp: float, max_dt: float = 0.5) -> FrameDetectionSet | None:
        """
        Frame closest in time to ``timestamp``.

        Args:
            timestamp: Time in seconds
            max_dt: Maximum allowed time difference

        Returns:
            Closest frame set, or None if none is within ``max_dt``
        """
        if not self.frame_sets:
            return None

        i = bisect.bisect_left(self._timestamps, timestamp)
        candidates = [j for j in (i - 1, i) if 0 <= j < len(self.frame_sets)]
        best = min(candidates, key=lambda j: abs(self._timestamps[j] - timestamp))

        if abs(self._timestamps[best] - timestamp) > max_dt:
            return None
        return self.frame_sets[best]

    def frames_between(self, start_time: float, end_time: float) -> list[FrameDetectionSet]:
        """Frames with ``start_time <= timestamp <= end_time``."""
        lo = bisect.bisect_left(self._timestamps, start_time)
        hi = bisect.bisect_right(self._timestamps, end_time)
        return self.frame_sets[lo:hi]

    def nearest_person(
        self,
        position: tuple[float, float],
        timestamp: float,
        max_dt: float = 0.5,
        max_distance: float | None = None,
        team_id: str | None = None,
    ) -> tuple[PersonDetection, float] | None:
        """
        Person whose bbox center is nearest a point at a given time.

        Args:
            position: (x, y) in pixels
            timestamp: Time in seconds
            max_dt: Maximum time difference to the frame used
            max_distance: Maximum pixel distance (None = unbounded)
            team_id: Restrict to this team

        Returns:
            (detection, distance), or None
        """
        frame_set = self.nearest_frame(timestamp, max_dt)
        if frame_set is None:
            return None

        best = None
        best_distance = float("inf")
        for detection in frame_set.detections:
            if team_id is not None and detection.team_id != team_id:
                continue
            cx, cy = detection.center
            distance = float(np.hypot(cx - position[0], cy - position[1]))
            if distance < best_distance:
                best = detection
                best_distance = distance

        if best is None or (max_distance is not None and best_distance >= max_distance):
            return None
        return best, best_distance

    def team_majority(
        self,
        timestamp: float,
        window: float,
        region_top_fraction: float = 0.4,
        min_share: float = 0.6,
    ) -> str | None:
        """
        Team with a clear majority of players near the hoop end of the frame.

        Args:
            timestamp: Time in seconds
            window: Half-width of the time window in seconds
            region_top_fraction: Only players whose center is in this top share of the frame count
            min_share: Required share of votes

        Returns:
            Winning team id, or None without a clear majority
        """
        votes: dict[str, int] = {}
        for frame_set in self.frames_between(timestamp - window, timestamp + window):
            height = frame_set.height or self.frame_height
            for detection in frame_set.detections:
                if detection.team_id is None:
                    continue
                if detection.center[1] <= height * region_top_fraction:
                    votes[detection.team_id] = votes.get(detection.team_id, 0) + 1

        total = sum(votes.values())
        if total == 0:
            return None
        team_id, count = max(votes.items(), key=lambda item: item[1])
        return team_id if count / total >= min_share else None


def attribution_factor(detection: PersonDetection | None) -> float:
    """Confidence multiplier for an event credited via ``detection``."""
    if detection is not None and detection.team_source == "position":
        return POSITIONAL_TEAM_FACTOR
    return 1.0
