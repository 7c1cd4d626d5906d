"""Team clustering and assignment based on jersey colors."""

import logging
import math
import warnings
from dataclasses import dataclass, field

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

from src.vision.detect.types import FrameDetectionSet, MissingFrameError, PersonDetection
from src.vision.team.colors import (
    ColorSample,
    color_distance,
    color_name,
    mean_color,
    rgb_to_hex,
    sample_torso_colors,
)

logger = logging.getLogger(__name__)

TEAM_IDS = ("teamA", "teamB")
DEFAULT_TEAM_COLORS = {
    "teamA": (0.0, 51.0, 204.0),  # Blue
    "teamB": (204.0, 0.0, 0.0),  # Red
}


@dataclass
class TeamCluster:
    """One team's color cluster."""

    centroid: tuple[float, float, float]  # (r, g, b)
    team_id: str
    samples: list[ColorSample] = field(default_factory=list)

    @property
    def hex_color(self) -> str:
        """Centroid as ``#rrggbb``."""
        return rgb_to_hex(self.centroid)

    @property
    def color_name(self) -> str:
        """Human-readable centroid color."""
        return color_name(self.centroid)

    def to_dict(self) -> dict:
        """Convert cluster summary to dictionary."""
        return {
            "team_id": self.team_id,
            "name": f"{self.color_name.title()} Team",
            "color": [float(c) for c in self.centroid],
            "hex_color": self.hex_color,
            "sample_count": len(self.samples),
        }


def default_team_clusters() -> list[TeamCluster]:
    """Hardcoded blue/red teams used when clustering is unavailable."""
    return [
        TeamCluster(centroid=DEFAULT_TEAM_COLORS[team_id], team_id=team_id)
        for team_id in TEAM_IDS
    ]


def _push(color: np.ndarray, toward_blue: bool, step: float) -> np.ndarray:
    """Shift a color along the red/blue axis, clamped to [0, 255]."""
    shifted = color.copy()
    if toward_blue:
        shifted[0] -= step
        shifted[2] += step
    else:
        shifted[0] += step
        shifted[2] -= step
    return np.clip(shifted, 0.0, 255.0)


def resolve_centroid_collision(
    centroid_a,
    centroid_b,
    min_distance: float = 50.0,
    step: float = 50.0,
) -> tuple[tuple[float, float, float], tuple[float, float, float]]:
    """
    Push two team centroids apart until they are visually distinguishable.

    The first centroid moves toward its dominant channel (blue if its blue
    exceeds its red, red otherwise) and the second the opposite way. Both
    saturate at opposite corners of the red/blue plane, so the loop ends.

    Args:
        centroid_a: First centroid (r, g, b)
        centroid_b: Second centroid (r, g, b)
        min_distance: Required Euclidean RGB distance
        step: Shift per iteration on the red and blue channels

    Returns:
        Adjusted (centroid_a, centroid_b)
    """
    a = np.asarray(centroid_a, dtype=np.float64)
    b = np.asarray(centroid_b, dtype=np.float64)

    if color_distance(a, b) >= min_distance:
        return tuple(float(c) for c in a), tuple(float(c) for c in b)

    a_toward_blue = bool(a[2] > a[0])
    max_steps = math.ceil(255.0 / step) + 1

    for _ in range(max_steps):
        if color_distance(a, b) >= min_distance:
            break
        a = _push(a, a_toward_blue, step)
        b = _push(b, not a_toward_blue, step)

    logger.warning(
        "Team colors too similar; separated centroids to %s and %s",
        rgb_to_hex(a),
        rgb_to_hex(b),
    )
    return tuple(float(c) for c in a), tuple(float(c) for c in b)


class TeamClusterer:
    """Partition torso color samples into two team clusters."""

    def __init__(
        self,
        n_iterations: int = 10,
        min_centroid_distance: float = 50.0,
        separation_step: float = 50.0,
        seed: int | None = None,
    ):
        """
        Initialize team clusterer.

        Args:
            n_iterations: Fixed number of Lloyd iterations
            min_centroid_distance: Minimum RGB distance between team colors
            separation_step: Step used when pushing colliding centroids apart
            seed: Random seed for centroid initialization (None = unseeded)
        """
        self.n_iterations = n_iterations
        self.min_centroid_distance = min_centroid_distance
        self.separation_step = separation_step
        self.seed = seed

    def fit(self, samples: list[ColorSample]) -> list[TeamCluster]:
        """
        Cluster color samples into two teams.

        Never raises on degenerate input: fewer than two samples yields an
        empty list and the caller substitutes ``default_team_clusters()``.

        Args:
            samples: Filtered torso color samples

        Returns:
            [teamA, teamB] clusters (teamA is the larger), or [] if not enough samples
        """
        if len(samples) < len(TEAM_IDS):
            logger.warning("Not enough color samples (%d) for team clustering", len(samples))
            return []

        colors = np.array([[s.r, s.g, s.b] for s in samples], dtype=np.float64)

        # Random init from two samples, fixed iteration count
        kmeans = KMeans(
            n_clusters=len(TEAM_IDS),
            init="random",
            n_init=1,
            max_iter=self.n_iterations,
            tol=0.0,
            random_state=self.seed,
        )
        with warnings.catch_warnings():
            # Identical samples collapse to one distinct point
            warnings.simplefilter("ignore", ConvergenceWarning)
            labels = kmeans.fit_predict(colors)

        groups = []
        for label in range(len(TEAM_IDS)):
            members = [s for s, lbl in zip(samples, labels) if lbl == label]
            groups.append((kmeans.cluster_centers_[label], members))

        # Larger cluster becomes teamA
        groups.sort(key=lambda group: len(group[1]), reverse=True)

        centroid_a, centroid_b = resolve_centroid_collision(
            groups[0][0],
            groups[1][0],
            min_distance=self.min_centroid_distance,
            step=self.separation_step,
        )

        clusters = [
            TeamCluster(centroid=centroid_a, team_id=TEAM_IDS[0], samples=groups[0][1]),
            TeamCluster(centroid=centroid_b, team_id=TEAM_IDS[1], samples=groups[1][1]),
        ]
        logger.info(
            "Team clusters: teamA %s (%d samples), teamB %s (%d samples)",
            clusters[0].hex_color,
            len(clusters[0].samples),
            clusters[1].hex_color,
            len(clusters[1].samples),
        )
        return clusters


class TeamAssigner:
    """Assign person detections to teams."""

    def __init__(
        self,
        clusters: list[TeamCluster],
        torso_fraction: float = 0.6,
        fallback_frame_width: int = 1920,
    ):
        """
        Initialize team assigner.

        Args:
            clusters: Team clusters from TeamClusterer (empty = positional fallback)
            torso_fraction: Fraction of each bbox height to sample
            fallback_frame_width: Frame width used when neither frame nor detection set has one
        """
        self.clusters = clusters
        self.torso_fraction = torso_fraction
        self.fallback_frame_width = fallback_frame_width

    @property
    def uses_colors(self) -> bool:
        """Whether color clusters are available."""
        return len(self.clusters) == len(TEAM_IDS)

    def predict(self, color) -> str:
        """
        Predict team for a color.

        Args:
            color: RGB color (r, g, b)

        Returns:
            Team ID of the nearest centroid
        """
        if not self.uses_colors:
            raise ValueError("TeamAssigner has no clusters; use positional assignment")

        distances = [color_distance(color, cluster.centroid) for cluster in self.clusters]
        return self.clusters[int(np.argmin(distances))].team_id

    def predict_by_position(self, detection: PersonDetection, frame_width: float) -> str:
        """
        Coarse court-side team guess.

        Args:
            detection: Person detection
            frame_width: Frame width in pixels

        Returns:
            teamA for the left half of the frame, teamB for the right half
        """
        center_x, _ = detection.center
        return TEAM_IDS[0] if center_x / frame_width < 0.5 else TEAM_IDS[1]

    def assign(
        self,
        frame_sets: list[FrameDetectionSet],
        frames: dict[int, np.ndarray] | None = None,
    ) -> int:
        """
        Set ``team_id`` on every unassigned detection.

        Args:
            frame_sets: Person detections per frame (mutated in place)
            frames: Mapping of frame_index to frame image (None = positional only)

        Returns:
            Number of detections assigned

        Raises:
            MissingFrameError: If frames are supplied but one is missing
        """
        assigned = 0
        positional = 0

        for frame_set in frame_sets:
            pending = [d for d in frame_set.detections if d.team_id is None]
            if not pending:
                continue

            frame = None
            if frames is not None and self.uses_colors:
                if frame_set.frame_index not in frames:
                    raise MissingFrameError(frame_set.frame_index)
                frame = frames[frame_set.frame_index]

            frame_width = self._frame_width(frame_set, frame)

            for detection in pending:
                color = None
                if frame is not None:
                    color = mean_color(
                        sample_torso_colors(
                            frame,
                            detection.bbox,
                            frame_index=frame_set.frame_index,
                            torso_fraction=self.torso_fraction,
                        )
                    )

                if color is not None:
                    detection.team_id = self.predict(color)
                    detection.team_source = "color"
                else:
                    detection.team_id = self.predict_by_position(detection, frame_width)
                    detection.team_source = "position"
                    positional += 1
                assigned += 1

        if positional:
            logger.warning(
                "Assigned %d of %d detections by court position (low confidence)",
                positional,
                assigned,
            )
        return assigned

    def _frame_width(self, frame_set: FrameDetectionSet, frame: np.ndarray | None) -> float:
        """Best known frame width for normalizing positions."""
        if frame_set.width:
            return float(frame_set.width)
        if frame is not None and frame.ndim >= 2 and frame.shape[1] > 0:
            return float(frame.shape[1])
        return float(self.fallback_frame_width)
