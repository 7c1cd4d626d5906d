"""Player identity tracking by jersey number and visual re-identification."""

import logging
from dataclasses import dataclass, field, replace
from typing import Literal

import numpy as np

from src.config.schemas import IdentityConfig
from src.vision.detect.types import (
    BBox,
    FrameDetectionSet,
    MissingFrameError,
    PersonDetection,
    is_valid_frame,
)
from src.vision.identity.ocr import JerseyNumberReader
from src.vision.team.colors import color_distance

logger = logging.getLogger(__name__)

FEATURE_STRIDE = 5  # Pixel stride when averaging bbox color


@dataclass
class Appearance:
    """One sighting of a tracked player."""

    timestamp: float
    bbox: BBox
    confidence: float


@dataclass
class VisualFeatures:
    """Coarse appearance descriptor used for re-identification."""

    avg_color: tuple[float, float, float]  # (r, g, b)
    height: float  # bbox height in pixels


@dataclass
class PlayerTrack:
    """Single player identity track."""

    player_id: str
    team_id: str | None = None
    last_seen: float = 0.0
    appearances: list[Appearance] = field(default_factory=list)
    visual_features: VisualFeatures | None = None

    def record(self, timestamp: float, bbox: BBox, confidence: float) -> None:
        """Add a sighting; ``last_seen`` never moves backwards."""
        self.appearances.append(Appearance(timestamp=timestamp, bbox=tuple(bbox), confidence=confidence))
        self.last_seen = max(self.last_seen, timestamp)

    def state(self, now: float, max_age: float) -> Literal["tracked", "stale"]:
        """Track state at time ``now``."""
        return "stale" if now - self.last_seen > max_age else "tracked"

    def to_dict(self) -> dict:
        """Convert track summary to dictionary."""
        return {
            "player_id": self.player_id,
            "team_id": self.team_id,
            "last_seen": self.last_seen,
            "appearances": len(self.appearances),
        }


@dataclass
class IdentityResolution:
    """Identity assigned to one detection."""

    player_id: str
    confidence: float
    method: Literal["ocr", "visual", "unknown"]


def extract_visual_features(frame: np.ndarray, bbox: BBox) -> VisualFeatures | None:
    """
    Compute mean color and height of a person.

    Args:
        frame: Video frame (BGR format)
        bbox: Bounding box (x, y, w, h)

    Returns:
        VisualFeatures, or None if the bbox falls outside the frame
    """
    x, y, w, h = bbox
    frame_h, frame_w = frame.shape[:2]
    x1, y1 = max(0, int(x)), max(0, int(y))
    x2, y2 = min(frame_w, int(x + w)), min(frame_h, int(y + h))
    if x2 <= x1 or y2 <= y1:
        return None

    region = frame[y1:y2:FEATURE_STRIDE, x1:x2:FEATURE_STRIDE, :3]
    b, g, r = region.reshape(-1, 3).mean(axis=0)
    return VisualFeatures(avg_color=(float(r), float(g), float(b)), height=float(h))


class PlayerIdentityTracker:
    """Resolve a stable player id for every person detection."""

    def __init__(
        self,
        jersey_reader: JerseyNumberReader | None = None,
        config: IdentityConfig | None = None,
    ):
        """
        Initialize identity tracker.

        Args:
            jersey_reader: Jersey number reader (None skips the OCR path)
            config: Identity configuration
        """
        self.jersey_reader = jersey_reader
        self.config = config or IdentityConfig()

        self.tracks: dict[str, PlayerTrack] = {}
        self._next_unknown_id = 1
        self._frames_processed = 0

    def similarity(self, features: VisualFeatures, track: PlayerTrack) -> float:
        """
        Weighted color/height similarity between features and a track.

        Args:
            features: Features of the current detection
            track: Candidate track (must have visual features)

        Returns:
            Score in [0, 1]
        """
        reference = track.visual_features
        color_sim = 1.0 - min(
            color_distance(features.avg_color, reference.avg_color) / self.config.color_normalizer, 1.0
        )
        height_sim = 1.0 - min(
            abs(features.height - reference.height) / self.config.height_normalizer, 1.0
        )
        return self.config.color_weight * color_sim + self.config.height_weight * height_sim

    def find_matching_track(
        self,
        features: VisualFeatures,
        timestamp: float,
        team_id: str | None,
        exclude: set[str] | None = None,
    ) -> PlayerTrack | None:
        """
        Find the best re-identification candidate.

        Args:
            features: Features of the current detection
            timestamp: Current time in seconds
            team_id: Team of the current detection, if known
            exclude: Player ids already claimed in this frame

        Returns:
            Best matching track above threshold, or None
        """
        exclude = exclude or set()
        best_track = None
        best_score = self.config.reid_threshold

        for track in self.tracks.values():
            if track.player_id in exclude or track.visual_features is None:
                continue
            if team_id is not None and track.team_id is not None and team_id != track.team_id:
                continue
            if abs(timestamp - track.last_seen) > self.config.reid_window:
                continue

            score = self.similarity(features, track)
            if score > best_score:
                best_score = score
                best_track = track

        return best_track

    def resolve(
        self,
        frame: np.ndarray,
        detection: PersonDetection,
        timestamp: float,
        exclude: set[str] | None = None,
    ) -> IdentityResolution:
        """
        Resolve the identity of one detection.

        Tries jersey OCR, then visual re-identification, then allocates an
        ``unknown-N`` id.

        Args:
            frame: Video frame (BGR format)
            detection: Person detection
            timestamp: Frame timestamp in seconds
            exclude: Player ids already claimed in this frame

        Returns:
            IdentityResolution
        """
        features = extract_visual_features(frame, detection.bbox)

        # 1. Jersey number
        if self.jersey_reader is not None:
            read = self.jersey_reader.read(frame, detection.bbox)
            if read.accepted:
                track = self.tracks.get(read.number)
                if track is None:
                    track = PlayerTrack(
                        player_id=read.number,
                        team_id=detection.team_id,
                        visual_features=features,
                    )
                    self.tracks[read.number] = track
                    logger.debug("New track for jersey #%s at %.2fs", read.number, timestamp)
                elif track.team_id is None:
                    track.team_id = detection.team_id
                track.record(timestamp, detection.bbox, read.confidence)
                return IdentityResolution(read.number, read.confidence, "ocr")

        # 2. Visual re-identification
        if features is not None:
            track = self.find_matching_track(features, timestamp, detection.team_id, exclude)
            if track is not None:
                track.record(timestamp, detection.bbox, self.config.reid_confidence)
                return IdentityResolution(track.player_id, self.config.reid_confidence, "visual")

        # 3. Synthetic identity
        player_id = f"unknown-{self._next_unknown_id}"
        self._next_unknown_id += 1
        track = PlayerTrack(player_id=player_id, team_id=detection.team_id, visual_features=features)
        track.record(timestamp, detection.bbox, self.config.unknown_confidence)
        self.tracks[player_id] = track
        return IdentityResolution(player_id, self.config.unknown_confidence, "unknown")

    def process_frame(self, frame: np.ndarray, frame_set: FrameDetectionSet) -> FrameDetectionSet:
        """
        Identify every detection in a frame.

        Args:
            frame: Video frame (BGR format)
            frame_set: Person detections of that frame

        Returns:
            New frame set with ``player_id``/``player_confidence`` filled in
        """
        if not is_valid_frame(frame):
            logger.warning("Skipping malformed frame %d for identity tracking", frame_set.frame_index)
            return replace(frame_set, detections=[replace(d) for d in frame_set.detections])

        claimed: set[str] = set()
        identified = []
        for detection in frame_set.detections:
            resolution = self.resolve(frame, detection, frame_set.timestamp, exclude=claimed)
            claimed.add(resolution.player_id)
            identified.append(
                replace(
                    detection,
                    player_id=resolution.player_id,
                    player_confidence=resolution.confidence,
                )
            )

        return replace(frame_set, detections=identified)

    def process(
        self,
        frame_sets: list[FrameDetectionSet],
        frames: dict[int, np.ndarray],
    ) -> list[FrameDetectionSet]:
        """
        Identify players across a sequence of frames.

        Stale tracks are pruned every ``cleanup_interval`` processed frames.

        Args:
            frame_sets: Person detections per frame, in time order
            frames: Mapping of frame_index to frame image

        Returns:
            Identity-tagged frame sets

        Raises:
            MissingFrameError: If a frame set has no matching frame
        """
        results = []
        for frame_set in frame_sets:
            if frame_set.frame_index not in frames:
                raise MissingFrameError(frame_set.frame_index)

            results.append(self.process_frame(frames[frame_set.frame_index], frame_set))
            self._frames_processed += 1

            if self._frames_processed % self.config.cleanup_interval == 0:
                self.cleanup_stale_tracks(frame_set.timestamp)

        logger.info(
            "Identity tracking: %d frames, %d live tracks", len(results), len(self.tracks)
        )
        return results

    def cleanup_stale_tracks(self, now: float) -> list[str]:
        """
        Remove tracks not seen for longer than ``max_age``.

        Args:
            now: Current time in seconds

        Returns:
            Removed player ids
        """
        stale = [
            player_id
            for player_id, track in self.tracks.items()
            if track.state(now, self.config.max_age) == "stale"
        ]
        for player_id in stale:
            del self.tracks[player_id]

        if stale:
            logger.debug("Removed %d stale tracks at %.2fs", len(stale), now)
        return stale

    def tracked_players(self) -> list[PlayerTrack]:
        """Live tracks ordered by player id."""
        return sorted(self.tracks.values(), key=lambda t: t.player_id)


def merge_identity_detections(
    person_frames: list[FrameDetectionSet],
    identity_frames: list[FrameDetectionSet],
    max_distance: float = 50.0,
) -> list[FrameDetectionSet]:
    """
    Copy player ids from identity-tagged detections onto person detections.

    Detections are matched per frame index to the nearest identified bbox
    center within ``max_distance``. Inputs are not modified, so repeated
    merges give identical results.

    Args:
        person_frames: Base person detections
        identity_frames: Output of PlayerIdentityTracker.process
        max_distance: Maximum center distance in pixels

    Returns:
        New frame sets with player ids merged in
    """
    identities = {frame_set.frame_index: frame_set for frame_set in identity_frames}
    merged = []

    for frame_set in person_frames:
        identity_set = identities.get(frame_set.frame_index)
        candidates = (
            [d for d in identity_set.detections if d.player_id is not None] if identity_set else []
        )

        detections = []
        for detection in frame_set.detections:
            cx, cy = detection.center
            best = None
            best_distance = max_distance
            for candidate in candidates:
                px, py = candidate.center
                distance = float(np.hypot(cx - px, cy - py))
                if distance < best_distance:
                    best_distance = distance
                    best = candidate

            if best is not None:
                detections.append(
                    replace(
                        detection,
                        player_id=best.player_id,
                        player_confidence=best.player_confidence,
                    )
                )
            else:
                detections.append(replace(detection))

        merged.append(replace(frame_set, detections=detections))

    return merged
