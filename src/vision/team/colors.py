"""Jersey color sampling and analysis."""

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from src.vision.detect.types import (
    BBox,
    FrameDetectionSet,
    MissingFrameError,
    is_valid_frame,
)

logger = logging.getLogger(__name__)

# Sample filter thresholds (h in degrees, s and v in [0, 1])
SKIN_HUE_LOW = 30.0
SKIN_HUE_HIGH = 330.0
SKIN_MAX_SATURATION = 0.3
MIN_VALUE = 0.2
MAX_VALUE = 0.95
MIN_SATURATION = 0.1

NAMED_COLORS = {
    "red": (204, 0, 0),
    "blue": (0, 51, 204),
    "navy": (0, 0, 128),
    "green": (0, 153, 51),
    "yellow": (255, 204, 0),
    "orange": (255, 128, 0),
    "purple": (128, 0, 128),
    "maroon": (128, 0, 0),
    "teal": (0, 128, 128),
    "white": (255, 255, 255),
    "gray": (128, 128, 128),
    "black": (0, 0, 0),
}


@dataclass(frozen=True)
class ColorSample:
    """Single filtered torso pixel."""

    r: int
    g: int
    b: int
    h: float  # [0, 360)
    s: float  # [0, 1]
    v: float  # [0, 1]
    frame_index: int
    bbox: BBox

    @property
    def rgb(self) -> np.ndarray:
        """Color as float RGB array."""
        return np.array([self.r, self.g, self.b], dtype=np.float64)


def rgb_to_hsv(r: float, g: float, b: float) -> tuple[float, float, float]:
    """
    Convert an RGB color to HSV.

    Args:
        r: Red (0-255)
        g: Green (0-255)
        b: Blue (0-255)

    Returns:
        (h, s, v) with h in [0, 360) and s, v in [0, 1]
    """
    pixel = np.array([[[r, g, b]]], dtype=np.float32) / 255.0
    h, s, v = cv2.cvtColor(pixel, cv2.COLOR_RGB2HSV)[0, 0]
    return float(h) % 360.0, float(s), float(v)


def jersey_color_mask(hsv: np.ndarray) -> np.ndarray:
    """
    Boolean mask of HSV rows that look like jersey fabric.

    Rejects skin tones, near-black/near-white pixels and grayscale noise.

    Args:
        hsv: (N, 3) array of h, s, v

    Returns:
        (N,) boolean mask
    """
    h, s, v = hsv[:, 0], hsv[:, 1], hsv[:, 2]
    skin = ((h <= SKIN_HUE_LOW) | (h >= SKIN_HUE_HIGH)) & (s < SKIN_MAX_SATURATION)
    return (v >= MIN_VALUE) & (v <= MAX_VALUE) & (s >= MIN_SATURATION) & ~skin


def is_jersey_color(h: float, s: float, v: float) -> bool:
    """Check a single HSV color against the jersey filter."""
    return bool(jersey_color_mask(np.array([[h, s, v]], dtype=np.float64))[0])


def sample_torso_colors(
    frame: np.ndarray,
    bbox: BBox,
    frame_index: int = 0,
    torso_fraction: float = 0.6,
) -> list[ColorSample]:
    """
    Sample filtered colors from the torso region of a person.

    Only the upper ``torso_fraction`` of the bbox is sampled, on a grid with a
    stride of a tenth of the box width.

    Args:
        frame: Video frame (BGR format)
        bbox: Bounding box (x, y, w, h)
        frame_index: Frame index recorded on each sample
        torso_fraction: Fraction of the bbox height to sample from the top

    Returns:
        Color samples that passed the jersey filter
    """
    if not is_valid_frame(frame):
        logger.warning("Skipping malformed frame %d for color sampling", frame_index)
        return []

    if any(not np.isfinite(v) for v in bbox):
        return []

    x, y, w, h = bbox
    if w <= 0 or h <= 0:
        return []

    # Clip to frame bounds
    frame_h, frame_w = frame.shape[:2]
    x1 = max(0, int(x))
    y1 = max(0, int(y))
    x2 = min(frame_w, int(x + w))
    y2 = min(frame_h, int(y + h * torso_fraction))
    if x2 <= x1 or y2 <= y1:
        return []

    step = max(1, int(w) // 10)
    region = frame[y1:y2:step, x1:x2:step, :3]
    bgr = region.reshape(-1, 3)
    rgb = np.ascontiguousarray(bgr[:, ::-1])

    hsv = cv2.cvtColor(
        (rgb.astype(np.float32) / 255.0).reshape(-1, 1, 3), cv2.COLOR_RGB2HSV
    ).reshape(-1, 3)
    mask = jersey_color_mask(hsv)

    samples = []
    for (r, g, b), (hue, sat, val) in zip(rgb[mask], hsv[mask]):
        samples.append(
            ColorSample(
                r=int(r),
                g=int(g),
                b=int(b),
                h=float(hue) % 360.0,
                s=float(sat),
                v=float(val),
                frame_index=frame_index,
                bbox=tuple(bbox),
            )
        )
    return samples


def collect_color_samples(
    frame_sets: list[FrameDetectionSet],
    frames: dict[int, np.ndarray],
    max_frames: int = 30,
    torso_fraction: float = 0.6,
) -> list[ColorSample]:
    """
    Collect torso color samples for clustering.

    Args:
        frame_sets: Person detections per frame
        frames: Mapping of frame_index to frame image
        max_frames: Number of frames with detections to sample
        torso_fraction: Fraction of each bbox height to sample

    Returns:
        Pooled color samples

    Raises:
        MissingFrameError: If a sampled frame index has no frame
    """
    samples: list[ColorSample] = []
    used_frames = 0

    for frame_set in frame_sets:
        if used_frames >= max_frames:
            break
        if not frame_set.detections:
            continue
        if frame_set.frame_index not in frames:
            raise MissingFrameError(frame_set.frame_index)

        frame = frames[frame_set.frame_index]
        for detection in frame_set.detections:
            samples.extend(
                sample_torso_colors(
                    frame,
                    detection.bbox,
                    frame_index=frame_set.frame_index,
                    torso_fraction=torso_fraction,
                )
            )
        used_frames += 1

    logger.debug("Collected %d color samples from %d frames", len(samples), used_frames)
    return samples


def mean_color(samples: list[ColorSample]) -> np.ndarray | None:
    """Mean RGB of samples, or None when empty."""
    if not samples:
        return None
    return np.mean([s.rgb for s in samples], axis=0)


def color_distance(color1, color2) -> float:
    """
    Calculate Euclidean distance between two RGB colors.

    Args:
        color1: First color (r, g, b)
        color2: Second color (r, g, b)

    Returns:
        Distance in RGB units
    """
    return float(np.linalg.norm(np.asarray(color1, dtype=np.float64) - np.asarray(color2, dtype=np.float64)))


def rgb_to_hex(color) -> str:
    """Format an RGB color as ``#rrggbb``."""
    r, g, b = (int(round(min(max(c, 0), 255))) for c in color)
    return f"#{r:02x}{g:02x}{b:02x}"


def color_name(color) -> str:
    """Nearest human-readable name for an RGB color."""
    return min(NAMED_COLORS, key=lambda name: color_distance(color, NAMED_COLORS[name]))
