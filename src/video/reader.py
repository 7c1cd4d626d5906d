"""Video reading for the pixel-based enrichment passes."""

import logging
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Decode forward instead of seeking when the next index is this close
MAX_FORWARD_DECODE = 30


class VideoMetadata:
    """Container for video metadata."""

    def __init__(
        self,
        fps: float,
        total_frames: int,
        width: int,
        height: int,
        duration: float,
        codec: str,
    ):
        self.fps = fps
        self.total_frames = total_frames
        self.width = width
        self.height = height
        self.duration = duration
        self.codec = codec

    def to_dict(self) -> dict:
        """Convert metadata to dictionary."""
        return {
            "fps": self.fps,
            "total_frames": self.total_frames,
            "width": self.width,
            "height": self.height,
            "duration": self.duration,
            "codec": self.codec,
        }


class VideoReader:
    """Read frames of a basketball video by index."""

    def __init__(self, video_path: str | Path):
        """
        Initialize video reader.

        Args:
            video_path: Path to video file

        Raises:
            ValueError: If video cannot be opened
        """
        self.video_path = Path(video_path)
        self.cap = None

        if not self.video_path.exists():
            raise ValueError(f"Video file does not exist: {video_path}")

        self.cap = cv2.VideoCapture(str(video_path))

        if not self.cap.isOpened():
            raise ValueError(f"Cannot open video: {video_path}")

        self.fps = self.cap.get(cv2.CAP_PROP_FPS)
        self.total_frames = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.duration = self.total_frames / self.fps if self.fps > 0 else 0
        self.codec = self._get_codec()
        self._position = 0

    def _get_codec(self) -> str:
        """Extract codec information."""
        fourcc = int(self.cap.get(cv2.CAP_PROP_FOURCC))
        return "".join([chr((fourcc >> 8 * i) & 0xFF) for i in range(4)])

    @property
    def metadata(self) -> VideoMetadata:
        """Get video metadata."""
        return VideoMetadata(
            fps=self.fps,
            total_frames=self.total_frames,
            width=self.width,
            height=self.height,
            duration=self.duration,
            codec=self.codec,
        )

    def read_frame(self) -> tuple[bool, np.ndarray | None]:
        """
        Read next frame from video.

        Returns:
            Tuple of (success, frame)
        """
        ret, frame = self.cap.read()
        if ret:
            self._position += 1
        return ret, frame if ret else None

    def seek(self, frame_idx: int) -> bool:
        """
        Seek to specific frame.

        Args:
            frame_idx: Frame index to seek to

        Returns:
            True if seek was successful
        """
        ok = self.cap.set(cv2.CAP_PROP_POS_FRAMES, frame_idx)
        if ok:
            self._position = frame_idx
        return ok

    def get_frame_at(self, frame_idx: int) -> np.ndarray | None:
        """
        Get specific frame by index.

        Args:
            frame_idx: Frame index

        Returns:
            Frame array or None if failed
        """
        if frame_idx != self._position and not self.seek(frame_idx):
            return None
        _, frame = self.read_frame()
        return frame

    def read_frames(self, frame_indices) -> dict[int, np.ndarray]:
        """
        Read the frames at the given indices.

        Indices past the end of the video or that fail to decode are left out
        of the result with a warning.

        Args:
            frame_indices: Iterable of frame indices

        Returns:
            Mapping of frame index to BGR frame
        """
        frames = {}
        for frame_idx in sorted(set(frame_indices)):
            if frame_idx < 0 or (self.total_frames and frame_idx >= self.total_frames):
                logger.warning("Frame %d is outside the video (%d frames)", frame_idx, self.total_frames)
                continue

            # Decode forward across short hops
            while self._position < frame_idx <= self._position + MAX_FORWARD_DECODE:
                ret, _ = self.read_frame()
                if not ret:
                    break

            frame = self.get_frame_at(frame_idx)
            if frame is None:
                logger.warning("Could not decode frame %d", frame_idx)
                continue
            frames[frame_idx] = frame

        return frames

    def close(self) -> None:
        """Release video capture."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()

    def __del__(self):
        """Destructor to ensure cleanup."""
        self.close()
