"""Jersey number recognition from person crops."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

import cv2
import numpy as np

from src.vision.detect.types import BBox, is_valid_frame

logger = logging.getLogger(__name__)

# Jersey sub-region as fractions of the person bbox
JERSEY_TOP = 0.2
JERSEY_BOTTOM = 0.5
JERSEY_LEFT = 0.25
JERSEY_RIGHT = 0.75
BINARY_THRESHOLD = 128
DIGITS = "0123456789"
JERSEY_NUMBER_PATTERN = re.compile(r"^\d{1,2}$")


@dataclass
class OCRResult:
    """Raw result of a digit recognizer."""

    text: str = ""
    confidence: float = 0.0  # 0-1
    engine: str = ""


@dataclass
class JerseyRead:
    """Outcome of reading a jersey number from one detection."""

    number: str | None  # Accepted 1-2 digit number, or None
    confidence: float
    raw_text: str = ""

    @property
    def accepted(self) -> bool:
        """Whether the read is trusted as a player id."""
        return self.number is not None


class DigitRecognizer(ABC):
    """Abstract digit-only OCR engine."""

    def __init__(self, name: str = "base"):
        self.name = name

    @abstractmethod
    def recognize(self, image: np.ndarray) -> OCRResult:
        """
        Recognize digits in an image treated as a single text block.

        Args:
            image: Grayscale or BGR numpy array

        Returns:
            OCRResult with text and 0-1 confidence
        """
        pass


class EasyOCRDigitRecognizer(DigitRecognizer):
    """EasyOCR restricted to digits."""

    def __init__(self, gpu: bool = False, languages: list[str] | None = None):
        """
        Initialize EasyOCR recognizer. The model is loaded on first use.

        Args:
            gpu: Whether to use GPU acceleration
            languages: List of language codes (default: ['en'])
        """
        super().__init__(name="easyocr")
        self.gpu = gpu
        self.languages = languages or ["en"]
        self.reader = None

    def initialize(self) -> None:
        """Load the EasyOCR reader."""
        import easyocr

        self.reader = easyocr.Reader(self.languages, gpu=self.gpu, verbose=False)

    def recognize(self, image: np.ndarray) -> OCRResult:
        """Recognize digits, joining detected blocks left to right."""
        if self.reader is None:
            self.initialize()

        if image is None or image.size == 0:
            return OCRResult(engine=self.name)

        if image.ndim == 2:
            rgb_image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        else:
            rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        results = self.reader.readtext(
            rgb_image,
            detail=1,
            paragraph=False,
            allowlist=DIGITS,
        )
        if not results:
            return OCRResult(engine=self.name)

        # Single block: order fragments by their left edge
        results = sorted(results, key=lambda r: min(p[0] for p in r[0]))
        text = "".join(r[1] for r in results)
        confidence = float(min(r[2] for r in results))
        return OCRResult(text=text, confidence=confidence, engine=self.name)


def crop_jersey_region(frame: np.ndarray, bbox: BBox) -> np.ndarray | None:
    """
    Crop the jersey-number area of a person.

    Vertically 20-50% of the bbox height, horizontally the central half.

    Args:
        frame: Video frame (BGR format)
        bbox: Person bounding box (x, y, w, h)

    Returns:
        Cropped image, or None if the region falls outside the frame
    """
    x, y, w, h = bbox
    frame_h, frame_w = frame.shape[:2]

    x1 = max(0, int(x + w * JERSEY_LEFT))
    x2 = min(frame_w, int(x + w * JERSEY_RIGHT))
    y1 = max(0, int(y + h * JERSEY_TOP))
    y2 = min(frame_h, int(y + h * JERSEY_BOTTOM))

    if x2 <= x1 or y2 <= y1:
        return None
    return frame[y1:y2, x1:x2]


def binarize(image: np.ndarray) -> np.ndarray:
    """Grayscale and hard-threshold an image at 128."""
    if image.ndim == 3:
        gray = cv2.cvtColor(image[:, :, :3], cv2.COLOR_BGR2GRAY)
    else:
        gray = image
    _, binary = cv2.threshold(gray, BINARY_THRESHOLD, 255, cv2.THRESH_BINARY)
    return binary


def parse_jersey_number(text: str) -> str | None:
    """Return the text as a jersey number if it is 1-2 digits."""
    cleaned = re.sub(r"\s+", "", text or "")
    if JERSEY_NUMBER_PATTERN.match(cleaned):
        return cleaned
    return None


class JerseyNumberReader:
    """Read jersey numbers from person detections."""

    def __init__(self, recognizer: DigitRecognizer, min_confidence: float = 0.5):
        """
        Initialize jersey number reader.

        Args:
            recognizer: Digit OCR engine
            min_confidence: OCR confidence a read must exceed to be accepted
        """
        self.recognizer = recognizer
        self.min_confidence = min_confidence

    def read(self, frame: np.ndarray, bbox: BBox) -> JerseyRead:
        """
        Read the jersey number of one person.

        Args:
            frame: Video frame (BGR format)
            bbox: Person bounding box (x, y, w, h)

        Returns:
            JerseyRead; ``number`` is None unless the read is trusted
        """
        if not is_valid_frame(frame):
            return JerseyRead(number=None, confidence=0.0)

        crop = crop_jersey_region(frame, bbox)
        if crop is None or crop.size == 0:
            return JerseyRead(number=None, confidence=0.0)

        result = self.recognizer.recognize(binarize(crop))
        number = parse_jersey_number(result.text)

        if number is None or result.confidence <= self.min_confidence:
            logger.debug(
                "Rejected jersey read %r (confidence %.2f)", result.text, result.confidence
            )
            return JerseyRead(number=None, confidence=result.confidence, raw_text=result.text)

        return JerseyRead(number=number, confidence=result.confidence, raw_text=result.text)
