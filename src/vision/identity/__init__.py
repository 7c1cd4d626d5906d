"""Player identity tracking via jersey numbers and visual re-identification."""

from src.vision.identity.ocr import (
    DigitRecognizer,
    EasyOCRDigitRecognizer,
    JerseyNumberReader,
    JerseyRead,
    OCRResult,
    binarize,
    crop_jersey_region,
    parse_jersey_number,
)
from src.vision.identity.tracker import (
    Appearance,
    IdentityResolution,
    PlayerIdentityTracker,
    PlayerTrack,
    VisualFeatures,
    extract_visual_features,
    merge_identity_detections,
)

__all__ = [
    "DigitRecognizer",
    "EasyOCRDigitRecognizer",
    "JerseyNumberReader",
    "JerseyRead",
    "OCRResult",
    "binarize",
    "crop_jersey_region",
    "parse_jersey_number",
    "Appearance",
    "IdentityResolution",
    "PlayerIdentityTracker",
    "PlayerTrack",
    "VisualFeatures",
    "extract_visual_features",
    "merge_identity_detections",
]
