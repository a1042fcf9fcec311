"""Detection sources and whole-frame plug detectors."""

from .blob import BlobDetector, extract_blobs
from .frame_metrics import (
    entropy_detection,
    entropy_detection_from_video,
    template_detection,
    template_detection_from_video,
)

__all__ = [
    "BlobDetector",
    "extract_blobs",
    "entropy_detection",
    "entropy_detection_from_video",
    "template_detection",
    "template_detection_from_video",
]
