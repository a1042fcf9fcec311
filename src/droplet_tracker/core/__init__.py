"""
Core tracking algorithms and components for the Droplet Tracker.

This package contains the per-frame tracking engine (Kalman filters, track
assignment, track registry and droplet accumulation) together with the
detection sources that feed it and the whole-frame plug detectors.
"""

from .errors import AssignmentFailure, DropletTrackerError, InvalidInput, VideoOpenError
from .types import Detection, Droplet, Plug, TrackingOutcome
from .filters.kalman import KalmanTrackFilter
from .assigners.hungarian import TrackAssigner, solve_assignment
from .droplets import DropletAccumulator
from .tracking.registry import Track, TrackRegistry
from .detectors.blob import BlobDetector, extract_blobs
from .detectors.frame_metrics import entropy_detection, template_detection
from .isolation import isolate_plugs
from .tracking.worker import DropletTrackingWorker, detect_droplets

__all__ = [
    "AssignmentFailure",
    "DropletTrackerError",
    "InvalidInput",
    "VideoOpenError",
    "Detection",
    "Droplet",
    "Plug",
    "TrackingOutcome",
    "KalmanTrackFilter",
    "TrackAssigner",
    "solve_assignment",
    "DropletAccumulator",
    "Track",
    "TrackRegistry",
    "BlobDetector",
    "extract_blobs",
    "entropy_detection",
    "template_detection",
    "isolate_plugs",
    "DropletTrackingWorker",
    "detect_droplets",
]
