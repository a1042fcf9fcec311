"""Track lifecycle and the per-frame tracking loop."""

from .registry import Track, TrackRegistry
from .worker import DropletTrackingWorker, detect_droplets

__all__ = ["Track", "TrackRegistry", "DropletTrackingWorker", "detect_droplets"]
