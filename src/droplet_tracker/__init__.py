"""
Droplet Tracker Package

Isolates and tracks fluid droplets ("plugs") moving through a 2-phase flow in
video recordings. The system combines background subtraction, Kalman
filtering, and Hungarian assignment for multi-object tracking, and groups the
frames where a droplet is in full view into droplet records.

Key Features:
- Gaussian-mixture background subtraction with optional morphological cleanup
- Constant-velocity Kalman filter per track
- Hungarian assignment with a cost of non-assignment
- Track lifecycle with visibility-based pruning
- Droplet records grouped by temporal continuity
- Whole-frame entropy and template-correlation plug detectors
- Plug isolation from the background
"""

__version__ = "1.0.0"

from .core import (
    Detection,
    Droplet,
    DropletAccumulator,
    DropletTrackingWorker,
    TrackRegistry,
    detect_droplets,
)
from .app.launcher import main, parse_arguments, setup_logging

__all__ = [
    "Detection",
    "Droplet",
    "DropletAccumulator",
    "DropletTrackingWorker",
    "TrackRegistry",
    "detect_droplets",
    "main",
    "parse_arguments",
    "setup_logging",
]
