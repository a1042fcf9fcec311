"""
Core data types shared by the tracking engine, the droplet accumulator and
the frame-level plug detectors.

All pixel coordinates are 1-based: the top-left pixel of a frame is (1, 1)
and a bounding box ``(x, y, width, height)`` touching the left edge has
``x == 1``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from .errors import InvalidInput

BBox = Tuple[float, float, float, float]
Centroid = Tuple[float, float]


@dataclass(frozen=True)
class Detection:
    """One foreground blob found in a frame."""

    area: float
    centroid: Centroid
    bbox: BBox

    def validate(self, frame_size: Optional[Tuple[int, int]] = None) -> None:
        """Raise InvalidInput unless the detection is well formed.

        Args:
            frame_size: Optional ``(width, height)`` of the source frame. When
                given, the bounding box must lie inside it.
        """
        try:
            area_ok = math.isfinite(self.area) and self.area >= 0
            centroid_ok = len(self.centroid) == 2 and all(math.isfinite(c) for c in self.centroid)
            bbox_ok = len(self.bbox) == 4 and all(math.isfinite(v) for v in self.bbox)
        except TypeError as e:
            raise InvalidInput(f"Detection fields must be numeric: {self!r}") from e

        if not area_ok:
            raise InvalidInput(f"Detection area must be finite and >= 0, got {self.area}")
        if not centroid_ok:
            raise InvalidInput(f"Detection centroid must be two finite values, got {self.centroid}")
        if not bbox_ok:
            raise InvalidInput(f"Detection bbox must be four finite values, got {self.bbox}")

        x, y, w, h = self.bbox
        if w < 0 or h < 0:
            raise InvalidInput(f"Detection bbox has negative size: {self.bbox}")

        if frame_size is not None:
            width, height = frame_size
            if x < 1 or y < 1 or x + w - 1 > width or y + h - 1 > height:
                raise InvalidInput(
                    f"Detection bbox {self.bbox} lies outside a {width}x{height} frame"
                )


@dataclass(frozen=True)
class Droplet:
    """A single qualifying observation of a droplet in full view."""

    id: int
    bbox: BBox
    area: float
    frame_id: int
    frame: Optional[np.ndarray] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Plug:
    """A candidate frame picked by one of the whole-frame plug detectors."""

    plug_id: int
    frame_id: int
    score: float  # entropy or correlation coefficient
    frame: Optional[np.ndarray] = field(default=None, repr=False, compare=False)


@dataclass
class TrackingOutcome:
    """What one registry step did to the track set."""

    matches: List[Tuple[int, int]] = field(default_factory=list)  # (track_id, detection_index)
    new_tracks: List[int] = field(default_factory=list)
    pruned_tracks: List[int] = field(default_factory=list)
    unmatched_tracks: List[int] = field(default_factory=list)
    unmatched_detections: List[int] = field(default_factory=list)

    @property
    def matched_detections(self) -> List[int]:
        return [det_idx for _, det_idx in self.matches]
