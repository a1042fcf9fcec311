"""
Droplet accumulation.

Turns per-frame detections into droplet records. A droplet is one continuous
passage of a large blob through full view: consecutive qualifying frames that
are at most ``DROPLET_FRAME_GAP`` frames apart share an id.
"""

import logging

import numpy as np

from .types import Droplet

logger = logging.getLogger(__name__)


class DropletAccumulator:
    """
    Append-only store of droplet records.
    """

    def __init__(self, params=None):
        """
        Args:
            params (dict): DROPLET_AREA_THRESHOLD (250000) and
                DROPLET_FRAME_GAP (3)
        """
        self.params = params or {}
        self.area_threshold = float(self.params.get("DROPLET_AREA_THRESHOLD", 250000))
        self.frame_gap = int(self.params.get("DROPLET_FRAME_GAP", 3))
        self._droplets = []
        self.drop_id = 0

    @property
    def droplets(self):
        """Recorded droplets, in the order they were appended."""
        return tuple(self._droplets)

    def __len__(self):
        return len(self._droplets)

    @staticmethod
    def in_full_view(bbox, frame_width, frame_height):
        """True when a 1-based bbox does not touch any frame edge."""
        x, y, w, h = bbox
        return x != 1 and y != 1 and x + w < frame_width and y + h < frame_height

    def observe(self, frame, frame_id, detections, area_threshold=None):
        """
        Record every detection of this frame that qualifies as a droplet.

        A detection qualifies when its area is positive and at least
        `area_threshold`, and its bbox does not touch the frame edge.

        Args:
            frame (np.ndarray): The frame the detections came from
            frame_id (int): 1-based index of the frame in the stream
            detections (list): Detection objects for this frame
            area_threshold (float, optional): Overrides DROPLET_AREA_THRESHOLD

        Returns:
            list: Droplet records appended for this frame
        """
        threshold = self.area_threshold if area_threshold is None else float(area_threshold)
        detections = list(detections)
        if not detections:
            return []

        areas = np.array([d.area for d in detections], dtype=np.float64)
        if not np.any(areas >= threshold):
            return []

        # Areas below the threshold are ignored this frame
        areas[areas < threshold] = 0

        frame_height, frame_width = frame.shape[:2]
        appended = []
        for det, area in zip(detections, areas):
            if not area or not self.in_full_view(det.bbox, frame_width, frame_height):
                continue

            if self.drop_id == 0 or self._droplets[-1].frame_id < frame_id - self.frame_gap:
                self.drop_id += 1
                logger.debug(f"Frame {frame_id}: new droplet {self.drop_id}")

            droplet = Droplet(
                id=self.drop_id,
                bbox=tuple(det.bbox),
                area=float(area),
                frame_id=int(frame_id),
                frame=frame,
            )
            self._droplets.append(droplet)
            appended.append(droplet)

        return appended

    def group_by_id(self):
        """Map droplet id -> list of its records, in order."""
        groups = {}
        for droplet in self._droplets:
            groups.setdefault(droplet.id, []).append(droplet)
        return groups
