"""
Foreground blob detection for droplet tracking.

This module provides the detection source of the tracking pipeline: a
Gaussian-mixture background subtractor, optional morphological cleanup of the
foreground mask, and connected-component blob analysis.
"""

import logging

import cv2
import numpy as np

from ...utils.image_processing import fill_holes
from ..types import Detection

logger = logging.getLogger(__name__)


def extract_blobs(mask, min_area=0):
    """
    Find connected foreground regions in a binary mask.

    Args:
        mask (np.ndarray): Binary mask, nonzero pixels are foreground
        min_area (int): Blobs with fewer pixels are dropped

    Returns:
        list: Detection objects with 1-based centroid and bbox, in label order
    """
    binary = (np.asarray(mask) > 0).astype(np.uint8)
    n_labels, _, stats, centroids = cv2.connectedComponentsWithStats(binary, connectivity=8)

    detections = []
    for label in range(1, n_labels):  # label 0 is the background
        area = int(stats[label, cv2.CC_STAT_AREA])
        if area < min_area:
            continue

        x = int(stats[label, cv2.CC_STAT_LEFT]) + 1
        y = int(stats[label, cv2.CC_STAT_TOP]) + 1
        w = int(stats[label, cv2.CC_STAT_WIDTH])
        h = int(stats[label, cv2.CC_STAT_HEIGHT])
        cx, cy = centroids[label]

        detections.append(
            Detection(
                area=float(area),
                centroid=(float(cx) + 1.0, float(cy) + 1.0),
                bbox=(x, y, w, h),
            )
        )
    return detections


class BlobDetector:
    """
    Detects moving droplets as foreground blobs.

    The first BACKGROUND_TRAINING_FRAMES frames train the background model, so
    early frames usually report the whole moving scene as foreground.
    """

    def __init__(self, params=None):
        """
        Initialize blob detector.

        Args:
            params (dict): Detection parameters
        """
        self.params = params or {}
        self.min_blob_area = int(self.params.get("MIN_BLOB_AREA", 400))
        self.enable_filtering = bool(self.params.get("ENABLE_FILTERING", False))

        self.subtractor = cv2.createBackgroundSubtractorMOG2(
            history=int(self.params.get("BACKGROUND_TRAINING_FRAMES", 40)),
            detectShadows=False,
        )
        self.subtractor.setNMixtures(int(self.params.get("BACKGROUND_NUM_GAUSSIANS", 3)))
        self.subtractor.setBackgroundRatio(float(self.params.get("BACKGROUND_RATIO", 0.5)))

        # cv2 kernel sizes are (width, height)
        open_h, open_w = self.params.get("OPEN_KERNEL_SIZE", (20, 20))
        close_h, close_w = self.params.get("CLOSE_KERNEL_SIZE", (30, 30))
        self.open_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (int(open_w), int(open_h)))
        self.close_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (int(close_w), int(close_h)))

    def foreground_mask(self, frame):
        """Update the background model with `frame` and return its 0/255 mask."""
        mask = self.subtractor.apply(frame)
        return np.where(mask > 0, 255, 0).astype(np.uint8)

    def clean_mask(self, mask):
        """Morphological cleanup of a foreground mask (open, close, fill holes)."""
        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, self.open_kernel)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, self.close_kernel)
        return fill_holes(mask)

    def detect(self, frame, frame_count=0):
        """
        Detect droplet blobs in a frame.

        Args:
            frame (np.ndarray): BGR or grayscale frame
            frame_count (int): Current frame number for logging

        Returns:
            tuple: (mask, detections)
        """
        mask = self.foreground_mask(frame)
        if self.enable_filtering:
            mask = self.clean_mask(mask)

        detections = extract_blobs(mask, self.min_blob_area)
        logger.debug(f"Frame {frame_count}: {len(detections)} blobs")
        return mask, detections
