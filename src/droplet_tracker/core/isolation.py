"""
Plug isolation.

Separates plugs from the background of color frames. Object edges are found,
closed to bridge small gaps, filled, and opened with a vertical line to drop
thin edge fragments. The resulting mask is ANDed with the original frame.
Frames whose isolated content has almost no entropy do not contain a full
plug and are dropped.
"""

import logging

import cv2
import numpy as np

from ..utils.image_processing import fill_holes, frame_entropy, sobel_edges, to_gray

logger = logging.getLogger(__name__)


def plug_mask(frame, close_kernel, open_kernel):
    """Binary 0/255 mask of the plug in a single BGR frame."""
    edges = sobel_edges(to_gray(frame))
    closed = cv2.morphologyEx(edges, cv2.MORPH_CLOSE, close_kernel)
    filled = fill_holes(closed)
    return cv2.morphologyEx(filled, cv2.MORPH_OPEN, open_kernel)


def isolate_plugs(frames, labels=None, close_radius=4, open_length=50, min_entropy=1.0):
    """
    Isolate plugs from the background in a stack of color frames.

    Args:
        frames (np.ndarray): (N, H, W, 3) uint8 stack of BGR frames
        labels (sequence, optional): One label per frame (e.g. plug ids)
        close_radius (int): Radius of the disk used to close edge gaps
        open_length (int): Length of the vertical line used to open the mask
        min_entropy (float): Frames with lower isolated entropy are dropped

    Returns:
        np.ndarray, or (np.ndarray, list) when labels are given: the isolated
        frames that were kept, and their labels.

    Raises:
        ValueError: if frames is not a stack of 3-channel images, or labels
            do not match the number of frames.
    """
    frames = np.asarray(frames)
    if frames.ndim != 4 or frames.shape[3] != 3:
        raise ValueError("Invalid frame matrix, must be w x m x n x 3")
    if labels is not None and len(labels) != len(frames):
        raise ValueError(f"Got {len(labels)} labels for {len(frames)} frames")

    d = 2 * int(close_radius) + 1
    close_kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (d, d))
    open_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (1, int(open_length)))

    isolated = np.zeros_like(frames, dtype=np.uint8)
    entropies = np.zeros(len(frames), dtype=np.float64)
    for i, frame in enumerate(frames):
        frame = frame.astype(np.uint8, copy=False)
        mask = plug_mask(frame, close_kernel, open_kernel)
        isolated[i] = cv2.bitwise_and(frame, frame, mask=mask)
        entropies[i] = frame_entropy(isolated[i])

    keep = entropies >= min_entropy
    logger.info(f"Plug isolation: kept {int(keep.sum())} of {len(frames)} frames")

    if labels is None:
        return isolated[keep]
    return isolated[keep], [label for label, k in zip(labels, keep) if k]
