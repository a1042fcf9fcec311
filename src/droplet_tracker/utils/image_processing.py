"""
Utility functions for image processing in droplet tracking.
"""

import cv2
import numpy as np
from scipy import ndimage


def to_gray(frame):
    """Convert a BGR frame to grayscale; grayscale input is returned as is."""
    if frame.ndim == 2:
        return frame
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


def frame_entropy(image):
    """
    Shannon entropy (bits) of an 8-bit image's intensity histogram.

    Every pixel of every channel contributes to one 256-bin histogram.
    Non-uint8 input is scaled from [0, 1] floats or clipped to [0, 255].

    Args:
        image (np.ndarray): Grayscale or color image

    Returns:
        float: Entropy in bits, 0.0 for an empty or constant image
    """
    img = np.asarray(image)
    if img.size == 0:
        return 0.0
    if img.dtype != np.uint8:
        if np.issubdtype(img.dtype, np.floating) and img.max() <= 1.0:
            img = img * 255.0
        img = np.clip(np.round(img), 0, 255).astype(np.uint8)

    counts = np.bincount(img.ravel(), minlength=256).astype(np.float64)
    p = counts[counts > 0] / img.size
    return float(-np.sum(p * np.log2(p)))


def corr2(a, b):
    """
    2-D correlation coefficient between two equally sized images.

    Returns NaN when either image is constant.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Images must have the same shape, got {a.shape} and {b.shape}")

    am = a - a.mean()
    bm = b - b.mean()
    denom = np.sqrt(np.sum(am * am) * np.sum(bm * bm))
    if denom == 0:
        return float("nan")
    return float(np.sum(am * bm) / denom)


def fill_holes(mask):
    """Fill enclosed background regions of a binary mask (0/255 uint8)."""
    filled = ndimage.binary_fill_holes(mask > 0)
    return filled.astype(np.uint8) * 255


def sobel_edges(gray):
    """
    Binary edge map from the Sobel gradient magnitude.

    The cutoff on the squared magnitude is four times its mean, which adapts
    to the overall contrast of the frame.
    """
    g = gray.astype(np.float32)
    gx = cv2.Sobel(g, cv2.CV_32F, 1, 0, ksize=3) / 8.0
    gy = cv2.Sobel(g, cv2.CV_32F, 0, 1, ksize=3) / 8.0
    mag2 = gx * gx + gy * gy

    cutoff = 4.0 * float(mag2.mean())
    if cutoff <= 0:
        return np.zeros(gray.shape, dtype=np.uint8)
    return (mag2 > cutoff).astype(np.uint8) * 255
