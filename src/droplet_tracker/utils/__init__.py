"""
Utility modules for the Droplet Tracker.

This package contains image processing helpers and video reading utilities.
"""

from .image_processing import corr2, fill_holes, frame_entropy, sobel_edges, to_gray
from .video_io import VideoFrames, iter_frames, open_video

__all__ = [
    "corr2",
    "fill_holes",
    "frame_entropy",
    "sobel_edges",
    "to_gray",
    "VideoFrames",
    "iter_frames",
    "open_video",
]
