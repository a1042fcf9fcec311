"""
Utility functions for video I/O in droplet tracking.
"""

import logging

import cv2

from ..core.errors import VideoOpenError

logger = logging.getLogger(__name__)


def open_video(path):
    """
    Open a video file for reading.

    Raises:
        VideoOpenError: if OpenCV cannot open the file
    """
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        cap.release()
        raise VideoOpenError(f"Cannot open video: {path}")
    return cap


def iter_frames(path):
    """
    Yield (frame, frame_num) for every frame of a video, frame_num 1-based.

    The iteration ends when the reader has no more frames.
    """
    cap = open_video(path)
    frame_num = 0
    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            frame_num += 1
            yield frame, frame_num
    finally:
        cap.release()
    logger.debug(f"Read {frame_num} frames from {path}")


class VideoFrames:
    """
    Re-iterable view of a video's frames.

    Every iteration reopens the file, so detectors that need two passes (score
    every frame, then collect candidates) can walk the video twice without
    holding it in memory.
    """

    def __init__(self, path):
        self.path = str(path)
        # Fail early on unreadable files
        open_video(self.path).release()

    def __iter__(self):
        for frame, _ in iter_frames(self.path):
            yield frame

    def __len__(self):
        cap = open_video(self.path)
        try:
            return int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        finally:
            cap.release()
