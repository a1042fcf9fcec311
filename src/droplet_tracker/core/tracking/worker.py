"""
Droplet tracking engine.

Runs the per-frame loop: detect blobs, step the track registry, and hand the
frame's detections to the droplet accumulator. Processing is strictly
sequential; a stop request takes effect between frames.
"""

import logging
import time

from ...config import get_default_params
from ...utils.video_io import iter_frames
from ..detectors.blob import BlobDetector
from ..droplets import DropletAccumulator
from ..errors import AssignmentFailure, InvalidInput
from .registry import TrackRegistry

logger = logging.getLogger(__name__)


class DropletTrackingWorker:
    """
    Orchestrates detection, tracking and droplet accumulation for one stream.
    """

    def __init__(self, params=None, detector=None, skip_bad_frames=None):
        """
        Args:
            params (dict, optional): Overrides merged over the default params
            detector (optional): Detection source with a
                ``detect(frame, frame_count) -> (mask, detections)`` method.
                Defaults to a BlobDetector built from params.
            skip_bad_frames (bool, optional): Log and skip frames that raise
                InvalidInput or AssignmentFailure instead of propagating.
                Defaults to the SKIP_BAD_FRAMES param.
        """
        self.parameters = get_default_params()
        if params:
            self.parameters.update(params)

        self.detector = detector if detector is not None else BlobDetector(self.parameters)
        self.registry = TrackRegistry(self.parameters)
        self.accumulator = DropletAccumulator(self.parameters)

        if skip_bad_frames is None:
            skip_bad_frames = self.parameters.get("SKIP_BAD_FRAMES", False)
        self.skip_bad_frames = bool(skip_bad_frames)
        self.include_new_tracks = bool(self.parameters.get("DROPLET_INCLUDE_NEW_TRACKS", True))

        self.frame_count = 0
        self.skipped_frames = []
        self._stop_requested = False

    def get_current_params(self):
        return dict(self.parameters)

    def stop(self):
        """Request the frame loop to stop before the next frame."""
        self._stop_requested = True

    @property
    def droplets(self):
        return self.accumulator.droplets

    @property
    def tracks(self):
        return self.registry.get_tracks()

    def process_frame(self, frame):
        """Detect blobs in `frame` and run one tracking step on them."""
        _, detections = self.detector.detect(frame, self.frame_count + 1)
        return self.process_detections(frame, detections)

    def process_detections(self, frame, detections):
        """
        Run one tracking step on detections that belong to `frame`.

        Returns:
            TrackingOutcome, or None when the frame was skipped.
        """
        self.frame_count += 1
        frame_id = self.frame_count
        detections = list(detections)
        height, width = frame.shape[:2]

        try:
            outcome = self.registry.step(detections, frame_size=(width, height))
        except (InvalidInput, AssignmentFailure) as e:
            if not self.skip_bad_frames:
                raise
            logger.warning(f"Frame {frame_id}: skipped ({e})")
            self.skipped_frames.append(frame_id)
            return None

        if self.include_new_tracks:
            candidates = detections
        else:
            candidates = [detections[i] for i in outcome.matched_detections]

        added = self.accumulator.observe(frame, frame_id, candidates)
        if added:
            logger.debug(f"Frame {frame_id}: recorded {len(added)} droplet observations")
        return outcome

    def run(self, frames):
        """
        Process frames until the iterable is exhausted or stop() is called.

        Args:
            frames (iterable): BGR frames in stream order

        Returns:
            tuple: Droplet records, in the order they were recorded
        """
        self._stop_requested = False
        start_time = time.time()
        logger.info("Droplet tracking started")

        for frame in frames:
            if self._stop_requested:
                logger.info(f"Stop requested after {self.frame_count} frames")
                break
            self.process_frame(frame)

        elapsed = time.time() - start_time
        n_ids = len(self.accumulator.group_by_id())
        logger.info(
            f"Droplet tracking finished: {self.frame_count} frames in {elapsed:.1f}s, "
            f"{len(self.accumulator)} droplet records, {n_ids} droplets, "
            f"{len(self.registry)} live tracks"
        )
        if self.skipped_frames:
            logger.warning(f"Skipped {len(self.skipped_frames)} frames: {self.skipped_frames}")
        return self.accumulator.droplets


def detect_droplets(video_path, area_threshold=None, filtering=None, params=None):
    """
    Track droplets through a video file.

    Args:
        video_path (str): Path to the video
        area_threshold (float, optional): Minimum droplet area in pixels
            (default: DROPLET_AREA_THRESHOLD, 250000)
        filtering (bool, optional): Apply morphological cleanup to the
            foreground mask (default: ENABLE_FILTERING, False)
        params (dict, optional): Further parameter overrides

    Returns:
        tuple: Droplet records for every frame where a droplet is in full view
    """
    overrides = dict(params or {})
    if area_threshold is not None:
        overrides["DROPLET_AREA_THRESHOLD"] = area_threshold
    if filtering is not None:
        overrides["ENABLE_FILTERING"] = filtering

    worker = DropletTrackingWorker(overrides)
    logger.info(f"Detecting droplets in {video_path}")
    return worker.run(frame for frame, _ in iter_frames(video_path))
