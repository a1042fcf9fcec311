"""
Whole-frame plug detectors.

These detectors do not track anything. They score every frame with a single
number, pick the candidate frames relative to the best score in the video and
group runs of consecutive candidates into plugs.

Both detectors make two passes over ``frames``. Lists, arrays and
``utils.video_io.VideoFrames`` are walked twice; any other iterable is read
into a list first.
"""

from __future__ import annotations

import logging
import math
from collections import abc
from typing import Iterable, List, Sequence

import numpy as np

from ...utils.image_processing import corr2, frame_entropy, to_gray
from ...utils.video_io import VideoFrames
from ..types import Plug

logger = logging.getLogger(__name__)


def _reiterable(frames):
    """Return `frames` unchanged if it can be walked twice, else as a list."""
    if isinstance(frames, (abc.Sequence, np.ndarray, VideoFrames)):
        return frames
    return list(frames)


def group_candidate_runs(
    frames: Iterable[np.ndarray],
    scores: Sequence[float],
    is_candidate: Sequence[bool],
) -> List[Plug]:
    """Give consecutive candidate frames the same plug id."""
    plugs: List[Plug] = []
    plug_id = 0
    new_plug = True

    for frame_id, (frame, score, candidate) in enumerate(zip(frames, scores, is_candidate), start=1):
        if candidate:
            if new_plug:
                plug_id += 1
                new_plug = False
            plugs.append(Plug(plug_id=plug_id, frame_id=frame_id, score=float(score), frame=frame))
        else:
            new_plug = True

    return plugs


def entropy_detection(frames: Iterable[np.ndarray], candidate_ratio: float = 0.99) -> List[Plug]:
    """
    Pick frames whose grayscale entropy is close to the maximum.

    A frame is a candidate when its entropy is at least
    ``max_entropy * candidate_ratio``.

    Args:
        frames: BGR frames (any iterable).
        candidate_ratio: Real number on [0, 1].

    Returns:
        List of Plug records with ``score`` set to the frame entropy.

    Raises:
        ValueError: if candidate_ratio is outside [0, 1].
    """
    if not 0.0 <= candidate_ratio <= 1.0:
        raise ValueError("Invalid candidate ratio, must be real on [0,1]")

    frames = _reiterable(frames)
    scores = np.array([frame_entropy(to_gray(f)) for f in frames], dtype=np.float64)
    if scores.size == 0:
        return []

    threshold = scores.max() * candidate_ratio
    plugs = group_candidate_runs(frames, scores, scores >= threshold)
    logger.info(
        f"Entropy detection: {len(scores)} frames, max entropy {scores.max():.3f}, "
        f"{len(plugs)} candidate frames"
    )
    return plugs


def template_detection(frames: Iterable[np.ndarray], candidate_ratio: float = 1.1) -> List[Plug]:
    """
    Pick frames that differ most from the first frame.

    The first frame is the template (the channel without a plug). Every frame
    is scored by its correlation coefficient with the template, and a frame is
    a candidate when its score is at most ``min_corr * candidate_ratio``.
    Frames with an undefined correlation (constant images) are never
    candidates.

    Args:
        frames: BGR frames (any iterable).
        candidate_ratio: How close a frame needs to be to the minimum.

    Returns:
        List of Plug records with ``score`` set to the correlation coefficient.
    """
    if not math.isfinite(candidate_ratio):
        raise ValueError("Invalid candidate ratio, must be finite")

    frames = _reiterable(frames)
    template = None
    scores = []
    for f in frames:
        gray = to_gray(f)
        if template is None:
            template = gray
        scores.append(corr2(template, gray))

    scores = np.array(scores, dtype=np.float64)
    if scores.size == 0 or np.all(np.isnan(scores)):
        return []

    threshold = np.nanmin(scores) * candidate_ratio
    with np.errstate(invalid="ignore"):
        is_candidate = scores <= threshold
    plugs = group_candidate_runs(frames, scores, is_candidate)
    logger.info(
        f"Template detection: {len(scores)} frames, min correlation {np.nanmin(scores):.3f}, "
        f"{len(plugs)} candidate frames"
    )
    return plugs


def entropy_detection_from_video(path, candidate_ratio: float = 0.99) -> List[Plug]:
    """Run entropy_detection over a video file."""
    return entropy_detection(VideoFrames(path), candidate_ratio)


def template_detection_from_video(path, candidate_ratio: float = 1.1) -> List[Plug]:
    """Run template_detection over a video file."""
    return template_detection(VideoFrames(path), candidate_ratio)
