"""
Track registry: owns the live tracks and evolves them one frame at a time.

Each call to ``TrackRegistry.step`` runs, in order: predict, assign, correct
matched tracks, age unmatched tracks, prune lost tracks, create new tracks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..assigners.hungarian import TrackAssigner
from ..errors import AssignmentFailure
from ..filters.kalman import KalmanTrackFilter
from ..types import BBox, Detection, TrackingOutcome

logger = logging.getLogger(__name__)


@dataclass
class Track:
    """A persistent hypothesis about one moving droplet."""

    id: int
    bbox: BBox
    filter: KalmanTrackFilter
    age: int = 1
    total_visible_count: int = 1
    consecutive_invisible_count: int = 0

    @property
    def visibility(self) -> float:
        return self.total_visible_count / self.age if self.age else 0.0

    @property
    def centroid(self) -> Tuple[float, float]:
        x, y = self.filter.location
        return float(x), float(y)


def _round_half_away(v):
    return float(np.sign(v) * np.floor(np.abs(v) + 0.5))


def _predicted_bbox(bbox: BBox, centroid) -> BBox:
    """Shift a bbox so that its center sits on the predicted centroid.

    Coordinates round half away from zero.
    """
    _, _, w, h = bbox
    x = _round_half_away(_round_half_away(centroid[0]) - w / 2.0)
    y = _round_half_away(_round_half_away(centroid[1]) - h / 2.0)
    return (x, y, w, h)


class TrackRegistry:
    """
    Owns the set of live tracks, keyed by track id.

    Lifecycle constants are read from ``params``:
        COST_OF_NON_ASSIGNMENT (20), TRACK_AGE_THRESHOLD (8),
        TRACK_VISIBILITY_THRESHOLD (0.6), TRACK_INVISIBLE_FOR_TOO_LONG (20),
        KALMAN_INITIAL_ERROR ((200, 50)), KALMAN_MOTION_NOISE ((100, 25)),
        KALMAN_MEASUREMENT_NOISE (100).
    """

    def __init__(self, params: Optional[dict] = None):
        self.params = params or {}
        self.age_threshold = int(self.params.get("TRACK_AGE_THRESHOLD", 8))
        self.visibility_threshold = float(self.params.get("TRACK_VISIBILITY_THRESHOLD", 0.6))
        self.invisible_for_too_long = int(self.params.get("TRACK_INVISIBLE_FOR_TOO_LONG", 20))

        self.kalman_initial_error = tuple(self.params.get("KALMAN_INITIAL_ERROR", (200.0, 50.0)))
        self.kalman_motion_noise = tuple(self.params.get("KALMAN_MOTION_NOISE", (100.0, 25.0)))
        self.kalman_measurement_noise = float(self.params.get("KALMAN_MEASUREMENT_NOISE", 100.0))

        self.assigner = TrackAssigner(self.params)
        self.tracks: Dict[int, Track] = {}
        self.next_id = 1

    @property
    def cost_of_non_assignment(self) -> float:
        return self.assigner.cost_of_non_assignment

    def __len__(self) -> int:
        return len(self.tracks)

    def get_tracks(self) -> List[Track]:
        """Live tracks in creation order."""
        return list(self.tracks.values())

    def step(
        self,
        detections: Sequence[Detection],
        frame_size: Optional[Tuple[int, int]] = None,
    ) -> TrackingOutcome:
        """
        Advance every track by one frame using this frame's detections.

        Args:
            detections: Blobs found in the current frame.
            frame_size: Optional (width, height) used to validate bboxes.

        Returns:
            TrackingOutcome: matches as (track_id, detection_index), plus the
            ids of created, pruned and unmatched tracks.

        Raises:
            InvalidInput: a detection is malformed. No state is changed.
            AssignmentFailure: the cost matrix could not be solved. Predictions
                made for this frame are rolled back before re-raising.
        """
        detections = list(detections)
        for det in detections:
            det.validate(frame_size)

        outcome = TrackingOutcome()
        if not detections and not self.tracks:
            return outcome

        track_ids = list(self.tracks)
        tracks = [self.tracks[tid] for tid in track_ids]
        snapshot = [(t.filter.get_state(), t.bbox) for t in tracks]

        # === PREDICT ===
        for track in tracks:
            predicted = track.filter.predict()
            track.bbox = _predicted_bbox(track.bbox, predicted)

        # === ASSIGN ===
        try:
            centroids = np.array([d.centroid for d in detections], dtype=np.float64)
            cost = self.assigner.compute_cost_matrix([t.filter for t in tracks], centroids)
            matches, unmatched_tracks, unmatched_dets = self.assigner.assign(cost)
        except AssignmentFailure:
            for track, (state, bbox) in zip(tracks, snapshot):
                track.filter.set_state(state)
                track.bbox = bbox
            raise

        # === CORRECT MATCHED ===
        for row, det_idx in matches:
            track = tracks[row]
            det = detections[det_idx]
            track.filter.correct(det.centroid)
            track.bbox = det.bbox
            track.age += 1
            track.total_visible_count += 1
            track.consecutive_invisible_count = 0
            outcome.matches.append((track.id, det_idx))

        # === AGE UNMATCHED ===
        for row in unmatched_tracks:
            track = tracks[row]
            track.age += 1
            track.consecutive_invisible_count += 1
            outcome.unmatched_tracks.append(track.id)

        # === PRUNE ===
        outcome.pruned_tracks = self._delete_lost_tracks()

        # === CREATE ===
        for det_idx in unmatched_dets:
            outcome.new_tracks.append(self._create_track(detections[det_idx]))
        outcome.unmatched_detections = list(unmatched_dets)

        logger.debug(
            f"Registry step: {len(outcome.matches)} matched, {len(outcome.unmatched_tracks)} unmatched, "
            f"{len(outcome.pruned_tracks)} pruned, {len(outcome.new_tracks)} created, "
            f"{len(self.tracks)} live"
        )
        return outcome

    def _is_lost(self, track: Track) -> bool:
        young_and_flaky = (
            track.age < self.age_threshold and track.visibility < self.visibility_threshold
        )
        return young_and_flaky or track.consecutive_invisible_count >= self.invisible_for_too_long

    def _delete_lost_tracks(self) -> List[int]:
        lost = [tid for tid, track in self.tracks.items() if self._is_lost(track)]
        for tid in lost:
            del self.tracks[tid]
        if lost:
            logger.debug(f"Pruned tracks {lost}")
        return lost

    def _create_track(self, det: Detection) -> int:
        kf = KalmanTrackFilter(
            det.centroid,
            initial_error=self.kalman_initial_error,
            motion_noise=self.kalman_motion_noise,
            measurement_noise=self.kalman_measurement_noise,
        )
        track = Track(id=self.next_id, bbox=det.bbox, filter=kf)
        self.tracks[track.id] = track
        self.next_id += 1
        return track.id
