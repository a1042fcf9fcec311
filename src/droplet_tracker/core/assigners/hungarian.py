"""
Track assignment utilities for droplet tracking.

This module handles the data association between detections and tracks: it
builds the track-by-detection cost matrix from the Kalman filters and solves
the rectangular assignment problem with a cost of non-assignment.
"""

import logging

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..errors import AssignmentFailure

logger = logging.getLogger(__name__)


def solve_assignment(cost, reject_cost):
    """
    Minimum-cost matching of tracks (rows) to detections (columns).

    The cost matrix is padded to a square (N+M) x (N+M) problem. Every track
    gets a dummy column and every detection a dummy row, each costing exactly
    `reject_cost`; all other dummy entries are forbidden and the
    dummy-to-dummy block is free. A real pairing is therefore kept only when it
    is cheaper than leaving both sides unmatched.

    Args:
        cost (array-like): (N_tracks x N_detections) cost matrix
        reject_cost (float): Cost of leaving a track or a detection unmatched

    Returns:
        tuple: (matches, unmatched_tracks, unmatched_detections) where
            - matches: list of (track_index, detection_index), sorted by track
            - unmatched_tracks: sorted list of track indices
            - unmatched_detections: sorted list of detection indices

    Raises:
        AssignmentFailure: on a non-2D matrix, non-finite costs, or an invalid
            reject cost.
    """
    try:
        cost = np.asarray(cost, dtype=np.float64)
        reject_cost = float(reject_cost)
    except (TypeError, ValueError) as e:
        raise AssignmentFailure(f"Cost matrix is not numeric: {e}") from e

    if cost.ndim != 2:
        raise AssignmentFailure(f"Cost matrix must be 2-D, got shape {cost.shape}")
    if not np.isfinite(reject_cost) or reject_cost < 0:
        raise AssignmentFailure(f"Cost of non-assignment must be finite and >= 0, got {reject_cost}")

    n_tracks, n_dets = cost.shape

    # Handle edge cases with empty sides
    if n_tracks == 0 or n_dets == 0:
        return [], list(range(n_tracks)), list(range(n_dets))

    if not np.all(np.isfinite(cost)):
        raise AssignmentFailure("Cost matrix contains non-finite values")

    size = n_tracks + n_dets
    padded = np.full((size, size), np.inf, dtype=np.float64)
    padded[:n_tracks, :n_dets] = cost

    tracks = np.arange(n_tracks)
    dets = np.arange(n_dets)
    padded[tracks, n_dets + tracks] = reject_cost  # track left unmatched
    padded[n_tracks + dets, dets] = reject_cost  # detection left unmatched
    padded[n_tracks:, n_dets:] = 0.0

    try:
        rows, cols = linear_sum_assignment(padded)
    except ValueError as e:
        raise AssignmentFailure(f"Assignment problem could not be solved: {e}") from e

    matches, unmatched_tracks, unmatched_dets = [], [], []
    for r, c in zip(rows, cols):
        r, c = int(r), int(c)
        if r < n_tracks and c < n_dets:
            matches.append((r, c))
        elif r < n_tracks:
            unmatched_tracks.append(r)
        elif c < n_dets:
            unmatched_dets.append(c)

    matches.sort()
    unmatched_tracks.sort()
    unmatched_dets.sort()
    return matches, unmatched_tracks, unmatched_dets


class TrackAssigner:
    """
    Assigns detections to tracks using the Kalman gating distance and the
    Hungarian algorithm.
    """

    def __init__(self, params=None):
        """
        Initialize track assigner.

        Args:
            params (dict): Assignment parameters (COST_OF_NON_ASSIGNMENT)
        """
        self.params = params or {}
        self.cost_of_non_assignment = float(self.params.get("COST_OF_NON_ASSIGNMENT", 20.0))

    def compute_cost_matrix(self, filters, centroids):
        """
        Compute cost matrix for track-detection assignment.

        Args:
            filters (list): One KalmanTrackFilter per track, already predicted
            centroids (array-like): (M, 2) detection centroids

        Returns:
            np.ndarray: Cost matrix (N_tracks x N_detections)
        """
        centroids = np.asarray(centroids, dtype=np.float64).reshape(-1, 2)
        cost = np.zeros((len(filters), len(centroids)), dtype=np.float64)
        if len(centroids) == 0:
            return cost

        for i, kf in enumerate(filters):
            cost[i, :] = kf.distance(centroids)
        return cost

    def assign(self, cost):
        """Solve the assignment for a cost matrix built by compute_cost_matrix."""
        matches, unmatched_tracks, unmatched_dets = solve_assignment(
            cost, self.cost_of_non_assignment
        )
        for r, c in matches:
            logger.debug(f"Assignment: Track {r} -> Detection {c} (cost={cost[r][c]:.2f})")
        if unmatched_tracks or unmatched_dets:
            logger.debug(
                f"Unassigned tracks={unmatched_tracks}, unassigned detections={unmatched_dets}"
            )
        return matches, unmatched_tracks, unmatched_dets
