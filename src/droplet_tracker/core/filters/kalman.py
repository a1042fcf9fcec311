"""
Constant-velocity Kalman filter for droplet centroids.

State vector is [x, vx, y, vy]; the filter observes [x, y].
Process and measurement noise are fixed at construction.
"""

import logging

import numpy as np

from ..errors import InvalidInput

logger = logging.getLogger(__name__)


def _as_centroid(value):
    """Return a finite (2,) float array or raise InvalidInput."""
    try:
        c = np.asarray(value, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Centroid is not numeric: {value!r}") from e
    if c.shape != (2,) or not np.all(np.isfinite(c)):
        raise InvalidInput(f"Centroid must be two finite values, got {value!r}")
    return c


class KalmanTrackFilter:
    """
    Kalman filter tracking one droplet centroid with a constant-velocity model.
    """

    dim_s = 4
    dim_m = 2

    def __init__(
        self,
        initial_location,
        initial_error=(200.0, 50.0),
        motion_noise=(100.0, 25.0),
        measurement_noise=100.0,
    ):
        """
        Args:
            initial_location: (x, y) centroid the filter is seeded at.
            initial_error: Initial covariance (location, velocity) per axis.
            motion_noise: Process noise (location, velocity) per axis.
            measurement_noise: Variance of each measured coordinate.
        """
        x0, y0 = _as_centroid(initial_location)
        loc_err, vel_err = (float(v) for v in initial_error)
        loc_q, vel_q = (float(v) for v in motion_noise)

        self.X = np.array([x0, 0.0, y0, 0.0], dtype=np.float64)
        self.P = np.diag([loc_err, vel_err, loc_err, vel_err])
        self.Q = np.diag([loc_q, vel_q, loc_q, vel_q])
        self.R = np.eye(self.dim_m) * float(measurement_noise)

        # Transition matrix F: x(t+1) = x(t) + vx(t), same for y
        self.F = np.array(
            [
                [1, 1, 0, 0],
                [0, 1, 0, 0],
                [0, 0, 1, 1],
                [0, 0, 0, 1],
            ],
            dtype=np.float64,
        )

        # Measurement matrix H
        self.H = np.array([[1, 0, 0, 0], [0, 0, 1, 0]], dtype=np.float64)

        self.I = np.eye(self.dim_s)

    @property
    def location(self):
        """Current centroid estimate (x, y)."""
        return self.H @ self.X

    @property
    def velocity(self):
        return self.X[[1, 3]].copy()

    def get_state(self):
        """Snapshot of (state, covariance) for rollback."""
        return self.X.copy(), self.P.copy()

    def set_state(self, state):
        X, P = state
        self.X = np.array(X, dtype=np.float64)
        self.P = np.array(P, dtype=np.float64)

    def predict(self):
        """Advance one frame and return the predicted centroid."""
        self.X = self.F @ self.X
        self.P = self.F @ self.P @ self.F.T + self.Q
        return self.location

    def correct(self, measurement):
        """Update the state with an observed centroid."""
        z = _as_centroid(measurement)

        # Innovation
        y = z - (self.H @ self.X)
        S = self.H @ self.P @ self.H.T + self.R
        K = self.P @ self.H.T @ np.linalg.inv(S)

        self.X = self.X + K @ y

        # Joseph form keeps P symmetric positive-definite
        IKH = self.I - (K @ self.H)
        self.P = IKH @ self.P @ IKH.T + (K @ self.R @ K.T)
        return self.location

    def innovation_covariance(self):
        return self.H @ self.P @ self.H.T + self.R

    def distance(self, centroids):
        """
        Normalized distance from the current state to each candidate centroid.

        The distance is the squared Mahalanobis distance of the innovation plus
        log|S|, so tracks with large uncertainty pay a penalty even for a
        perfect hit.

        Args:
            centroids: (M, 2) array-like of candidate centroids.

        Returns:
            np.ndarray: (M,) distances. Larger means a less likely match.
        """
        c = np.asarray(centroids, dtype=np.float64)
        if c.size == 0:
            return np.zeros(0, dtype=np.float64)
        c = c.reshape(-1, self.dim_m)
        if not np.all(np.isfinite(c)):
            raise InvalidInput("Candidate centroids must be finite")

        S = self.innovation_covariance()
        S_inv = np.linalg.inv(S)
        _, logdet = np.linalg.slogdet(S)

        diff = c - self.location
        maha = np.einsum("ij,jk,ik->i", diff, S_inv, diff)
        return maha + logdet
