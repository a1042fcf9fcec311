"""Motion filters."""

from .kalman import KalmanTrackFilter

__all__ = ["KalmanTrackFilter"]
