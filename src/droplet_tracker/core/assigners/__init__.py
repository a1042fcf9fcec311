"""Detection-to-track assignment."""

from .hungarian import TrackAssigner, solve_assignment

__all__ = ["TrackAssigner", "solve_assignment"]
