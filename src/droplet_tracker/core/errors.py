"""
Exceptions raised by the droplet tracking core.
"""


class DropletTrackerError(Exception):
    """Base class for all tracking errors."""


class InvalidInput(DropletTrackerError, ValueError):
    """A detection or centroid is malformed (negative area, bbox outside the
    frame, non-finite coordinates)."""


class AssignmentFailure(DropletTrackerError, RuntimeError):
    """The assignment step could not be solved for the current frame."""


class VideoOpenError(DropletTrackerError, IOError):
    """A video file could not be opened for reading."""
