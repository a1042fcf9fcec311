"""
Tracking parameters.

Components take a flat ``params`` dict with UPPER_SNAKE_CASE keys. This module
holds the defaults and loads overrides from JSON config files.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PARAMS = {
    # Detection source
    "BACKGROUND_NUM_GAUSSIANS": 3,
    "BACKGROUND_TRAINING_FRAMES": 40,
    "BACKGROUND_RATIO": 0.5,
    "MIN_BLOB_AREA": 400,
    "ENABLE_FILTERING": False,
    "OPEN_KERNEL_SIZE": (20, 20),  # (rows, cols)
    "CLOSE_KERNEL_SIZE": (30, 30),
    # Kalman model: (location, velocity) per axis
    "KALMAN_INITIAL_ERROR": (200.0, 50.0),
    "KALMAN_MOTION_NOISE": (100.0, 25.0),
    "KALMAN_MEASUREMENT_NOISE": 100.0,
    # Assignment and track lifecycle
    "COST_OF_NON_ASSIGNMENT": 20.0,
    "TRACK_AGE_THRESHOLD": 8,
    "TRACK_VISIBILITY_THRESHOLD": 0.6,
    "TRACK_INVISIBLE_FOR_TOO_LONG": 20,
    # Droplet accumulation
    "DROPLET_AREA_THRESHOLD": 250000,
    "DROPLET_FRAME_GAP": 3,
    "DROPLET_INCLUDE_NEW_TRACKS": True,
    "SKIP_BAD_FRAMES": False,
    # Whole-frame plug detectors
    "ENTROPY_CANDIDATE_RATIO": 0.99,
    "TEMPLATE_CANDIDATE_RATIO": 1.1,
    # Plug isolation
    "ISOLATION_CLOSE_RADIUS": 4,
    "ISOLATION_OPEN_LENGTH": 50,
    "ISOLATION_MIN_ENTROPY": 1.0,
}

_TUPLE_KEYS = {
    "OPEN_KERNEL_SIZE",
    "CLOSE_KERNEL_SIZE",
    "KALMAN_INITIAL_ERROR",
    "KALMAN_MOTION_NOISE",
}


def get_default_params():
    """Return a fresh copy of the default parameters."""
    return dict(DEFAULT_PARAMS)


def load_params(config_path):
    """
    Load parameters from a JSON file and merge them over the defaults.

    Args:
        config_path (str or Path): JSON file holding an object of overrides

    Returns:
        dict: Complete parameter set

    Raises:
        ValueError: if the file is not a JSON object or has unknown keys
    """
    path = Path(config_path)
    with open(path, "r", encoding="utf-8") as f:
        cfg = json.load(f)

    if not isinstance(cfg, dict):
        raise ValueError(f"Config {path} must contain a JSON object")

    unknown = sorted(set(cfg) - set(DEFAULT_PARAMS))
    if unknown:
        raise ValueError(f"Unknown parameters in {path}: {', '.join(unknown)}")

    params = get_default_params()
    for key, value in cfg.items():
        if key in _TUPLE_KEYS:
            value = tuple(value)
        params[key] = value

    logger.info(f"Loaded {len(cfg)} parameter overrides from {path}")
    return params
