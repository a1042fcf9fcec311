#!/usr/bin/env python3
"""
Command-line entry point for the Droplet Tracker.

Runs one of the detection methods over a video file and prints a summary of
the droplets (or plugs) that were found.
"""

import argparse
import logging
import os
import sys
from dataclasses import replace

import numpy as np

from ..config import get_default_params, load_params
from ..core.detectors.frame_metrics import (
    entropy_detection_from_video,
    template_detection_from_video,
)
from ..core.isolation import isolate_plugs
from ..core.tracking.worker import detect_droplets

METHODS = ("tracking", "entropy", "template")


def setup_logging(log_level=logging.INFO):
    """Set up console logging for the droplet tracker."""
    handlers = [logging.StreamHandler(sys.stdout)]

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.info("Droplet Tracker starting up...")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Working directory: {os.getcwd()}")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Droplet Tracker - isolate and track droplets in 2-phase flow videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  droplet-tracker sample1.avi                          # Track droplets
  droplet-tracker sample1.avi --area-threshold 5000    # Smaller droplets
  droplet-tracker sample1.avi --method entropy         # Entropy plug detector
  droplet-tracker sample1.avi --method template --isolate
  droplet-tracker sample1.avi --config params.json --log-level DEBUG
        """,
    )

    parser.add_argument("video", help="Path to the video file")

    parser.add_argument(
        "--method",
        choices=METHODS,
        default="tracking",
        help="Detection method (default: tracking)",
    )

    parser.add_argument(
        "--area-threshold",
        type=float,
        help="Minimum droplet area in pixels (default: 250000)",
    )

    parser.add_argument(
        "--filter",
        action="store_true",
        help="Clean the foreground mask with morphological filtering (slower)",
    )

    parser.add_argument(
        "--candidate-ratio",
        type=float,
        help="Candidate ratio for the entropy/template detectors",
    )

    parser.add_argument(
        "--isolate",
        action="store_true",
        help="Isolate plugs from the background and drop frames without a full plug "
        "(entropy/template methods only)",
    )

    parser.add_argument("--config", type=str, help="JSON file with parameter overrides")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )

    parser.add_argument("--version", action="version", version="Droplet Tracker 1.0.0")

    args = parser.parse_args(argv)
    if args.isolate and args.method == "tracking":
        parser.error("--isolate requires --method entropy or --method template")
    return args


def build_params(args):
    """Merge config file and command line overrides into one params dict."""
    params = load_params(args.config) if args.config else get_default_params()
    if args.area_threshold is not None:
        params["DROPLET_AREA_THRESHOLD"] = args.area_threshold
    if args.filter:
        params["ENABLE_FILTERING"] = True
    if args.candidate_ratio is not None:
        params["ENTROPY_CANDIDATE_RATIO"] = args.candidate_ratio
        params["TEMPLATE_CANDIDATE_RATIO"] = args.candidate_ratio
    return params


def summarize(records, id_attr):
    """One line per id: frame range and number of records."""
    groups = {}
    for rec in records:
        groups.setdefault(getattr(rec, id_attr), []).append(rec.frame_id)

    lines = []
    for rec_id, frame_ids in groups.items():
        lines.append(
            f"{rec_id}: frames {min(frame_ids)}-{max(frame_ids)} ({len(frame_ids)} records)"
        )
    return lines


def isolate(plugs, params):
    """Replace each plug frame by its isolated version, dropping empty ones."""
    if not plugs:
        return []
    frames = np.stack([p.frame for p in plugs])
    isolated, kept = isolate_plugs(
        frames,
        labels=list(range(len(plugs))),
        close_radius=params["ISOLATION_CLOSE_RADIUS"],
        open_length=params["ISOLATION_OPEN_LENGTH"],
        min_entropy=params["ISOLATION_MIN_ENTROPY"],
    )
    return [replace(plugs[i], frame=frame) for i, frame in zip(kept, isolated)]


def run(args, params):
    """Run the selected method and return (records, id attribute name)."""
    if args.method == "tracking":
        return detect_droplets(args.video, params=params), "id"

    if args.method == "entropy":
        plugs = entropy_detection_from_video(args.video, params["ENTROPY_CANDIDATE_RATIO"])
    else:
        plugs = template_detection_from_video(args.video, params["TEMPLATE_CANDIDATE_RATIO"])

    if args.isolate:
        plugs = isolate(plugs, params)
    return plugs, "plug_id"


def main(argv=None):
    """
    Application entry point.

    Returns:
        int: Process exit code
    """
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level.upper())
    setup_logging(log_level=log_level)
    logger = logging.getLogger(__name__)

    try:
        params = build_params(args)
        records, id_attr = run(args, params)
    except (OSError, ValueError, RuntimeError) as e:
        logger.error(f"Droplet detection failed: {e}")
        print(f"Error: {e}")
        return 1

    lines = summarize(records, id_attr)
    label = "Droplet" if id_attr == "id" else "Plug"
    print(f"Found {len(lines)} {label.lower()}s in {len(records)} frames")
    for line in lines:
        print(f"  {label} {line}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
