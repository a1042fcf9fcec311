"""Test configuration: make ``droplet_tracker`` and ``tests.helpers`` importable
without installing the package."""

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

for path in (REPO_ROOT / "src", REPO_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
