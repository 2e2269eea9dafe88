"""Pytest configuration for path setup.

The package lives under ``medclient/src``.  When pytest runs against a
checkout that has not been installed, that directory is not on
``sys.path``; this file puts it (and the repository root, for the
``tests.helpers`` fakes) at the front so collection works either way.
"""

from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]

for path in (ROOT, ROOT / "medclient" / "src"):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)
