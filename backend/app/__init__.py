"""Huddle backend application.

The realtime core lives in ``src/huddle``; make it importable when the
backend runs from a source checkout without an installed distribution.
"""

from pathlib import Path
import sys

SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.is_dir() and str(SRC_PATH) not in sys.path:
    sys.path.append(str(SRC_PATH))
