"""Pytest configuration for the unibind test suite."""

import sys
from pathlib import Path

# Add src directory to path for unibind imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))
