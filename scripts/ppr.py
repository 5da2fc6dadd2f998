#!/usr/bin/env python3
"""
CLI launcher for running from a checkout without installing.
Usage:
  python scripts/ppr.py list-themes
  python scripts/ppr.py generate --theme nord --template geometric-simple.svg
"""
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ppr.cli import main

if __name__ == "__main__":
    sys.exit(main())
