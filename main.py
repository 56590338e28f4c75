#!/usr/bin/env python3
"""
APE - command resolution for @domain commands and natural-language requests

Development entry point; the installed console script is ``ape``.
"""

import sys
from pathlib import Path

# Add src to path for development
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from ape.cli import main


if __name__ == "__main__":
    sys.exit(main())
