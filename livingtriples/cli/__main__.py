"""
Living Triples CLI entry point.

Usage:
    python -m livingtriples.cli run notes.md data.json --out report.json
    python -m livingtriples.cli merge run1.json run2.json --out merged.json
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
