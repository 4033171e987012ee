#!/usr/bin/env python3
"""
SpecTap - Contract-driven API server

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/spectap/cli.py

Usage:
    python spectap-server.py serve examples/weather.yaml --mode mock --port 8080

For more information, see DESIGN.md
"""

import sys
from pathlib import Path

# Add src to the path when running from a checkout
sys.path.insert(0, str(Path(__file__).parent / "src"))

from spectap.cli import main

if __name__ == '__main__':
    main()
