#!/usr/bin/env python3
"""Entry point for PyInstaller."""

import sys
import os

# Make the package importable when frozen or run from a checkout
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dividend_tracker import cli

if __name__ == "__main__":
    cli.main()
