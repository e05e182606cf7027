#!/usr/bin/env python3
"""Convenience runner for the route recorder CLI.

Usage:
    python run.py record --csv drive.csv --name "Morning drive"
"""
import logging
import sys

from route_recorder.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    sys.exit(main())
