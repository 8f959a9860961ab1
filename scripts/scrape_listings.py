#!/usr/bin/env python3
"""CLI shim for the listing scraper."""
from __future__ import annotations

import sys

from haraj_scraper.pipeline import main

if __name__ == "__main__":
    sys.exit(main())
