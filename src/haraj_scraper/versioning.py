"""Scraper version resolution helpers."""

from __future__ import annotations

import os

VERSION_ENV_VAR = "HARAJ_SCRAPER_VERSION"


def get_scraper_version(script_name: str, script_version: str) -> str:
    """``"<script>:<version>"`` unless overridden by ``HARAJ_SCRAPER_VERSION``."""

    return os.getenv(VERSION_ENV_VAR) or f"{script_name}:{script_version}"


__all__ = ["VERSION_ENV_VAR", "get_scraper_version"]
