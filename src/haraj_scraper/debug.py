"""Debug artifact helpers (snapshot HTML dumps, traces)."""

from __future__ import annotations

import os

from .logging import jlog

DEBUG_DIR = "media/debug"


def ensure_debug_dir() -> str:
    os.makedirs(DEBUG_DIR, exist_ok=True)
    return DEBUG_DIR


def dump_snapshot_html(html: str, filename: str) -> str | None:
    """Persist one snapshot's HTML under the debug directory (best effort)."""

    try:
        path = os.path.join(ensure_debug_dir(), filename)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(html)
        return path
    except OSError as exc:  # pragma: no cover - logging only
        jlog("error", event="debug_save_html_error", filename=filename, error=str(exc))
        return None


__all__ = ["DEBUG_DIR", "dump_snapshot_html", "ensure_debug_dir"]
