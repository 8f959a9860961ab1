"""Structured JSON logging for the listing scraper.

Every event is one JSON object on the ``scraper`` logger. Fields come from, in
increasing precedence: the global context (``set_global_context``), the active
``logging_context`` blocks, then the call itself.
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

UTC = getattr(datetime, "UTC", timezone.utc)
LOG_LEVEL_ENV_VAR = "HARAJ_LOG_LEVEL"
_LOGGER_NAME = "scraper"
_configured = False
_base_context: dict[str, Any] = {}
_context_stack: list[dict[str, Any]] = []


def configure_logging(level: int | None = None) -> None:
    """Install the root handler once; the level defaults to ``$HARAJ_LOG_LEVEL`` or INFO."""

    global _configured
    if _configured:
        return
    if level is None:
        level = logging.getLevelName(os.getenv(LOG_LEVEL_ENV_VAR, "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    _configured = True


def set_global_context(**fields: Any) -> None:
    _base_context.update({k: v for k, v in fields.items() if v is not None})


@contextmanager
def logging_context(**fields: Any) -> Iterator[None]:
    _context_stack.append({k: v for k, v in fields.items() if v is not None})
    try:
        yield
    finally:
        _context_stack.pop()


def _merged_context() -> dict[str, Any]:
    merged: dict[str, Any] = dict(_base_context)
    for ctx in _context_stack:
        merged.update(ctx)
    return merged


def jlog(level: str, /, **fields: Any) -> None:
    log = logging.getLogger(_LOGGER_NAME)
    record = {"ts": datetime.now(UTC).isoformat(), **_merged_context(), **fields}
    getattr(log, level.lower())(json.dumps(record, ensure_ascii=False, sort_keys=True, default=str))


def adlog(event: str, *, key: str, link: str, **kw: Any) -> None:
    """Ad-scoped record keyed by the ad's identity key."""

    jlog("info", event=event, key=key, link=link, **kw)


@contextmanager
def timed(event: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """Log ``event`` with ``elapsed_s`` when the block exits.

    The yielded dict can be filled with result fields inside the block. Nothing
    is logged if the block raises; the caller reports the failure.
    """

    extra: dict[str, Any] = {}
    started = time.monotonic()
    yield extra
    jlog("info", event=event, elapsed_s=round(time.monotonic() - started, 3), **fields, **extra)


__all__ = ["adlog", "configure_logging", "jlog", "logging_context", "set_global_context", "timed"]
