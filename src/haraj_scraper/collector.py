"""Incremental collection over a progressively loading listing page."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Protocol

from .dom import DocumentTree
from .extract import extract
from .logging import jlog
from .models import AdRecord, identity_key, prefer_observation
from .urls import DEFAULT_SITE_HOST

DEFAULT_MAX_PASSES = 8
DEFAULT_PASS_DELAY_S = 1.2


class SnapshotSource(Protocol):
    """A live page that can be snapshotted and asked to load more content."""

    async def get_snapshot(self) -> DocumentTree: ...

    async def advance(self) -> None: ...

    async def request_more(self) -> bool: ...


def merge_batch(acc: Mapping[str, AdRecord], batch: Iterable[AdRecord]) -> dict[str, AdRecord]:
    """Fold one pass's records into the run's accumulator (returns a new dict)."""

    merged = dict(acc)
    for record in batch:
        key = identity_key(record)
        merged[key] = prefer_observation(merged.get(key), record)
    return merged


async def collect(
    source: SnapshotSource,
    max_passes: int = DEFAULT_MAX_PASSES,
    inter_pass_delay: float = DEFAULT_PASS_DELAY_S,
    *,
    site_host: str = DEFAULT_SITE_HOST,
    idle_passes: int = 0,
    deadline: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> list[AdRecord]:
    """Run up to ``max_passes`` extract/merge/advance passes against ``source``.

    Passes run strictly one after another. ``idle_passes`` > 0 stops early after
    that many consecutive passes without a new identity key; 0 keeps the fixed
    pass count. ``deadline`` (seconds) bounds the whole loop, including a hung
    snapshot or sleep, and whatever has been collected so far is returned.
    """

    started = clock()
    acc: dict[str, AdRecord] = {}
    done = 0
    idle = 0
    bound = asyncio.timeout(deadline)
    try:
        async with bound:
            for pass_no in range(1, max_passes + 1):
                if deadline is not None and clock() - started >= deadline:
                    jlog("warning", event="collect_deadline", passes=done, total=len(acc), deadline_s=deadline)
                    break

                snapshot = await source.get_snapshot()
                batch = extract(snapshot, site_host=site_host)
                before = len(acc)
                acc = merge_batch(acc, batch)
                done = pass_no
                added = len(acc) - before
                jlog("info", event="collect_pass", pass_no=pass_no, batch=len(batch), new=added, total=len(acc))

                idle = 0 if added else idle + 1
                if idle_passes and idle >= idle_passes:
                    jlog("info", event="collect_idle_stop", pass_no=pass_no, idle_passes=idle, total=len(acc))
                    break
                if pass_no == max_passes:
                    break

                await source.advance()
                await sleep(inter_pass_delay)
                clicked = await source.request_more()
                if clicked:
                    jlog("info", event="request_more", pass_no=pass_no)
                await sleep(inter_pass_delay)
    except TimeoutError:
        if not bound.expired():
            raise
        jlog("warning", event="collect_deadline", passes=done, total=len(acc), deadline_s=deadline)

    return list(acc.values())


__all__ = ["DEFAULT_MAX_PASSES", "DEFAULT_PASS_DELAY_S", "SnapshotSource", "collect", "merge_batch"]
