"""Listing scraper pipeline.

One run:
- opens the listings page in headless Chromium (Playwright),
- collects ads over several scroll / "show more" passes,
- merges them into the persistent store, prunes entries unseen for the TTL,
- writes the store and the ranked digest (most-replied ads first).

Usage (examples)
----------------
python scripts/scrape_listings.py
python scripts/scrape_listings.py --max-passes 12 --idle-passes 3 --deadline-s 90
python scripts/scrape_listings.py --data-dir /var/lib/haraj --top-n 100 --debug-html
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from playwright.async_api import async_playwright

from .collector import DEFAULT_MAX_PASSES, collect
from .logging import adlog, configure_logging, jlog, logging_context, set_global_context, timed
from .models import MAX_DIGEST_ITEMS, AdRecord, Digest, Store, identity_key
from .playwright import (
    CHROMIUM_LAUNCH_ARGS,
    DEFAULT_USER_AGENT,
    DEFAULT_VIEWPORT,
    PageSnapshotSource,
    cleanup_playwright,
    goto_with_retries,
)
from .reconcile import reconcile
from .storage import DEFAULT_DATA_DIR, DIGEST_FILENAME, STORE_FILENAME, load_store, save_run, store_lock
from .urls import DEFAULT_SITE_HOST, DEFAULT_START_URL
from .versioning import get_scraper_version as resolve_version

UTC = timezone.utc

# ============================
# Constants & configuration
# ============================
DEFAULT_PASS_DELAY_MS = 1200
DEFAULT_SETTLE_MS = 1500
DEFAULT_PAGE_TIMEOUT_MS = 120_000
DEFAULT_TTL_HOURS = 24.0

SCRIPT_NAME = "listings"
SCRIPT_VERSION = "2025-11-02.1"


def get_scraper_version() -> str:
    return resolve_version(SCRIPT_NAME, SCRIPT_VERSION)


# ============================
# Argument parsing & validation
# ============================


@dataclass(frozen=True)
class CliArgs:
    url: str
    site_host: str
    store_path: Path
    digest_path: Path
    max_passes: int
    pass_delay_ms: int
    settle_ms: int
    ttl_hours: float
    top_n: int
    idle_passes: int
    deadline_s: float | None
    user_agent: str
    page_timeout_ms: int
    max_retries: int
    retry_base_ms: int
    trace: bool
    debug_html: bool


def validate_args(args: argparse.Namespace) -> None:
    """Reject values that would make a run meaningless."""
    if args.max_passes < 1:
        raise ValueError(f"--max-passes must be >= 1 (got {args.max_passes})")
    if args.ttl_hours <= 0:
        raise ValueError(f"--ttl-hours must be > 0 (got {args.ttl_hours})")
    if args.top_n < 1:
        raise ValueError(f"--top-n must be >= 1 (got {args.top_n})")
    for name in ("pass_delay_ms", "settle_ms", "idle_passes", "max_retries", "retry_base_ms"):
        if getattr(args, name) < 0:
            raise ValueError(f"--{name.replace('_', '-')} must be >= 0")
    if args.deadline_s is not None and args.deadline_s <= 0:
        raise ValueError("--deadline-s must be > 0")
    if args.top_n > MAX_DIGEST_ITEMS:
        jlog("warning", event="top_n_capped", requested=args.top_n, cap=MAX_DIGEST_ITEMS)


def parse_args(argv: Sequence[str] | None = None) -> CliArgs:
    p = argparse.ArgumentParser(description="Collect classified ads and rank them by replies")
    p.add_argument("--url", default=DEFAULT_START_URL, help="Listings page to open")
    p.add_argument("--site-host", default=DEFAULT_SITE_HOST, help="Host ad links must belong to")
    p.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR)
    p.add_argument("--store-path", type=Path, help=f"Defaults to <data-dir>/{STORE_FILENAME}")
    p.add_argument("--digest-path", type=Path, help=f"Defaults to <data-dir>/{DIGEST_FILENAME}")
    p.add_argument("--max-passes", type=int, default=DEFAULT_MAX_PASSES)
    p.add_argument("--pass-delay-ms", type=int, default=DEFAULT_PASS_DELAY_MS)
    p.add_argument("--settle-ms", type=int, default=DEFAULT_SETTLE_MS, help="Wait after navigation before the first pass")
    p.add_argument("--ttl-hours", type=float, default=DEFAULT_TTL_HOURS)
    p.add_argument("--top-n", type=int, default=MAX_DIGEST_ITEMS, help=f"Digest size (capped at {MAX_DIGEST_ITEMS})")
    p.add_argument(
        "--idle-passes",
        type=int,
        default=0,
        help="Stop after this many passes with no new ads (0 = always run --max-passes)",
    )
    p.add_argument("--deadline-s", type=float, help="Wall-clock budget for the collection loop")
    p.add_argument("--user-agent", default=DEFAULT_USER_AGENT)
    p.add_argument("--page-timeout-ms", type=int, default=DEFAULT_PAGE_TIMEOUT_MS)
    p.add_argument("--max-retries", type=int, default=2, help="Navigation retries (default: 2)")
    p.add_argument("--retry-base-ms", type=int, default=500, help="Base backoff in ms for retries (default: 500)")
    p.add_argument("--trace", action="store_true", help="Save a Playwright trace to media/debug/")
    p.add_argument("--debug-html", action="store_true", help="Dump every snapshot to media/debug/")

    ns = p.parse_args(argv)
    validate_args(ns)

    return CliArgs(
        url=ns.url,
        site_host=ns.site_host,
        store_path=ns.store_path or ns.data_dir / STORE_FILENAME,
        digest_path=ns.digest_path or ns.data_dir / DIGEST_FILENAME,
        max_passes=ns.max_passes,
        pass_delay_ms=ns.pass_delay_ms,
        settle_ms=ns.settle_ms,
        ttl_hours=ns.ttl_hours,
        top_n=ns.top_n,
        idle_passes=ns.idle_passes,
        deadline_s=ns.deadline_s,
        user_agent=ns.user_agent,
        page_timeout_ms=ns.page_timeout_ms,
        max_retries=ns.max_retries,
        retry_base_ms=ns.retry_base_ms,
        trace=ns.trace,
        debug_html=ns.debug_html,
    )


# ============================
# Stages
# ============================


async def scrape_listing(args: CliArgs) -> list[AdRecord]:
    """Open the listings page and run the incremental collector against it."""

    async with async_playwright() as pw:
        browser = None
        context = None
        try:
            browser = await pw.chromium.launch(headless=True, args=CHROMIUM_LAUNCH_ARGS)
            context = await browser.new_context(user_agent=args.user_agent, viewport=DEFAULT_VIEWPORT)
            context.set_default_timeout(args.page_timeout_ms)
            if args.trace:
                await context.tracing.start(screenshots=True, snapshots=True, sources=True)

            page = await context.new_page()
            await goto_with_retries(
                page,
                args.url,
                timeout_ms=args.page_timeout_ms,
                max_retries=args.max_retries,
                retry_base_ms=args.retry_base_ms,
            )
            await asyncio.sleep(args.settle_ms / 1000.0)

            source = PageSnapshotSource(page, debug_html=args.debug_html)
            return await collect(
                source,
                args.max_passes,
                args.pass_delay_ms / 1000.0,
                site_host=args.site_host,
                idle_passes=args.idle_passes,
                deadline=args.deadline_s,
            )
        finally:
            await cleanup_playwright(context, browser, args.trace)


def update_store(args: CliArgs, ads: list[AdRecord], now: datetime | None = None) -> tuple[Store, Digest]:
    """Reconcile ``ads`` into the on-disk store and write store + digest."""

    now = now or datetime.now(UTC)
    with store_lock(args.store_path):
        previous = load_store(args.store_path)
        store, digest = reconcile(previous, ads, now, timedelta(hours=args.ttl_hours), args.top_n)

        new_keys: set[str] = set()
        for ad in ads:
            key = identity_key(ad)
            if key not in previous and key not in new_keys:
                new_keys.add(key)
                adlog("ad_first_seen", key=key, link=ad.link, reply_count=ad.reply_count)
        jlog(
            "info",
            event="reconcile_summary",
            collected=len(ads),
            new=len(new_keys),
            pruned=len(previous) + len(new_keys) - len(store),
            store=len(store),
            digest=digest.count,
        )

        save_run(args.store_path, store, args.digest_path, digest)
    return store, digest


async def run(args: CliArgs) -> tuple[Store, Digest]:
    """Execute one collect + reconcile run."""

    with timed("collect_done", url=args.url) as out:
        ads = await scrape_listing(args)
        out["ads"] = len(ads)
    with timed("reconcile_done") as out:
        store, digest = update_store(args, ads)
        out["store"] = len(store)
    jlog("info", event="run_complete", digest=digest.count, store=len(store))
    return store, digest


# ============================
# Entrypoint
# ============================


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint; returns the process exit status."""

    configure_logging()
    set_global_context(app="haraj_scraper", pipeline=SCRIPT_NAME)
    with logging_context(script=SCRIPT_NAME, scraper_version=get_scraper_version()):
        try:
            args = parse_args(argv)
        except ValueError as exc:
            jlog("error", event="invalid_args", error=str(exc))
            return 2
        try:
            store, digest = asyncio.run(run(args))
        except Exception as exc:
            jlog("error", event="run_failed", error=str(exc), error_type=type(exc).__name__)
            return 1
    print(f"Saved {digest.count} top items; store size: {len(store)}")
    return 0


__all__ = ["CliArgs", "get_scraper_version", "main", "parse_args", "run", "scrape_listing", "update_store", "validate_args"]
