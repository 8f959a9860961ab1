"""Cross-run reconciliation: merge into the store, prune, rank."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone

from .models import MAX_DIGEST_ITEMS, AdRecord, Digest, Store, StoreEntry, identity_key
from .textnorm import collation_key

UTC = timezone.utc
DEFAULT_TTL = timedelta(hours=24)


def _iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""

    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=UTC)


def merge_ads(store: Mapping[str, StoreEntry], ads: Iterable[AdRecord], now: datetime) -> Store:
    """Merge ``ads`` into a copy of ``store``.

    New keys get ``first_seen_at = last_seen_at = now``. Known keys take the new
    fields and ``last_seen_at``; ``first_seen_at`` is kept and the reply count
    only ever grows.
    """

    stamp = _iso(now)
    merged: Store = dict(store)
    for ad in ads:
        key = identity_key(ad)
        prev = merged.get(key)
        if prev is None:
            merged[key] = StoreEntry(record=ad, first_seen_at=stamp, last_seen_at=stamp, latest_reply_count=ad.reply_count)
            continue
        merged[key] = StoreEntry(
            record=ad,
            first_seen_at=prev.first_seen_at or stamp,
            last_seen_at=stamp,
            latest_reply_count=max(prev.latest_reply_count, ad.reply_count),
        )
    return merged


def last_observed(entry: StoreEntry) -> datetime | None:
    return parse_timestamp(entry.last_seen_at) or parse_timestamp(entry.first_seen_at)


def prune(store: Mapping[str, StoreEntry], now: datetime, ttl: timedelta = DEFAULT_TTL) -> Store:
    """Drop entries last observed before ``now - ttl`` or with no usable timestamp."""

    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    cutoff = now - ttl
    kept: Store = {}
    for key, entry in store.items():
        seen = last_observed(entry)
        if seen is not None and seen >= cutoff:
            kept[key] = entry
    return kept


def rank(entries: Iterable[StoreEntry], top_n: int = MAX_DIGEST_ITEMS) -> list[StoreEntry]:
    """Most replies first; ties by collation order of the description."""

    limit = max(0, min(top_n, MAX_DIGEST_ITEMS))
    ordered = sorted(entries, key=lambda e: (-e.latest_reply_count, collation_key(e.description)))
    return ordered[:limit]


def reconcile(
    store: Mapping[str, StoreEntry],
    new_ads: Iterable[AdRecord],
    now: datetime,
    ttl: timedelta = DEFAULT_TTL,
    top_n: int = MAX_DIGEST_ITEMS,
) -> tuple[Store, Digest]:
    """Merge, prune and rank. The input ``store`` is not modified."""

    pruned = prune(merge_ads(store, new_ads, now), now, ttl)
    digest = Digest(updated_at=_iso(now), items=rank(pruned.values(), top_n))
    return pruned, digest


__all__ = ["DEFAULT_TTL", "last_observed", "merge_ads", "parse_timestamp", "prune", "rank", "reconcile"]
