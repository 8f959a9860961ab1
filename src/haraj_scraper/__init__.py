"""Classified-ads listing scraper: extraction, incremental collection, ranked digest."""

from .collector import SnapshotSource, collect, merge_batch
from .dom import DocumentTree, Node, element, parse_html
from .extract import extract
from .logging import adlog, jlog
from .models import UNSPECIFIED, AdRecord, Digest, Store, StoreEntry, identity_key, prefer_observation
from .reconcile import merge_ads, prune, rank, reconcile
from .storage import PersistenceError, load_digest, load_store, save_digest, save_store, store_lock
from .textnorm import collation_key, is_arabic, to_ascii_digits, truncate
from .urls import is_ad_link, parse_ad_id
from .versioning import get_scraper_version

__all__ = [
    "AdRecord",
    "adlog",
    "collation_key",
    "collect",
    "Digest",
    "DocumentTree",
    "element",
    "extract",
    "get_scraper_version",
    "identity_key",
    "is_ad_link",
    "is_arabic",
    "jlog",
    "load_digest",
    "load_store",
    "merge_ads",
    "merge_batch",
    "Node",
    "parse_ad_id",
    "parse_html",
    "PersistenceError",
    "prefer_observation",
    "prune",
    "rank",
    "reconcile",
    "save_digest",
    "save_store",
    "SnapshotSource",
    "Store",
    "StoreEntry",
    "store_lock",
    "to_ascii_digits",
    "truncate",
    "UNSPECIFIED",
]
