"""URL helpers for listing pages: ad-link detection and id parsing."""

from __future__ import annotations

import re
import urllib.parse

DEFAULT_SITE_HOST = "haraj.com.sa"
DEFAULT_START_URL = f"https://{DEFAULT_SITE_HOST}/"

# ASCII digits and ASCII word boundaries only.
RESERVED_PATH_RE = re.compile(r"\b(add|create|new)\b", re.IGNORECASE | re.ASCII)
AD_ID_RE = re.compile(r"/(\d{6,})(?:[/-]|$)", re.ASCII)
_HAS_ID_RE = re.compile(r"\d{6,}", re.ASCII)
AD_URL_RES = (
    re.compile(r"^/?\d{6,}", re.IGNORECASE | re.ASCII),
    re.compile(r"^/?\d{6,}/[^/?#]+", re.IGNORECASE | re.ASCII),
    re.compile(r"/(?:ads?|posts?)/(\d{6,})(?:[/-]|$)", re.IGNORECASE | re.ASCII),
)


def _strip_www(host: str) -> str:
    host = (host or "").lower()
    return host[4:] if host.startswith("www.") else host


def base_for_host(site_host: str) -> str:
    return f"https://{_strip_www(site_host)}/"


def resolve_url(href: str, base: str | None = None, site_host: str = DEFAULT_SITE_HOST) -> str:
    """Return ``href`` as an absolute URL, resolved against ``base``."""

    href = (href or "").strip()
    if href.lower().startswith(("http://", "https://")):
        return href
    return urllib.parse.urljoin(base or base_for_host(site_host), href)


def is_ad_link(href: str, base: str | None = None, site_host: str = DEFAULT_SITE_HOST) -> bool:
    """True when ``href`` points at a single ad on ``site_host``."""

    try:
        if not href:
            return False
        url = resolve_url(href, base, site_host)
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "").strip()
        if RESERVED_PATH_RE.search(path):
            return False
        host = _strip_www(parsed.hostname or "")
        if host and host != _strip_www(site_host):
            return False
        if not (_HAS_ID_RE.search(path) or _HAS_ID_RE.search(url)):
            return False
        return any(rx.search(path) or rx.search(url) for rx in AD_URL_RES)
    except ValueError:
        return False


def parse_ad_id(url: str | None) -> str:
    match = AD_ID_RE.search(url or "")
    return match.group(1) if match else ""


def is_city_link(href: str | None) -> bool:
    try:
        path = urllib.parse.urlparse(href or "").path or ""
    except ValueError:
        return False
    return path.startswith("/city/")


__all__ = [
    "AD_URL_RES",
    "DEFAULT_SITE_HOST",
    "DEFAULT_START_URL",
    "base_for_host",
    "is_ad_link",
    "is_city_link",
    "parse_ad_id",
    "resolve_url",
]
