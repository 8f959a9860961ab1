"""Ad record extraction from a listing-page snapshot.

The site's class names and nesting change often, so ads are located by the shape
of their URL rather than by structure:

1. Candidate discovery: an ordered list of strategies, the first one returning
   anything wins (ad-link anchors, then title-styled spans).
2. Each candidate is grouped into its nearest block container (the "card");
   several anchors may share a card.
3. Every field (link, description, city, time, replies) is extracted
   independently and falls back to a sentinel instead of failing the card.
4. A validity filter drops cards without a usable link or Arabic description.

``extract`` is a pure function of the ``DocumentTree`` it is given.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from .dom import (
    DocumentTree,
    Node,
    all_of,
    any_of,
    attr_equals,
    class_contains,
    has_attr,
    has_classes,
    tag_in,
)
from .models import (
    MAX_DESCRIPTION_LENGTH,
    MAX_REPLY_COUNT,
    UNSPECIFIED,
    AdRecord,
    identity_key,
    prefer_observation,
)
from .textnorm import (
    RELATIVE_TIME_LINE_RE,
    is_arabic,
    looks_like_relative_time,
    to_ascii_digits,
    truncate,
)
from .urls import DEFAULT_SITE_HOST, base_for_host, is_ad_link, is_city_link, parse_ad_id, resolve_url

# ----------------------------
# Selectors
# ----------------------------

CARD = tag_in("article", "li", "div", "section")
ANCHOR = all_of(tag_in("a"), has_attr("href"))
TITLE_SPAN = all_of(
    tag_in("span"),
    any_of(has_classes("overflow-hidden", "text-ellipsis"), class_contains("text-ellipsis")),
)
CITY_SPAN = all_of(
    tag_in("span"),
    any_of(has_classes("overflow-hidden", "overflow-ellipsis", "whitespace-nowrap"), class_contains("overflow-ellipsis")),
)
TIME_SPAN = all_of(
    tag_in("span"),
    has_classes("max-w-[90%]", "overflow-hidden", "overflow-ellipsis", "whitespace-nowrap"),
    attr_equals("dir", "rtl"),
)
TIME_CANDIDATE = any_of(attr_equals("dir", "rtl"), tag_in("span", "div"))
COMMENT_ICON = all_of(
    tag_in("svg"),
    any_of(attr_equals("data-icon", "comments-alt"), has_classes("fa-comments-alt")),
)
# Subtrees that never carry the ad's own text.
NON_TEXT = tag_in("svg", "img", "i", "use", "path", "button", "script", "style")

_SEPARATORS_ONLY_RE = re.compile(r"^[.•·|]+$")
_REPLY_COUNT_RE = re.compile(r"^[0-9]{1,3}$")
PLACEHOLDER_RE = re.compile(r"^(إضافة\s+عرض|أضف\s+إعلان|Add\s+Ad)$", re.IGNORECASE)

CITY_MIN_LEN = 2
CITY_MAX_LEN = 20


def meaningful_text(node: Node) -> str:
    return "".join(node.iter_text(skip=NON_TEXT)).strip()


def longest_text(root: Node) -> str:
    """Longest non-trivial text of ``root`` or any element beneath it."""

    best = ""
    for node in [root, *root.iter_descendants()]:
        if NON_TEXT(node):
            continue
        text = meaningful_text(node)
        if text and not _SEPARATORS_ONLY_RE.match(text) and len(text) > len(best):
            best = text
    return best


class SiteRules:
    """Host and base URL the link rules are evaluated against."""

    def __init__(self, tree: DocumentTree, site_host: str):
        self.host = site_host
        self.base = tree.url or base_for_host(site_host)

    def is_ad_anchor(self, node: Node) -> bool:
        return ANCHOR(node) and is_ad_link(node.get("href") or "", self.base, self.host)

    def href(self, anchor: Node) -> str:
        return resolve_url(anchor.get("href") or "", self.base, self.host)


# ----------------------------
# Candidate discovery strategies
# ----------------------------


def find_ad_anchors(tree: DocumentTree, site: SiteRules) -> list[Node]:
    return tree.find_all(site.is_ad_anchor)


def find_title_spans(tree: DocumentTree, site: SiteRules) -> list[Node]:
    return tree.find_all(TITLE_SPAN)


Strategy = Callable[[DocumentTree, SiteRules], list[Node]]
DISCOVERY_STRATEGIES: tuple[Strategy, ...] = (find_ad_anchors, find_title_spans)


def discover_cards(tree: DocumentTree, site: SiteRules, strategies: Sequence[Strategy] = DISCOVERY_STRATEGIES) -> list[Node]:
    """Containers of the first strategy that finds anything, in document order."""

    for strategy in strategies:
        hits = strategy(tree, site)
        if not hits:
            continue
        cards: dict[Node, None] = {}
        for hit in hits:
            card = hit.closest(CARD)
            if card is not None:
                cards.setdefault(card)
        return list(cards)
    return []


# ----------------------------
# Field extractors
# ----------------------------


def pick_link(card: Node, site: SiteRules) -> Node | None:
    anchor = card.find(site.is_ad_anchor)
    if anchor is not None:
        return anchor
    title = card.find(TITLE_SPAN)
    if title is None:
        return None
    # Only an anchor wrapping the card itself is left to find.
    candidate = title.closest(tag_in("a"))
    if candidate is not None and site.is_ad_anchor(candidate):
        return candidate
    return None


def pick_title(card: Node, link: Node | None) -> Node | None:
    if link is not None:
        return link.find(TITLE_SPAN) or link
    return card.find(TITLE_SPAN)


def pick_description(card: Node, title: Node | None) -> str:
    text = title.text_content.strip() if title is not None else ""
    return text or longest_text(card)


def pick_city(card: Node) -> str:
    city_anchor = card.find(lambda n: ANCHOR(n) and is_city_link(n.get("href")))
    if city_anchor is not None:
        city = longest_text(city_anchor)
        if city:
            return city
    for span in card.find_all(CITY_SPAN):
        text = span.text_content.strip()
        if not text or looks_like_relative_time(text):
            continue
        if CITY_MIN_LEN <= len(text) <= CITY_MAX_LEN:
            return text
    return ""


def pick_relative_time(card: Node) -> str:
    specific = card.find(TIME_SPAN)
    if specific is not None:
        return specific.text_content.strip()
    for node in card.find_all(TIME_CANDIDATE):
        for line in node.text_content.split("\n"):
            line = line.strip()
            if line and RELATIVE_TIME_LINE_RE.match(line):
                return line
    return ""


def pick_reply_count(scope: Node) -> int:
    """Reply count from the span right after a comments icon; 0 if unknown.

    The first icon directly followed by a ``span`` wins, so decorative icons
    earlier in the card are skipped.
    """

    counter = None
    for icon in scope.find_all(COMMENT_ICON):
        sibling = icon.next_element_sibling
        if sibling is not None and sibling.tag == "span":
            counter = sibling
            break
    if counter is None:
        return 0
    value = to_ascii_digits(counter.text_content.strip())
    if not _REPLY_COUNT_RE.match(value):
        return 0
    return max(0, min(MAX_REPLY_COUNT, int(value)))


# ----------------------------
# Validity & assembly
# ----------------------------


def is_placeholder(description: str) -> bool:
    return bool(PLACEHOLDER_RE.match(description.strip()))


def is_valid_candidate(link: str, description: str, site_host: str = DEFAULT_SITE_HOST) -> bool:
    return bool(
        link
        and is_ad_link(link, site_host=site_host)
        and description
        and len(description) > 2
        and is_arabic(description)
        and not is_placeholder(description)
    )


def extract_card(card: Node, site: SiteRules) -> AdRecord | None:
    link_el = pick_link(card, site)
    link = site.href(link_el) if link_el is not None else ""
    title = pick_title(card, link_el)
    description = pick_description(card, title)
    if not is_valid_candidate(link, description, site.host):
        return None

    scope = (title.closest(CARD) if title is not None else None) or card
    return AdRecord(
        id=parse_ad_id(link),
        description=truncate(description, MAX_DESCRIPTION_LENGTH).strip(),
        city=pick_city(card) or UNSPECIFIED,
        relative_time=pick_relative_time(card) or UNSPECIFIED,
        reply_count=pick_reply_count(scope),
        link=link,
    )


def extract(tree: DocumentTree, *, site_host: str = DEFAULT_SITE_HOST) -> list[AdRecord]:
    """Extract valid ad records from ``tree``, one per identity key."""

    site = SiteRules(tree, site_host)
    by_key: dict[str, AdRecord] = {}
    for card in discover_cards(tree, site):
        record = extract_card(card, site)
        if record is None:
            continue
        key = identity_key(record)
        by_key[key] = prefer_observation(by_key.get(key), record)
    return list(by_key.values())


__all__ = [
    "DISCOVERY_STRATEGIES",
    "SiteRules",
    "discover_cards",
    "extract",
    "extract_card",
    "find_ad_anchors",
    "find_title_spans",
    "is_placeholder",
    "is_valid_candidate",
    "longest_text",
    "pick_city",
    "pick_description",
    "pick_link",
    "pick_relative_time",
    "pick_reply_count",
    "pick_title",
]
