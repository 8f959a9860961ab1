"""Arabic text helpers: digit normalization, script detection, collation."""

from __future__ import annotations

import re
from functools import lru_cache

from pyuca import Collator

ARABIC_INDIC_DIGITS = "٠١٢٣٤٥٦٧٨٩"
EXTENDED_ARABIC_INDIC_DIGITS = "۰۱۲۳۴۵۶۷۸۹"
ELLIPSIS = "…"

_DIGIT_TABLE = str.maketrans(
    {
        **{d: str(i) for i, d in enumerate(ARABIC_INDIC_DIGITS)},
        **{d: str(i) for i, d in enumerate(EXTENDED_ARABIC_INDIC_DIGITS)},
    }
)
_ARABIC_RE = re.compile(r"[\u0600-\u06FF]")
_ANY_DIGIT = r"[0-9\u0660-\u0669\u06F0-\u06F9]"
_TIME_UNITS = r"(?:دقيقة|دقائق|ساعة|ساعات|يوم|أيام)"
_TIME_PHRASE = rf"الآن|قبل\s+{_ANY_DIGIT}+\s*{_TIME_UNITS}"

# Anywhere in the string ("is this a time label?") vs. at the start of a line.
RELATIVE_TIME_RE = re.compile(_TIME_PHRASE)
RELATIVE_TIME_LINE_RE = re.compile(rf"^(?:{_TIME_PHRASE})")


def to_ascii_digits(s: str | None) -> str:
    """Map Arabic-Indic and Extended Arabic-Indic digits to ASCII."""

    return (s or "").translate(_DIGIT_TABLE)


def is_arabic(s: str | None) -> bool:
    return bool(_ARABIC_RE.search(s or ""))


def truncate(s: str | None, limit: int = 400) -> str:
    s = str(s or "")
    if len(s) > limit:
        return s[: limit - 1] + ELLIPSIS
    return s


@lru_cache(maxsize=1)
def _collator() -> Collator:
    # Loading the DUCET table takes a moment; build it once per process.
    return Collator()


def collation_key(s: str | None) -> tuple[int, ...]:
    """Sort key ordering strings by the Unicode Collation Algorithm."""

    return _collator().sort_key(s or "")


def looks_like_relative_time(s: str | None) -> bool:
    return bool(RELATIVE_TIME_RE.search(s or ""))


__all__ = [
    "ARABIC_INDIC_DIGITS",
    "ELLIPSIS",
    "EXTENDED_ARABIC_INDIC_DIGITS",
    "RELATIVE_TIME_LINE_RE",
    "RELATIVE_TIME_RE",
    "collation_key",
    "is_arabic",
    "looks_like_relative_time",
    "to_ascii_digits",
    "truncate",
]
