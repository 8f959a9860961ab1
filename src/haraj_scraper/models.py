"""Data model: extracted ads, store entries and the ranked digest."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

UNSPECIFIED = "unspecified"
MAX_DESCRIPTION_LENGTH = 400
MAX_REPLY_COUNT = 200
MAX_DIGEST_ITEMS = 300


@dataclass(frozen=True)
class AdRecord:
    """One ad as observed in a single snapshot."""

    id: str  # numeric ad id from the link, may be ""
    description: str
    city: str = UNSPECIFIED
    relative_time: str = UNSPECIFIED  # e.g. "قبل 3 ساعات"; never an absolute time
    reply_count: int = 0  # clamped to [0, MAX_REPLY_COUNT]
    link: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "city": self.city,
            "relativeTime": self.relative_time,
            "replyCount": self.reply_count,
            "link": self.link,
        }


def identity_key(record: AdRecord) -> str:
    """Dedup key: id, else link, else description.

    Two distinct ads without id or link and with the same visible text share a
    key and are merged.
    """

    return record.id or record.link or record.description


def prefer_observation(previous: AdRecord | None, current: AdRecord) -> AdRecord:
    """Merge two observations of the same ad seen during one run.

    The newest observation's fields win; the reply count never drops.
    """

    if previous is None or current.reply_count > previous.reply_count:
        return current
    return dataclasses.replace(current, reply_count=previous.reply_count)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class StoreEntry:
    """An ad persisted across runs."""

    record: AdRecord
    first_seen_at: str  # ISO 8601, written once
    last_seen_at: str  # ISO 8601, refreshed on every observation
    latest_reply_count: int = 0  # running maximum of observed reply counts

    @property
    def description(self) -> str:
        return self.record.description

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.record.to_dict(),
            "firstSeenAt": self.first_seen_at,
            "lastSeenAt": self.last_seen_at,
            "latestReplyCount": self.latest_reply_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoreEntry:
        """Build an entry from its JSON form; also reads the legacy short keys."""

        if not isinstance(data, dict):
            raise ValueError(f"store entry must be an object, got {type(data).__name__}")
        reply_count = _as_int(data.get("replyCount", data.get("replies")))
        record = AdRecord(
            id=str(data.get("id") or ""),
            description=str(data.get("description", data.get("desc")) or ""),
            city=str(data.get("city") or UNSPECIFIED),
            relative_time=str(data.get("relativeTime", data.get("time")) or UNSPECIFIED),
            reply_count=reply_count,
            link=str(data.get("link") or ""),
        )
        latest = data.get("latestReplyCount", data.get("latestReplies", reply_count))
        return cls(
            record=record,
            first_seen_at=str(data.get("firstSeenAt") or ""),
            last_seen_at=str(data.get("lastSeenAt") or ""),
            latest_reply_count=_as_int(latest),
        )


@dataclass(frozen=True)
class Digest:
    """Ranked, bounded view of the store produced by one reconciliation."""

    updated_at: str
    items: list[StoreEntry] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "updatedAt": self.updated_at,
            "count": self.count,
            "items": [entry.to_dict() for entry in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Digest:
        if not isinstance(data, dict):
            raise ValueError("digest must be an object")
        return cls(
            updated_at=str(data.get("updatedAt") or ""),
            items=[StoreEntry.from_dict(item) for item in data.get("items") or []],
        )


Store = dict[str, StoreEntry]

__all__ = [
    "MAX_DESCRIPTION_LENGTH",
    "MAX_DIGEST_ITEMS",
    "MAX_REPLY_COUNT",
    "UNSPECIFIED",
    "AdRecord",
    "Digest",
    "Store",
    "StoreEntry",
    "identity_key",
    "prefer_observation",
]
