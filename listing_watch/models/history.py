# listing_watch/models/history.py

"""Persisted change-history models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def _parse_ts(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp, tolerating blanks and junk."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Change:
    """A single detected field mutation."""

    field: str
    previous_value: Any
    current_value: Any
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "previous_value": self.previous_value,
            "current_value": self.current_value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Change":
        return cls(
            field=str(data.get("field", "")),
            previous_value=data.get("previous_value"),
            current_value=data.get("current_value"),
            timestamp=_parse_ts(data.get("timestamp")) or datetime.min,
        )


@dataclass
class HistoryEntry:
    """Persisted state for one identity key within one search."""

    search_key: str
    identity_key: str
    snapshot: dict[str, Any]
    first_seen_at: datetime | None = None
    last_seen_at: datetime | None = None
    last_updated_at: datetime | None = None
    change_count: int = 0
    changes: list[Change] = field(
        default_factory=lambda: list[Change]()
    )

    @property
    def last_activity(self) -> datetime | None:
        """Most recent activity: last seen, else updated, else first seen."""
        return (
            self.last_seen_at
            or self.last_updated_at
            or self.first_seen_at
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "search_key": self.search_key,
            "identity_key": self.identity_key,
            "snapshot": self.snapshot,
            "first_seen_at": _format_ts(self.first_seen_at),
            "last_seen_at": _format_ts(self.last_seen_at),
            "last_updated_at": _format_ts(self.last_updated_at),
            "change_count": self.change_count,
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        raw_changes = data.get("changes") or []
        return cls(
            search_key=str(data.get("search_key", "")),
            identity_key=str(data.get("identity_key", "")),
            snapshot=dict(data.get("snapshot") or {}),
            first_seen_at=_parse_ts(data.get("first_seen_at")),
            last_seen_at=_parse_ts(data.get("last_seen_at")),
            last_updated_at=_parse_ts(data.get("last_updated_at")),
            change_count=int(data.get("change_count", 0) or 0),
            changes=[
                Change.from_dict(c)
                for c in raw_changes
                if isinstance(c, dict)
            ],
        )
