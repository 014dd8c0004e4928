# listing_watch/services/change_detector.py

"""Classify listings as new / changed / unchanged across runs."""

import hashlib
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from listing_watch.config.settings import Settings
from listing_watch.models.history import Change, HistoryEntry
from listing_watch.models.listing import ListingRecord
from listing_watch.storage.change_store import ChangeStore

_LEADING_NUMBER_RE = re.compile(r"[\d,]+")


class ChangeStatus(Enum):
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass
class Classification:
    """Outcome of classifying a single record."""

    status: ChangeStatus
    identity_key: str
    changes: list[Change] = field(default_factory=lambda: list[Change]())


@dataclass
class ChangedListing:
    record: ListingRecord
    changes: list[Change]


@dataclass
class BatchResult:
    """Partition of a batch, each list in input order."""

    new: list[ListingRecord] = field(
        default_factory=lambda: list[ListingRecord]()
    )
    changed: list[ChangedListing] = field(
        default_factory=lambda: list[ChangedListing]()
    )
    unchanged: list[ListingRecord] = field(
        default_factory=lambda: list[ListingRecord]()
    )


@dataclass
class RecentChange:
    listing_id: str
    title: str
    url: str
    changes: list[Change]


@dataclass
class ChangeSummary:
    search_key: str
    window_hours: float
    total_listings: int = 0
    new_listings: int = 0
    changed_listings: int = 0
    recent_changes: list[RecentChange] = field(
        default_factory=lambda: list[RecentChange]()
    )


def extract_numeric_price(text: str) -> int:
    """Leading digit run of *text* with commas removed; 0 if none."""
    match = _LEADING_NUMBER_RE.search(text)
    if not match:
        return 0
    digits = match.group(0).replace(",", "")
    return int(digits) if digits else 0


def _hash_sequence(items: Iterable[Any]) -> str:
    joined = "|".join("" if i is None else str(i) for i in items)
    return hashlib.md5(joined.encode("utf-8")).hexdigest()


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def has_field_changed(
    current: Any, previous: Any, field_name: str,
) -> bool:
    """Field-aware equality used for tracked fields.

    Lists compare by order-sensitive hash, price-like fields by their
    leading number, everything else as trimmed text.
    """
    if isinstance(current, (list, tuple)) or isinstance(
        previous, (list, tuple)
    ):
        return _hash_sequence(current or []) != _hash_sequence(
            previous or []
        )

    current_text = _as_text(current)
    previous_text = _as_text(previous)

    if "price" in field_name.lower():
        return extract_numeric_price(current_text) != extract_numeric_price(
            previous_text
        )

    return current_text != previous_text


class ChangeDetector:
    """Diff incoming listings against the :class:`ChangeStore`.

    The detector is the only writer of the store while a batch is
    being processed.
    """

    def __init__(
        self,
        store: ChangeStore | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store or ChangeStore()
        self.clock = clock or datetime.now
        self.logger = logger or logging.getLogger(
            "listing_watch.detector"
        )

    def classify(
        self,
        record: ListingRecord,
        search_key: str,
        tracked_fields: Sequence[str] | None = None,
    ) -> Classification:
        """Classify one record and update its history entry in memory."""
        identity_key = record.identity_key
        now = self.clock()
        entry = self.store.get(search_key, identity_key)

        if entry is None:
            self.store.put(HistoryEntry(
                search_key=search_key,
                identity_key=identity_key,
                snapshot=record.to_snapshot(),
                first_seen_at=now,
                last_seen_at=now,
                last_updated_at=now,
                change_count=0,
            ))
            return Classification(ChangeStatus.NEW, identity_key)

        if tracked_fields is None:
            tracked_fields = Settings.DEFAULT_TRACK_FIELDS
        fields = list(tracked_fields)
        previous = ListingRecord.from_snapshot(entry.snapshot)
        changes: list[Change] = []
        for name in fields:
            current_value = record.field_value(name)
            previous_value = previous.field_value(name)
            if has_field_changed(current_value, previous_value, name):
                changes.append(Change(
                    field=name,
                    previous_value=previous_value,
                    current_value=current_value,
                    timestamp=now,
                ))

        if changes:
            entry.changes.extend(changes)
            entry.snapshot = record.to_snapshot()
            entry.last_updated_at = now
            entry.last_seen_at = now
            entry.change_count += 1
            return Classification(
                ChangeStatus.CHANGED, identity_key, changes,
            )

        entry.last_seen_at = now
        return Classification(ChangeStatus.UNCHANGED, identity_key)

    def process_batch(
        self,
        records: Sequence[ListingRecord],
        search_key: str,
        tracked_fields: Sequence[str] | None = None,
    ) -> BatchResult:
        """Classify every record, then persist the store once."""
        result = BatchResult()
        for record in records:
            outcome = self.classify(record, search_key, tracked_fields)
            if outcome.status is ChangeStatus.NEW:
                result.new.append(record)
            elif outcome.status is ChangeStatus.CHANGED:
                result.changed.append(
                    ChangedListing(record, outcome.changes)
                )
            else:
                result.unchanged.append(record)

        self.store.save()
        self.logger.info(
            "Change detection for '%s': %d new, %d changed, %d unchanged",
            search_key,
            len(result.new),
            len(result.changed),
            len(result.unchanged),
        )
        return result

    def summarize(
        self,
        search_key: str,
        within_last_hours: float = Settings.SUMMARY_WINDOW_HOURS,
    ) -> ChangeSummary:
        """Report totals and recent activity for one search."""
        cutoff = self.clock() - timedelta(hours=within_last_hours)
        summary = ChangeSummary(
            search_key=search_key, window_hours=within_last_hours,
        )

        for entry in self.store.entries(search_key):
            summary.total_listings += 1
            if entry.first_seen_at and entry.first_seen_at > cutoff:
                summary.new_listings += 1

            recent = [c for c in entry.changes if c.timestamp > cutoff]
            if recent:
                summary.changed_listings += 1
                snapshot = entry.snapshot
                summary.recent_changes.append(RecentChange(
                    listing_id=entry.identity_key,
                    title=str(snapshot.get("title", "")),
                    url=str(snapshot.get("detail_url", "")),
                    changes=recent,
                ))

        return summary

    def cleanup(
        self, retention_days: int = Settings.HISTORY_RETENTION_DAYS,
    ) -> int:
        """Drop entries idle for longer than *retention_days*."""
        cutoff = self.clock() - timedelta(days=retention_days)
        stale = [
            entry
            for entry in self.store.entries()
            if entry.last_activity is None or entry.last_activity < cutoff
        ]
        for entry in stale:
            self.store.remove(entry.search_key, entry.identity_key)

        if stale:
            self.store.save()
            self.logger.info(
                "Cleaned up %d history entries older than %d days",
                len(stale),
                retention_days,
            )
        return len(stale)
