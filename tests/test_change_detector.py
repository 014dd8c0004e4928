# tests/test_change_detector.py

"""Tests for ChangeDetector classification, batching and retention."""

import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from listing_watch.models.history import HistoryEntry
from listing_watch.models.listing import ListingRecord
from listing_watch.services.change_detector import (
    ChangeDetector,
    ChangeStatus,
    extract_numeric_price,
    has_field_changed,
)
from listing_watch.storage.change_store import ChangeStore

SEARCH = "BMW Z3"


class FakeClock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def _record(
    url: str = "https://sfbay.craigslist.org/cto/1.html",
    title: str = "BMW Z3 Roadster",
    price: int | str | None = "$15,000",
    **kwargs: Any,
) -> ListingRecord:
    return ListingRecord(title=title, price=price, detail_url=url, **kwargs)


class TestFieldComparison(unittest.TestCase):
    """Verify the field-aware equality helpers."""

    def test_extract_numeric_price(self) -> None:
        self.assertEqual(extract_numeric_price("$15,000"), 15000)
        self.assertEqual(extract_numeric_price("$15,000.00"), 15000)
        self.assertEqual(extract_numeric_price("free"), 0)

    def test_price_numeric_equality(self) -> None:
        self.assertFalse(has_field_changed("$15,000.00", "$15,000", "price"))
        self.assertTrue(has_field_changed("$14,500", "$15,000", "price"))

    def test_price_int_vs_text(self) -> None:
        self.assertFalse(has_field_changed(15000, "$15,000", "price"))

    def test_text_trimmed(self) -> None:
        self.assertFalse(has_field_changed(" BMW Z3 ", "BMW Z3", "title"))
        self.assertTrue(has_field_changed("BMW Z3 M", "BMW Z3", "title"))

    def test_none_equals_empty(self) -> None:
        self.assertFalse(has_field_changed(None, "", "description"))

    def test_list_order_sensitive(self) -> None:
        self.assertFalse(has_field_changed(["a", "b"], ["a", "b"], "images"))
        self.assertTrue(has_field_changed(["b", "a"], ["a", "b"], "images"))

    def test_list_vs_missing(self) -> None:
        self.assertTrue(has_field_changed(["a"], None, "images"))
        self.assertFalse(has_field_changed([], None, "images"))


class TestChangeDetector(unittest.TestCase):
    """Verify classification against a file-backed store."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "history.json"
        self.clock = FakeClock(datetime(2026, 3, 1, 12, 0, 0))
        self.store = ChangeStore(self.path)
        self.detector = ChangeDetector(self.store, clock=self.clock)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_unseen_record_is_new(self) -> None:
        record = _record()
        outcome = self.detector.classify(record, SEARCH)
        self.assertIs(outcome.status, ChangeStatus.NEW)
        self.assertEqual(len(self.store), 1)
        entry = self.store.get(SEARCH, record.identity_key)
        assert entry is not None
        self.assertEqual(entry.change_count, 0)
        self.assertEqual(entry.first_seen_at, self.clock.now)

    def test_unchanged_advances_last_seen_only(self) -> None:
        record = _record()
        self.detector.classify(record, SEARCH)
        entry = self.store.get(SEARCH, record.identity_key)
        assert entry is not None
        snapshot_before = dict(entry.snapshot)

        for _ in range(3):
            self.clock.advance(hours=1)
            outcome = self.detector.classify(_record(), SEARCH)
            self.assertIs(outcome.status, ChangeStatus.UNCHANGED)
            self.assertEqual(entry.last_seen_at, self.clock.now)

        self.assertEqual(entry.change_count, 0)
        self.assertEqual(entry.snapshot, snapshot_before)

    def test_price_drop_is_single_change(self) -> None:
        self.detector.classify(_record(price="$15,000"), SEARCH)
        self.clock.advance(hours=2)
        outcome = self.detector.classify(_record(price="$14,500"), SEARCH)

        self.assertIs(outcome.status, ChangeStatus.CHANGED)
        self.assertEqual(len(outcome.changes), 1)
        change = outcome.changes[0]
        self.assertEqual(change.field, "price")
        self.assertEqual(change.previous_value, "$15,000")
        self.assertEqual(change.current_value, "$14,500")
        self.assertEqual(change.timestamp, self.clock.now)

        entry = self.store.get(SEARCH, _record().identity_key)
        assert entry is not None
        self.assertEqual(entry.change_count, 1)
        self.assertEqual(entry.snapshot["price"], "$14,500")
        self.assertEqual(entry.last_updated_at, self.clock.now)
        self.assertEqual(entry.last_seen_at, self.clock.now)

    def test_numerically_equal_price_is_unchanged(self) -> None:
        self.detector.classify(_record(price="$15,000"), SEARCH)
        outcome = self.detector.classify(_record(price="$15,000.00"), SEARCH)
        self.assertIs(outcome.status, ChangeStatus.UNCHANGED)

    def test_untracked_field_is_ignored(self) -> None:
        self.detector.classify(_record(location="Oakland"), SEARCH)
        outcome = self.detector.classify(_record(location="Berkeley"), SEARCH)
        self.assertIs(outcome.status, ChangeStatus.UNCHANGED)

    def test_custom_tracked_fields(self) -> None:
        self.detector.classify(_record(location="Oakland"), SEARCH, ["location"])
        outcome = self.detector.classify(
            _record(location="Berkeley", price="$1"), SEARCH, ["location"],
        )
        self.assertIs(outcome.status, ChangeStatus.CHANGED)
        self.assertEqual([c.field for c in outcome.changes], ["location"])

    def test_empty_tracked_fields_compare_nothing(self) -> None:
        self.detector.classify(_record(price="$15,000"), SEARCH, [])
        outcome = self.detector.classify(_record(price="$9,000"), SEARCH, [])
        self.assertIs(outcome.status, ChangeStatus.UNCHANGED)

    def test_url_change_is_new_listing(self) -> None:
        self.detector.classify(_record(url="https://x/1"), SEARCH)
        outcome = self.detector.classify(_record(url="https://x/2"), SEARCH)
        self.assertIs(outcome.status, ChangeStatus.NEW)

    def test_same_listing_in_other_search_is_new(self) -> None:
        self.detector.classify(_record(), SEARCH)
        outcome = self.detector.classify(_record(), "Miata")
        self.assertIs(outcome.status, ChangeStatus.NEW)

    def test_underscored_search_names_do_not_share_history(self) -> None:
        self.detector.classify(ListingRecord(title="Z3_roadster"), "BMW")
        outcome = self.detector.classify(
            ListingRecord(title="roadster"), "BMW_Z3",
        )
        self.assertIs(outcome.status, ChangeStatus.NEW)
        entry = self.store.get("BMW", "Z3_roadster")
        assert entry is not None
        self.assertEqual(entry.snapshot["title"], "Z3_roadster")
        self.assertEqual(entry.change_count, 0)

    def test_process_batch_is_idempotent(self) -> None:
        batch = [_record(url=f"https://x/{i}") for i in range(3)]
        first = self.detector.process_batch(batch, SEARCH)
        second = self.detector.process_batch(batch, SEARCH)

        self.assertEqual(len(first.new), 3)
        self.assertEqual(first.changed, [])
        self.assertEqual(second.new, [])
        self.assertEqual(len(second.unchanged), 3)

    def test_process_batch_preserves_order_and_saves(self) -> None:
        self.detector.process_batch(
            [_record(url="https://x/a"), _record(url="https://x/b")], SEARCH,
        )
        batch = [
            _record(url="https://x/c"),
            _record(url="https://x/b", price="$1,000"),
            _record(url="https://x/a"),
            _record(url="https://x/d"),
        ]
        result = self.detector.process_batch(batch, SEARCH)

        self.assertEqual(
            [r.detail_url for r in result.new],
            ["https://x/c", "https://x/d"],
        )
        self.assertEqual(
            [c.record.detail_url for c in result.changed], ["https://x/b"],
        )
        self.assertEqual(
            [r.detail_url for r in result.unchanged], ["https://x/a"],
        )

        reloaded = ChangeStore(self.path)
        self.assertEqual(reloaded.load(), 4)

    def test_history_survives_restart(self) -> None:
        self.detector.process_batch([_record()], SEARCH)
        detector = ChangeDetector(ChangeStore(self.path), clock=self.clock)
        detector.store.load()
        result = detector.process_batch([_record(price="$14,500")], SEARCH)
        self.assertEqual(len(result.changed), 1)


class TestSummaryAndCleanup(unittest.TestCase):
    """Verify summarize() and cleanup() over seeded history."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "history.json"
        self.now = datetime(2026, 3, 1, 12, 0, 0)
        self.store = ChangeStore(self.path)
        self.detector = ChangeDetector(self.store, clock=lambda: self.now)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _seed(self, identity_key: str, last_seen: datetime) -> None:
        self.store.put(HistoryEntry(
            search_key=SEARCH,
            identity_key=identity_key,
            snapshot={"title": identity_key},
            first_seen_at=last_seen,
            last_seen_at=last_seen,
            last_updated_at=last_seen,
        ))

    def test_cleanup_removes_only_stale_entries(self) -> None:
        self._seed("x", self.now - timedelta(days=40))
        self._seed("y", self.now - timedelta(days=2))

        removed = self.detector.cleanup(30)

        self.assertEqual(removed, 1)
        self.assertIsNone(self.store.get(SEARCH, "x"))
        self.assertIsNotNone(self.store.get(SEARCH, "y"))
        reloaded = ChangeStore(self.path)
        self.assertEqual(reloaded.load(), 1)

    def test_cleanup_without_stale_entries_does_not_write(self) -> None:
        self._seed("y", self.now - timedelta(days=2))
        self.assertEqual(self.detector.cleanup(30), 0)
        self.assertFalse(self.path.exists())

    def test_summarize_counts_recent_activity(self) -> None:
        clock = FakeClock(self.now - timedelta(hours=30))
        detector = ChangeDetector(self.store, clock=clock)
        detector.process_batch([_record(url="https://x/old")], SEARCH)

        clock.now = self.now - timedelta(hours=1)
        detector.process_batch(
            [
                _record(url="https://x/old", price="$14,000"),
                _record(url="https://x/fresh"),
            ],
            SEARCH,
        )
        detector.process_batch([_record(url="https://x/other")], "Miata")

        clock.now = self.now
        summary = detector.summarize(SEARCH, 24)

        self.assertEqual(summary.total_listings, 2)
        self.assertEqual(summary.new_listings, 1)
        self.assertEqual(summary.changed_listings, 1)
        self.assertEqual(len(summary.recent_changes), 1)
        recent = summary.recent_changes[0]
        self.assertEqual(recent.listing_id, "https://x/old")
        self.assertEqual(recent.url, "https://x/old")
        self.assertEqual(recent.changes[0].field, "price")


if __name__ == "__main__":
    unittest.main()
