# tests/test_result_filter.py

"""Tests for ResultFilter price and keyword predicates."""

import unittest

from listing_watch.filters.result_filter import ResultFilter
from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import FilterSpec, KeywordFilter, PriceRange


def _spec(**kwargs: object) -> FilterSpec:
    return FilterSpec.from_dict(kwargs)


class TestPriceRange(unittest.TestCase):
    """Verify inclusive price bounds."""

    def setUp(self) -> None:
        self.spec = FilterSpec(price_range=PriceRange(min=5000, max=15000))

    def test_above_max_rejected(self) -> None:
        record = ListingRecord(title="BMW Z3", price=20000)
        self.assertFalse(ResultFilter.passes(record, self.spec))

    def test_unknown_price_passes(self) -> None:
        record = ListingRecord(title="BMW Z3", price=None)
        self.assertTrue(ResultFilter.passes(record, self.spec))

    def test_bounds_inclusive(self) -> None:
        for price in (5000, 15000):
            with self.subTest(price=price):
                record = ListingRecord(title="BMW Z3", price=price)
                self.assertTrue(ResultFilter.passes(record, self.spec))

    def test_text_price_parsed(self) -> None:
        record = ListingRecord(title="BMW Z3", price="$4,500")
        self.assertFalse(ResultFilter.passes(record, self.spec))

    def test_open_upper_bound(self) -> None:
        spec = FilterSpec(price_range=PriceRange(min=5000))
        record = ListingRecord(title="BMW Z3", price=90000)
        self.assertTrue(ResultFilter.passes(record, spec))


class TestKeywords(unittest.TestCase):
    """Verify include/exclude keywords and wanted-ad markers."""

    def test_include_any(self) -> None:
        spec = FilterSpec(keywords=KeywordFilter(include=["bmw"]))
        self.assertFalse(
            ResultFilter.passes(ListingRecord(title="Toyota Corolla"), spec)
        )
        self.assertTrue(
            ResultFilter.passes(ListingRecord(title="BMW Z3 Manual"), spec)
        )

    def test_exclude_none(self) -> None:
        spec = FilterSpec(keywords=KeywordFilter(exclude=["Parts"]))
        self.assertFalse(
            ResultFilter.passes(ListingRecord(title="BMW Z3 parts car"), spec)
        )

    def test_exclude_wanted(self) -> None:
        spec = _spec(exclude_wanted=True)
        for title in ("WANTED: BMW Z3", "Looking for a Z3", "WTB z3 hardtop"):
            with self.subTest(title=title):
                self.assertFalse(
                    ResultFilter.passes(ListingRecord(title=title), spec)
                )
        self.assertTrue(
            ResultFilter.passes(ListingRecord(title="BMW Z3 for sale"), spec)
        )

    def test_wanted_kept_when_not_excluded(self) -> None:
        record = ListingRecord(title="WANTED: BMW Z3")
        self.assertTrue(ResultFilter.passes(record, FilterSpec()))

    def test_all_checks_combined(self) -> None:
        spec = _spec(
            price_range={"min": 5000, "max": 15000},
            keywords={"include": ["z3"], "exclude": ["salvage"]},
        )
        ok = ListingRecord(title="BMW Z3", price=9000)
        salvage = ListingRecord(title="BMW Z3 salvage", price=9000)
        pricey = ListingRecord(title="BMW Z3", price=19000)
        self.assertTrue(ResultFilter.passes(ok, spec))
        self.assertFalse(ResultFilter.passes(salvage, spec))
        self.assertFalse(ResultFilter.passes(pricey, spec))


class TestApply(unittest.TestCase):
    """Verify batch filtering."""

    def test_apply_preserves_order_and_counts(self) -> None:
        spec = FilterSpec(keywords=KeywordFilter(include=["z3"]))
        records = [
            ListingRecord(title="BMW Z3 Roadster"),
            ListingRecord(title="Mazda Miata"),
            ListingRecord(title="Z3 M Coupe"),
        ]
        with self.assertLogs("listing_watch.filters", "INFO"):
            kept, excluded = ResultFilter.apply(records, spec)
        self.assertEqual(
            [r.title for r in kept], ["BMW Z3 Roadster", "Z3 M Coupe"],
        )
        self.assertEqual(excluded, 1)

    def test_apply_empty_spec_keeps_everything(self) -> None:
        records = [ListingRecord(title="a"), ListingRecord(title="b")]
        kept, excluded = ResultFilter.apply(records, FilterSpec())
        self.assertEqual(kept, records)
        self.assertEqual(excluded, 0)


if __name__ == "__main__":
    unittest.main()
