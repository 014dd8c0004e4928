# tests/test_mock_extractor.py

"""Tests for the offline MockExtractor."""

import unittest

from listing_watch.extractors.mock_extractor import MockExtractor
from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import SiteConfig


class TestMockExtractor(unittest.TestCase):
    """Deterministic synthetic output."""

    def setUp(self) -> None:
        self.site = SiteConfig.from_dict({
            "name": "Mock",
            "base_url": "https://mock.invalid/",
            "mock_options": {"count": 4, "base_price": 10000, "price_step": 500},
        })
        self.extractor = MockExtractor(self.site)

    def test_count_and_prices(self) -> None:
        listings = self.extractor.extract("", self.site, "cars")
        records = [ListingRecord.from_raw(item) for item in listings]
        self.assertEqual(len(records), 4)
        self.assertEqual(
            [r.price for r in records], [10000, 10500, 11000, 11500],
        )

    def test_max_listings_caps_output(self) -> None:
        listings = self.extractor.extract("", self.site, "cars", max_listings=2)
        self.assertEqual(len(listings), 2)

    def test_urls_unique_and_rooted(self) -> None:
        records = [
            ListingRecord.from_raw(item)
            for item in self.extractor.extract("", self.site, "cars")
        ]
        urls = [r.detail_url for r in records]
        self.assertEqual(len(set(urls)), 4)
        self.assertEqual(urls[0], "https://mock.invalid/listing/1")
        self.assertEqual(records[0].image_url, "https://mock.invalid/images/listing1.jpg")

    def test_defaults_without_options(self) -> None:
        site = SiteConfig(name="Mock")
        listings = MockExtractor(site).extract("", site, "cars")
        self.assertEqual(len(listings), 10)

    def test_repeat_runs_are_stable(self) -> None:
        def identities() -> list[tuple[str, object, str]]:
            records = [
                ListingRecord.from_raw(item)
                for item in self.extractor.extract("", self.site, "cars")
            ]
            return [(r.title, r.price, r.detail_url) for r in records]

        self.assertEqual(identities(), identities())


if __name__ == "__main__":
    unittest.main()
