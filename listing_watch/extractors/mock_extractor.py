# listing_watch/extractors/mock_extractor.py

"""Offline extractor returning deterministic synthetic listings.

Used for dry runs of the notification and change-detection pipeline
without touching a live site.
"""

from datetime import datetime, timedelta
from typing import Any

from listing_watch.extractors.base_extractor import Extractor
from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import SiteConfig

_TITLES: list[str] = [
    "BMW Z3 Manual Transmission",
    "BMW Z3 Convertible - Low Miles",
    "BMW Z3 M Coupe - Rare Find",
    "BMW Z3 Sports Package",
    "BMW Z3 - Garage Kept Condition",
    "Modified BMW Z3 Track Car",
    "BMW Z3 - Recent Service History",
    "BMW Z3 Roadster 2.8",
    "BMW Z3 - Excellent Condition",
    "BMW Z3 - Clean Title",
]

_LOCATIONS: list[str] = [
    "San Francisco, CA",
    "Mountain View, CA",
    "Palo Alto, CA",
    "Berkeley, CA",
    "San Jose, CA",
]

_DEFAULT_COUNT = 10


class MockExtractor(Extractor):
    """Generate listings from a fixed catalogue.

    ``mock_options`` in the site config may set ``count``,
    ``base_price`` and ``price_step`` to shape the output.
    """

    def extract(
        self,
        url: str,
        site_config: SiteConfig,
        search_key: str,
        max_listings: int | None = None,
    ) -> list[dict[str, Any] | ListingRecord]:
        options: dict[str, Any] = site_config.raw.get("mock_options") or {}
        count = int(options.get("count", _DEFAULT_COUNT))
        if max_listings:
            count = min(count, max_listings)
        base_price = int(options.get("base_price", 15000))
        price_step = int(options.get("price_step", 1000))
        base_url = (site_config.base_url or "https://mock.invalid").rstrip("/")

        today = datetime.now()
        listings: list[dict[str, Any] | ListingRecord] = []
        for i in range(count):
            listings.append({
                "title": _TITLES[i % len(_TITLES)],
                "price": base_price + i * price_step,
                "location": _LOCATIONS[i % len(_LOCATIONS)],
                "date": (today - timedelta(days=i)).strftime("%Y-%m-%d"),
                "url": f"{base_url}/listing/{i + 1}",
                "imageUrl": f"{base_url}/images/listing{i + 1}.jpg",
                "scrapedAt": today.isoformat(),
                "source": "mock",
            })

        self.logger.info(
            "[mock] Generated %d listings for '%s'", len(listings), search_key,
        )
        return listings
