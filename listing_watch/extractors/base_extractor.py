# listing_watch/extractors/base_extractor.py

"""Abstract base class for all site extractors."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from listing_watch.config.settings import Settings
from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import SiteConfig


class Extractor(ABC):
    """Turns a search URL into raw listing records for one site.

    Instances are created per site per run by the orchestrator and
    always closed afterwards.
    """

    def __init__(
        self,
        site_config: SiteConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self.site_config = site_config
        self.site_name = site_config.name
        self.logger = logger or logging.getLogger(
            f"listing_watch.extractor.{site_config.name.lower()}"
        )
        self.settings = Settings()

    @abstractmethod
    def extract(
        self,
        url: str,
        site_config: SiteConfig,
        search_key: str,
        max_listings: int | None = None,
    ) -> list[dict[str, Any] | ListingRecord]:
        """Return at most *max_listings* listing-shaped objects."""
        ...

    def close(self) -> None:
        """Release any resources held by the extractor."""
        return None
