# listing_watch/filters/result_filter.py

"""Post-extraction listing filtering by price range and keywords."""

import logging

from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import FilterSpec

logger = logging.getLogger("listing_watch.filters")

# Buy-requests that marketplaces list alongside for-sale items
WANTED_MARKERS: tuple[str, ...] = ("wanted", "looking for", "wtb")


class ResultFilter:
    """Apply a search's :class:`FilterSpec` to extracted listings."""

    @staticmethod
    def passes(record: ListingRecord, filter_spec: FilterSpec) -> bool:
        """Return True when no configured check rejects *record*.

        An unknown price always passes the price-range check.
        """
        price_range = filter_spec.price_range
        price = record.price_value
        if price_range is not None and price is not None:
            if price_range.min is not None and price < price_range.min:
                return False
            if price_range.max is not None and price > price_range.max:
                return False

        title = (record.title or "").lower()

        include = [kw.lower() for kw in filter_spec.keywords.include]
        if include and not any(kw in title for kw in include):
            return False

        exclude = [kw.lower() for kw in filter_spec.keywords.exclude]
        if any(kw in title for kw in exclude):
            return False

        if filter_spec.exclude_wanted and any(
            marker in title for marker in WANTED_MARKERS
        ):
            return False

        return True

    @staticmethod
    def apply(
        records: list[ListingRecord],
        filter_spec: FilterSpec,
    ) -> tuple[list[ListingRecord], int]:
        """Filter a batch, preserving order.

        Returns the kept records and the count of excluded ones.
        """
        kept = [r for r in records if ResultFilter.passes(r, filter_spec)]
        excluded = len(records) - len(kept)
        if excluded:
            logger.info(
                "Filtered out %d of %d listings",
                excluded,
                len(records),
            )
        return kept, excluded
