# listing_watch/models/listing.py

"""Listing data model for inter-module data flow."""

import re
from dataclasses import dataclass, field
from typing import Any

# Extractor keys that map onto named ListingRecord fields
_KEY_ALIASES: dict[str, str] = {
    "url": "detail_url",
    "detailUrl": "detail_url",
    "imageUrl": "image_url",
    "postingId": "posting_id",
    "postingDate": "posted_date",
    "postedDate": "posted_date",
    "date": "posted_date",
    "allImages": "images",
    "searchName": "search_name",
    "siteName": "site_name",
    "scrapedAt": "scraped_at",
}

_TEXT_FIELDS: tuple[str, ...] = (
    "title",
    "location",
    "posted_date",
    "detail_url",
    "image_url",
    "posting_id",
    "description",
    "source",
    "search_name",
    "site_name",
    "scraped_at",
)

# Run annotations, never part of a history snapshot
_STATUS_KEYS: frozenset[str] = frozenset({
    "is_new", "isNew", "is_changed", "isChanged", "changes",
})

_PRICE_RE = re.compile(r"[\d,]+")


def parse_price(value: object) -> int | None:
    """Extract a whole-unit price from ``15000`` or ``'$15,000.00'``.

    Returns ``None`` when *value* is empty or holds no digits.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = _PRICE_RE.search(str(value))
    if not match:
        return None
    digits = match.group(0).replace(",", "")
    return int(digits) if digits else None


@dataclass
class ListingRecord:
    """One observed instance of a marketplace listing."""

    title: str = ""
    price: int | str | None = None
    location: str = ""
    posted_date: str = ""
    detail_url: str = ""
    image_url: str = ""
    posting_id: str = ""
    description: str = ""
    images: list[str] = field(default_factory=lambda: list[str]())
    attributes: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )
    source: str = ""
    search_name: str = ""
    site_name: str = ""
    scraped_at: str = ""

    # Run annotations set by the orchestrator
    is_new: bool = False
    is_changed: bool = False
    changes: list[dict[str, Any]] = field(
        default_factory=lambda: list[dict[str, Any]]()
    )

    @property
    def identity_key(self) -> str:
        """URL, else posting id, else title."""
        return self.detail_url or self.posting_id or self.title

    @property
    def price_value(self) -> int | None:
        """Numeric price, or ``None`` when unknown."""
        return parse_price(self.price)

    def field_value(self, name: str) -> Any:
        """Return a tracked field, falling back to free-form attributes."""
        name = _KEY_ALIASES.get(name, name)
        if name in _STATUS_KEYS or name == "attributes":
            return None
        if hasattr(self, name):
            return getattr(self, name)
        return self.attributes.get(name)

    def to_snapshot(self) -> dict[str, Any]:
        """Serialise to a JSON-safe dict without run annotations."""
        return {
            "title": self.title,
            "price": self.price,
            "location": self.location,
            "posted_date": self.posted_date,
            "detail_url": self.detail_url,
            "image_url": self.image_url,
            "posting_id": self.posting_id,
            "description": self.description,
            "images": list(self.images),
            "attributes": dict(self.attributes),
            "source": self.source,
            "search_name": self.search_name,
            "site_name": self.site_name,
            "scraped_at": self.scraped_at,
        }

    @classmethod
    def from_raw(cls, raw: "dict[str, Any] | ListingRecord") -> "ListingRecord":
        """Build a record from extractor output.

        Accepts snake_case or camelCase keys; anything unrecognised
        lands in ``attributes`` as text.
        """
        if isinstance(raw, ListingRecord):
            return raw

        record = cls()
        for key, value in raw.items():
            name = _KEY_ALIASES.get(key, key)
            if name in _STATUS_KEYS:
                continue
            if name in _TEXT_FIELDS:
                setattr(record, name, "" if value is None else str(value))
            elif name == "price":
                record.price = value if value != "" else None
            elif name == "images":
                if isinstance(value, (list, tuple)):
                    record.images = [str(v) for v in value]
                elif value:
                    record.images = [str(value)]
            elif name == "attributes" and isinstance(value, dict):
                record.attributes.update(
                    {str(k): str(v) for k, v in value.items()}
                )
            elif value is not None:
                record.attributes[str(key)] = str(value)
        return record

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "ListingRecord":
        """Rebuild a record from :meth:`to_snapshot` output."""
        return cls.from_raw(data)
