# listing_watch/models/search.py

"""Search and site configuration models (read-only inputs to the core)."""

import copy
from dataclasses import dataclass, field
from typing import Any

from listing_watch.errors import ConfigurationError


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if str(v).strip()]


def _delay_range(
    search_name: str, raw: object,
) -> dict[str, int] | None:
    """Validate a ``{min, max}`` jitter range in milliseconds."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "random_delay must be an object with min/max",
            {"search": search_name, "random_delay": raw},
        )
    bounds: dict[str, int] = {}
    for bound in ("min", "max"):
        value = raw.get(bound)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(
                f"random_delay.{bound} must be a number of milliseconds",
                {"search": search_name, bound: value},
            )
        if value < 0:
            raise ConfigurationError(
                f"random_delay.{bound} must not be negative",
                {"search": search_name, bound: value},
            )
        bounds[bound] = int(value)
    return bounds


def _deep_merge(
    base: dict[str, Any], overlay: dict[str, Any],
) -> dict[str, Any]:
    """Recursively merge *overlay* into a copy of *base*."""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass
class PriceRange:
    """Inclusive price bounds; either side may be open."""

    min: int | None = None
    max: int | None = None


@dataclass
class KeywordFilter:
    include: list[str] = field(default_factory=lambda: list[str]())
    exclude: list[str] = field(default_factory=lambda: list[str]())


@dataclass
class FilterSpec:
    """Search-level filter predicates applied to every batch."""

    price_range: PriceRange | None = None
    keywords: KeywordFilter = field(default_factory=KeywordFilter)
    exclude_wanted: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FilterSpec":
        data = data or {}
        price_range = None
        raw_range = data.get("price_range")
        if isinstance(raw_range, dict):
            price_range = PriceRange(
                min=raw_range.get("min"),
                max=raw_range.get("max"),
            )
        raw_keywords = data.get("keywords") or {}
        return cls(
            price_range=price_range,
            keywords=KeywordFilter(
                include=_str_list(raw_keywords.get("include")),
                exclude=_str_list(raw_keywords.get("exclude")),
            ),
            exclude_wanted=bool(data.get("exclude_wanted", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "price_range": (
                {"min": self.price_range.min, "max": self.price_range.max}
                if self.price_range
                else None
            ),
            "keywords": {
                "include": list(self.keywords.include),
                "exclude": list(self.keywords.exclude),
            },
            "exclude_wanted": self.exclude_wanted,
        }


@dataclass
class NotificationTriggers:
    new_listing: bool = False
    keyword_match: list[str] = field(default_factory=lambda: list[str]())


@dataclass
class NotificationConfig:
    enabled: bool = False
    triggers: NotificationTriggers = field(
        default_factory=NotificationTriggers
    )
    email_settings: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )

    @classmethod
    def from_dict(
        cls, data: dict[str, Any] | None,
    ) -> "NotificationConfig":
        data = data or {}
        raw_triggers = data.get("triggers") or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            triggers=NotificationTriggers(
                new_listing=bool(raw_triggers.get("new_listing", False)),
                keyword_match=_str_list(raw_triggers.get("keyword_match")),
            ),
            email_settings=dict(data.get("email_settings") or {}),
        )


@dataclass
class SiteSearch:
    """One site's participation in a search."""

    site_name: str
    enabled: bool
    site_config: str
    search_key: str = ""
    search_url: str = ""

    @classmethod
    def from_dict(
        cls, site_name: str, data: dict[str, Any],
    ) -> "SiteSearch":
        return cls(
            site_name=site_name,
            enabled=bool(data.get("enabled", False)),
            site_config=str(data.get("site_config") or site_name),
            search_key=str(data.get("search_key", "")),
            search_url=str(data.get("search_url", "")),
        )


@dataclass
class SearchDefinition:
    """A named, scheduled search across one or more sites."""

    name: str
    description: str = ""
    enabled: bool = False
    run_frequency: str = "hourly"
    priority: str = "normal"
    max_listings_per_site: int | None = None
    sites: dict[str, SiteSearch] = field(
        default_factory=lambda: dict[str, SiteSearch]()
    )
    filters: FilterSpec = field(default_factory=FilterSpec)
    notifications: NotificationConfig = field(
        default_factory=NotificationConfig
    )
    random_delay: dict[str, int] | None = None
    track_fields: list[str] | None = None

    @property
    def enabled_sites(self) -> list[SiteSearch]:
        return [s for s in self.sites.values() if s.enabled]

    @classmethod
    def from_dict(
        cls, name: str, data: dict[str, Any],
    ) -> "SearchDefinition":
        settings = data.get("scrape_settings") or {}
        raw_sites = data.get("sites") or {}
        timing = data.get("timing") or {}
        track_fields = _str_list(data.get("track_fields"))
        max_listings = settings.get("max_listings_per_site")
        return cls(
            name=name,
            description=str(data.get("description", "")),
            enabled=bool(settings.get("enabled", False)),
            run_frequency=str(settings.get("run_frequency", "hourly")),
            priority=str(settings.get("priority", "normal")),
            max_listings_per_site=(
                int(max_listings) if max_listings else None
            ),
            sites={
                site_name: SiteSearch.from_dict(site_name, site_data)
                for site_name, site_data in raw_sites.items()
                if isinstance(site_data, dict)
            },
            filters=FilterSpec.from_dict(data.get("filters")),
            notifications=NotificationConfig.from_dict(
                data.get("notifications")
            ),
            random_delay=_delay_range(name, timing.get("random_delay")),
            track_fields=track_fields or None,
        )


@dataclass
class SiteConfig:
    """A site document: selectors, fields and authentication settings."""

    name: str
    base_url: str = ""
    search_config: dict[str, dict[str, Any]] = field(
        default_factory=lambda: dict[str, dict[str, Any]]()
    )
    authentication: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )
    raw: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SiteConfig":
        return cls(
            name=str(data.get("name", "")),
            base_url=str(data.get("base_url", "")),
            search_config={
                str(k): dict(v)
                for k, v in (data.get("search_config") or {}).items()
                if isinstance(v, dict)
            },
            authentication=dict(data.get("authentication") or {}),
            raw=dict(data),
        )

    def with_credentials(
        self, credentials: dict[str, Any],
    ) -> "SiteConfig":
        """Return a copy with *credentials* merged into authentication."""
        return SiteConfig(
            name=self.name,
            base_url=self.base_url,
            search_config=copy.deepcopy(self.search_config),
            authentication=_deep_merge(
                self.authentication, {"credentials": credentials},
            ),
            raw=copy.deepcopy(self.raw),
        )

    def with_search_config(
        self, search_key: str, search_config: dict[str, Any],
    ) -> "SiteConfig":
        """Return a copy whose only sub-configuration is *search_config*."""
        return SiteConfig(
            name=self.name,
            base_url=self.base_url,
            search_config={search_key: search_config},
            authentication=copy.deepcopy(self.authentication),
            raw=copy.deepcopy(self.raw),
        )
