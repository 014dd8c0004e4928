# listing_watch/extractors/html_extractor.py

"""Config-driven HTML listing extractor.

Fetches a search results page over HTTP and reads listings using the
``listing_container`` selector and ``data_fields`` declared in the
site's configuration document.  It has no knowledge of any particular
site's markup beyond that document.
"""

import time
from datetime import datetime
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from curl_cffi import requests as curl_requests

from listing_watch.errors import ExtractionError
from listing_watch.extractors.base_extractor import Extractor
from listing_watch.models.listing import ListingRecord, parse_price
from listing_watch.models.search import SiteConfig

_URL_ATTRIBUTES: frozenset[str] = frozenset({"href", "src", "data-src"})


class HtmlListingExtractor(Extractor):
    """Extract listings from server-rendered HTML search pages."""

    def __init__(self, site_config: SiteConfig, **kwargs: Any) -> None:
        super().__init__(site_config, **kwargs)
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    # ── HTTP ─────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = dict(self.settings.DEFAULT_HEADERS)
        if self.site_config.base_url:
            headers["Referer"] = self.site_config.base_url
        return headers

    def _fetch_get(self, url: str) -> curl_requests.Response | None:
        """GET with retries and linear backoff."""
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=self._headers(),
                    timeout=self._request_timeout,
                )
                if resp.status_code == 200:
                    return resp
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.site_name,
                    resp.status_code,
                    attempt + 1,
                )
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.site_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
            time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))
        return None

    def _get_page(self, url: str) -> BeautifulSoup | None:
        resp = self._fetch_get(url)
        if resp is None:
            return None
        return BeautifulSoup(resp.text, "lxml")

    # ── Parsing ──────────────────────────────────────────

    def _resolve(self, value: str, page_url: str) -> str:
        return urljoin(page_url, value) if value else value

    def _read_field(
        self,
        container: Tag,
        field: dict[str, Any],
        page_url: str,
    ) -> Any:
        """Read one configured field from a listing container."""
        selector = str(field.get("selector", "."))
        attribute = str(field.get("attribute", "text"))
        multiple = bool(field.get("multiple", False))

        if selector == ".":
            elements = [container]
        elif multiple:
            elements = list(container.select(selector))
        else:
            found = container.select_one(selector)
            elements = [found] if found is not None else []

        values: list[str] = []
        for element in elements:
            if attribute == "text":
                value = element.get_text(" ", strip=True)
            else:
                raw = element.get(attribute)
                if isinstance(raw, list):
                    raw = " ".join(raw)
                value = str(raw).strip() if raw else ""
                if attribute in _URL_ATTRIBUTES:
                    value = self._resolve(value, page_url)
            if value:
                values.append(value)

        if multiple:
            return values
        return values[0] if values else None

    def parse_listings(
        self,
        soup: BeautifulSoup,
        search_config: dict[str, Any],
        page_url: str,
    ) -> list[dict[str, Any]]:
        """Parse every listing container on one results page."""
        selectors: dict[str, Any] = search_config.get("selectors") or {}
        container_selector = selectors.get("listing_container")
        if not container_selector:
            raise ExtractionError(
                "Site config has no listing_container selector",
                {"site": self.site_name},
            )
        data_fields: list[dict[str, Any]] = (
            search_config.get("data_fields") or []
        )

        scraped_at = datetime.now().isoformat()
        items: list[dict[str, Any]] = []
        for container in soup.select(str(container_selector)):
            item: dict[str, Any] = {}
            for field in data_fields:
                name = field.get("name")
                if not name:
                    continue
                value = self._read_field(container, field, page_url)
                if value in (None, "", []):
                    continue
                if name == "price":
                    value = parse_price(value)
                item[str(name)] = value
            if not item.get("title") and not item.get("url"):
                continue
            item["scraped_at"] = scraped_at
            item["source"] = self.site_name.lower().replace(" ", "-")
            items.append(item)
        return items

    def _next_page_url(
        self,
        soup: BeautifulSoup,
        search_config: dict[str, Any],
        page_url: str,
    ) -> str | None:
        pagination: dict[str, Any] = search_config.get("pagination") or {}
        next_selector = pagination.get("next_selector")
        if not pagination.get("enabled") or not next_selector:
            return None
        link = soup.select_one(str(next_selector))
        href = link.get("href") if link is not None else None
        if not href or isinstance(href, list):
            return None
        return self._resolve(str(href), page_url)

    # ── Extractor API ────────────────────────────────────

    def extract(
        self,
        url: str,
        site_config: SiteConfig,
        search_key: str,
        max_listings: int | None = None,
    ) -> list[dict[str, Any] | ListingRecord]:
        """Fetch *url* (and following pages) and parse its listings."""
        search_config = site_config.search_config.get(search_key)
        if search_config is None:
            raise ExtractionError(
                f"Search config '{search_key}' not found",
                {"site": self.site_name},
            )
        target = url or str(search_config.get("url", ""))
        if not target:
            raise ExtractionError(
                "No search URL configured", {"site": self.site_name},
            )

        pagination: dict[str, Any] = search_config.get("pagination") or {}
        max_pages = int(pagination.get("max_pages", self.settings.MAX_PAGES))

        results: list[dict[str, Any] | ListingRecord] = []
        page_url: str | None = target
        page = 0
        while page_url and page < max_pages:
            if page:
                time.sleep(self.settings.REQUEST_DELAY)
            soup = self._get_page(page_url)
            if soup is None:
                if page == 0:
                    raise ExtractionError(
                        f"Failed to fetch {page_url}",
                        {"site": self.site_name},
                    )
                self.logger.warning(
                    "[%s] Failed to fetch page %d, stopping",
                    self.site_name,
                    page + 1,
                )
                break

            results.extend(
                self.parse_listings(soup, search_config, page_url)
            )
            if max_listings and len(results) >= max_listings:
                results = results[:max_listings]
                break
            page_url = self._next_page_url(soup, search_config, page_url)
            page += 1

        self.logger.info(
            "[%s] Extracted %d listings from %s",
            self.site_name,
            len(results),
            target,
        )
        return results

    def close(self) -> None:
        self.session.close()
