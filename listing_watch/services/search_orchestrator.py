# listing_watch/services/search_orchestrator.py

"""Runs a configured search across its sites, one site at a time."""

import asyncio
import copy
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from listing_watch.config.config_store import ConfigStore
from listing_watch.config.settings import Settings
from listing_watch.errors import ConfigurationError, NotFoundError
from listing_watch.extractors.base_extractor import Extractor
from listing_watch.extractors.factory import create_extractor
from listing_watch.filters.result_filter import ResultFilter
from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import (
    NotificationTriggers,
    SearchDefinition,
    SiteConfig,
    SiteSearch,
)
from listing_watch.services.change_detector import BatchResult, ChangeDetector
from listing_watch.services.notifier import (
    LogNotifier,
    NotificationPayload,
    Notifier,
)
from listing_watch.storage.csv_exporter import CsvExporter


@dataclass
class SiteRunResult:
    """Outcome of one site within a search run."""

    site_name: str
    results: list[ListingRecord] = field(
        default_factory=lambda: list[ListingRecord]()
    )
    extracted_count: int = 0
    excluded_count: int = 0
    new_count: int = 0
    changed_count: int = 0
    export_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SearchRunResult:
    """Container for a completed (or skipped) search run."""

    search_name: str
    results: list[ListingRecord] = field(
        default_factory=lambda: list[ListingRecord]()
    )
    total_results: int = 0
    skipped: bool = False
    site_runs: list[SiteRunResult] = field(
        default_factory=lambda: list[SiteRunResult]()
    )

    @property
    def failures(self) -> list[SiteRunResult]:
        return [r for r in self.site_runs if not r.ok]


# ── Pure helpers ─────────────────────────────────────────


def build_site_search_config(
    site_config: SiteConfig,
    site_search: SiteSearch,
    search: SearchDefinition,
    logger: logging.Logger | None = None,
) -> tuple[SiteConfig, str]:
    """Combine the site's sub-configuration with the search's settings.

    Returns the narrowed site config and the sub-configuration key that
    was actually used.  A missing key falls back to the first
    available sub-configuration.
    """
    log = logger or logging.getLogger("listing_watch.orchestrator")
    if not site_config.search_config:
        raise ConfigurationError(
            f"Site '{site_config.name}' has no search configurations",
        )

    key = site_search.search_key
    if key not in site_config.search_config:
        fallback = next(iter(site_config.search_config))
        if key:
            log.warning(
                "Search config '%s' not found for %s, using '%s' instead",
                key,
                site_config.name,
                fallback,
            )
        key = fallback

    merged: dict[str, Any] = copy.deepcopy(site_config.search_config[key])
    if site_search.search_url:
        merged["url"] = site_search.search_url
    merged["filters"] = search.filters.to_dict()
    return site_config.with_search_config(key, merged), key


def resolve_tracked_fields(
    search: SearchDefinition, search_config: dict[str, Any],
) -> list[str]:
    """Search override, else the site's change-detection fields, else defaults."""
    if search.track_fields:
        return list(search.track_fields)
    detailed = search_config.get("detailed_scraping") or {}
    site_fields = (detailed.get("change_detection") or {}).get(
        "track_fields"
    )
    if isinstance(site_fields, list) and site_fields:
        return [str(f) for f in site_fields]
    return list(Settings.DEFAULT_TRACK_FIELDS)


def build_notification_payloads(
    batch: BatchResult,
    records: Sequence[ListingRecord],
    triggers: NotificationTriggers,
) -> list[NotificationPayload]:
    payloads: list[NotificationPayload] = []

    if triggers.new_listing and batch.new:
        payloads.append(NotificationPayload(
            trigger="New Listing",
            count=len(batch.new),
            listings=list(batch.new[:Settings.NEW_LISTING_PREVIEW]),
        ))

    if triggers.keyword_match:
        keywords = [k.lower() for k in triggers.keyword_match]
        matches = [
            r for r in records
            if any(k in r.title.lower() for k in keywords)
        ]
        if matches:
            payloads.append(NotificationPayload(
                trigger="Keyword Match",
                count=len(matches),
                listings=matches[:Settings.KEYWORD_MATCH_PREVIEW],
            ))

    return payloads


def _annotate(records: Sequence[ListingRecord], batch: BatchResult) -> None:
    new_ids = {id(r) for r in batch.new}
    changed = {id(c.record): c.changes for c in batch.changed}
    for record in records:
        record.is_new = id(record) in new_ids
        record.is_changed = id(record) in changed
        record.changes = [
            c.to_dict() for c in changed.get(id(record), [])
        ]


# ── Orchestrator ─────────────────────────────────────────


class SearchOrchestrator:
    """Coordinates extraction, filtering, change detection and export."""

    def __init__(
        self,
        config_store: ConfigStore | None = None,
        change_detector: ChangeDetector | None = None,
        extractor_factory: Callable[..., Extractor] = create_extractor,
        exporter: CsvExporter | None = None,
        notifier: Notifier | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config_store = config_store or ConfigStore()
        self.change_detector = change_detector or ChangeDetector()
        self.extractor_factory = extractor_factory
        self._exporter = exporter
        self.notifier = notifier or LogNotifier()
        self.logger = logger or logging.getLogger(
            "listing_watch.orchestrator"
        )
        self._store_loaded = False

    @property
    def exporter(self) -> CsvExporter:
        if self._exporter is None:
            self._exporter = CsvExporter(self.config_store.output_directory)
        return self._exporter

    def _ensure_store_loaded(self) -> None:
        if not self._store_loaded:
            self.change_detector.store.load()
            self._store_loaded = True

    # ── Private helpers ──────────────────────────────────

    async def _extract(
        self,
        site_config: SiteConfig,
        search_key: str,
        max_listings: int | None,
    ) -> list[ListingRecord]:
        """Run the extractor in a worker thread and always close it."""
        extractor = self.extractor_factory(site_config)
        try:
            url = str(site_config.search_config[search_key].get("url", ""))
            raw = await asyncio.to_thread(
                extractor.extract,
                url,
                site_config,
                search_key,
                max_listings,
            )
        finally:
            await asyncio.to_thread(extractor.close)
        return [ListingRecord.from_raw(r) for r in raw or []]

    async def _export(
        self,
        records: list[ListingRecord],
        search_name: str,
        site_name: str,
    ) -> Path | None:
        try:
            filename = self.config_store.filename_template.format(
                search_name=search_name,
                site_name=site_name,
                timestamp=datetime.now().strftime("%Y%m%d_%H%M%S"),
            )
            return await asyncio.to_thread(
                self.exporter.export, records, filename,
            )
        except Exception as exc:
            self.logger.error(
                "Export failed for %s on %s: %s",
                search_name,
                site_name,
                exc,
                exc_info=True,
            )
            return None

    def _notify(
        self,
        site_name: str,
        search: SearchDefinition,
        batch: BatchResult,
        records: list[ListingRecord],
    ) -> None:
        config = search.notifications
        payloads = build_notification_payloads(
            batch, records, config.triggers,
        )
        for payload in payloads:
            try:
                self.notifier.notify(site_name, payload, config)
            except Exception as exc:
                self.logger.error(
                    "Notification '%s' failed for %s: %s",
                    payload.trigger,
                    site_name,
                    exc,
                    exc_info=True,
                )

    async def _run_site(
        self, search: SearchDefinition, site_search: SiteSearch,
    ) -> SiteRunResult:
        run = SiteRunResult(site_name=site_search.site_name)

        site_config = self.config_store.get_site_config(
            site_search.site_config
        )
        if site_config is None:
            run.error = f"Site config not found: {site_search.site_config}"
            self.logger.error(
                "[%s] %s", search.name, run.error,
            )
            return run

        try:
            credentials = self.config_store.credentials_for(
                site_search.site_name
            )
            if credentials:
                site_config = site_config.with_credentials(credentials)

            site_config, search_key = build_site_search_config(
                site_config, site_search, search, self.logger,
            )
            self.logger.info(
                "[%s] Extracting from %s", search.name, site_search.site_name,
            )
            extracted = await self._extract(
                site_config, search_key, search.max_listings_per_site,
            )
            run.extracted_count = len(extracted)

            kept, run.excluded_count = ResultFilter.apply(
                extracted, search.filters,
            )
            for record in kept:
                record.search_name = search.name
                record.site_name = site_search.site_name

            tracked = resolve_tracked_fields(
                search, site_config.search_config[search_key],
            )
            batch = self.change_detector.process_batch(
                kept, search.name, tracked,
            )
            _annotate(kept, batch)
            run.new_count = len(batch.new)
            run.changed_count = len(batch.changed)
            run.results = kept

            if kept:
                run.export_path = await self._export(
                    kept, search.name, site_search.site_name,
                )
                if search.notifications.enabled:
                    self._notify(
                        site_search.site_name, search, batch, kept,
                    )
        except Exception as exc:
            run.error = str(exc)
            self.logger.error(
                "[%s] Error on %s: %s",
                search.name,
                site_search.site_name,
                exc,
                exc_info=True,
            )
            return run

        self.logger.info(
            "[%s] %s: %d listings (%d new, %d changed, %d excluded)",
            search.name,
            site_search.site_name,
            len(run.results),
            run.new_count,
            run.changed_count,
            run.excluded_count,
        )
        return run

    # ── Public API ───────────────────────────────────────

    async def run_search(
        self, search_name: str, site_name: str | None = None,
    ) -> SearchRunResult:
        """Run *search_name* on every enabled site, or only *site_name*.

        Raises ``NotFoundError`` for an unknown search or site.  A
        disabled search or site yields a skipped result.
        """
        search = self.config_store.get_search(search_name)
        result = SearchRunResult(search_name=search_name)

        if not search.enabled:
            self.logger.info("Search '%s' is disabled", search_name)
            result.skipped = True
            return result

        if site_name is not None:
            site_search = search.sites.get(site_name)
            if site_search is None:
                raise NotFoundError(
                    f"Site '{site_name}' not configured for search "
                    f"'{search_name}'",
                    {"available": ", ".join(sorted(search.sites))},
                )
            if not site_search.enabled:
                self.logger.info(
                    "Site '%s' is disabled for search '%s'",
                    site_name,
                    search_name,
                )
                result.skipped = True
                return result
            sites = [site_search]
        else:
            sites = search.enabled_sites

        self._ensure_store_loaded()
        self.logger.info(
            "Running search '%s' on %d site(s)", search_name, len(sites),
        )

        for site_search in sites:
            run = await self._run_site(search, site_search)
            result.site_runs.append(run)
            result.results.extend(run.results)

        result.total_results = len(result.results)
        self.logger.info(
            "Search '%s' complete: %d results, %d site failure(s)",
            search_name,
            result.total_results,
            len(result.failures),
        )
        return result

    async def run_all_enabled_searches(self) -> list[SearchRunResult]:
        """Run every enabled search in turn; failures are logged."""
        results: list[SearchRunResult] = []
        for search in self.config_store.enabled_searches():
            try:
                outcome = await self.run_search(search.name)
            except Exception as exc:
                self.logger.error(
                    "Search '%s' failed: %s",
                    search.name,
                    exc,
                    exc_info=True,
                )
                continue
            if not outcome.skipped:
                results.append(outcome)
        return results
