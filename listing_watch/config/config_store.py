# listing_watch/config/config_store.py

"""Loads search definitions, site documents and credentials from disk."""

import json
import logging
from pathlib import Path
from typing import Any

from listing_watch.config.settings import Settings
from listing_watch.errors import ConfigurationError, NotFoundError
from listing_watch.models.search import SearchDefinition, SiteConfig


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class ConfigStore:
    """Read-only view over the JSON configuration directory.

    Layout::

        searches.json      {"global_settings": {...}, "searches": {...}}
        sites/<name>.json  one document per site
        credentials.json   optional {"sites": {<site>: {...}}}
    """

    def __init__(
        self,
        searches_path: Path | None = None,
        sites_dir: Path | None = None,
        credentials_path: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.searches_path = searches_path or Settings.SEARCHES_PATH
        self.sites_dir = sites_dir or Settings.SITES_DIR
        self.credentials_path = credentials_path or Settings.CREDENTIALS_PATH
        self.logger = logger or logging.getLogger("listing_watch.config")

        self.global_settings: dict[str, Any] = {}
        self.searches: dict[str, SearchDefinition] = {}
        self.site_configs: dict[str, SiteConfig] = {}
        self.credentials: dict[str, Any] = {}
        self._loaded = False

    @classmethod
    def from_dir(cls, config_dir: Path, **kwargs: Any) -> "ConfigStore":
        return cls(
            searches_path=config_dir / "searches.json",
            sites_dir=config_dir / "sites",
            credentials_path=config_dir / "credentials.json",
            **kwargs,
        )

    # ── Loading ──────────────────────────────────────────

    def load(self) -> "ConfigStore":
        """(Re)read every configuration document.

        Raises ``ConfigurationError`` when the searches file or a site
        document is missing or malformed.  Credentials are optional.
        """
        self.logger.debug("Loading configurations...")
        self.site_configs = self._load_sites()
        self.credentials = self._load_credentials()
        self._load_searches()
        self._loaded = True
        self.logger.info(
            "Configurations loaded: %d searches (%d enabled), %d sites",
            len(self.searches),
            len(self.enabled_searches()),
            len(self.site_configs),
        )
        return self

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _load_searches(self) -> None:
        try:
            data = _read_json(self.searches_path)
        except FileNotFoundError as exc:
            raise ConfigurationError(
                "Searches configuration not found",
                {"path": self.searches_path},
            ) from exc
        except (OSError, ValueError) as exc:
            raise ConfigurationError(
                f"Could not read searches configuration: {exc}",
                {"path": self.searches_path},
            ) from exc

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Searches configuration must be a JSON object",
                {"path": self.searches_path},
            )
        raw_searches = data.get("searches") or {}
        self.global_settings = dict(data.get("global_settings") or {})
        self.searches = {
            name: SearchDefinition.from_dict(name, raw)
            for name, raw in raw_searches.items()
            if isinstance(raw, dict)
        }

    def _load_sites(self) -> dict[str, SiteConfig]:
        sites: dict[str, SiteConfig] = {}
        if not self.sites_dir.is_dir():
            self.logger.warning(
                "Site configuration directory not found: %s",
                self.sites_dir,
            )
            return sites
        for path in sorted(self.sites_dir.glob("*.json")):
            try:
                data = _read_json(path)
            except (OSError, ValueError) as exc:
                raise ConfigurationError(
                    f"Could not read site configuration: {exc}",
                    {"path": path},
                ) from exc
            if not isinstance(data, dict):
                raise ConfigurationError(
                    "Site configuration must be a JSON object",
                    {"path": path},
                )
            sites[path.stem] = SiteConfig.from_dict(data)
        return sites

    def _load_credentials(self) -> dict[str, Any]:
        if not self.credentials_path.exists():
            self.logger.warning(
                "credentials.json not found; running without "
                "authentication for sites that require it"
            )
            return {}
        try:
            data = _read_json(self.credentials_path)
        except (OSError, ValueError) as exc:
            self.logger.error(
                "Error loading %s: %s", self.credentials_path, exc,
            )
            return {}
        if not isinstance(data, dict):
            self.logger.error(
                "Ignoring %s: not a JSON object", self.credentials_path,
            )
            return {}
        self.logger.debug("Loaded credentials")
        return data

    # ── Queries ──────────────────────────────────────────

    def get_search(self, name: str) -> SearchDefinition:
        self._ensure_loaded()
        search = self.searches.get(name)
        if search is None:
            raise NotFoundError(
                f"Search '{name}' not found",
                {"available": ", ".join(sorted(self.searches))},
            )
        return search

    def enabled_searches(self) -> list[SearchDefinition]:
        self._ensure_loaded()
        return [s for s in self.searches.values() if s.enabled]

    def get_site_config(self, name: str) -> SiteConfig | None:
        self._ensure_loaded()
        return self.site_configs.get(name)

    def credentials_for(self, site_name: str) -> dict[str, Any] | None:
        self._ensure_loaded()
        sites = self.credentials.get("sites") or {}
        creds = sites.get(site_name)
        return dict(creds) if isinstance(creds, dict) else None

    @property
    def output_directory(self) -> Path | None:
        value = self.global_settings.get("output_directory")
        return Path(value) if value else None

    @property
    def filename_template(self) -> str:
        csv_format = self.global_settings.get("csv_format") or {}
        return str(
            csv_format.get("filename_template")
            or Settings.CSV_FILENAME_TEMPLATE
        )
