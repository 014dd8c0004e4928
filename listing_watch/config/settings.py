# listing_watch/config/settings.py

"""Central configuration for the listing_watch engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_path(name: str, default: Path) -> Path:
    """Return a path from the environment, or *default* when unset."""
    value = os.getenv(name)
    return Path(value).expanduser() if value else default


class Settings:
    """Central configuration for the listing_watch engine."""

    # --- Extraction (HTTP) ---
    REQUEST_DELAY: float = 2.0          # Seconds between page requests
    REQUEST_TIMEOUT: int = 20           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    MAX_PAGES: int = 5                  # Max pagination depth per site

    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Change detection ---
    DEFAULT_TRACK_FIELDS: list[str] = [
        "title",
        "price",
        "description",
        "images",
    ]
    HISTORY_RETENTION_DAYS: int = 30
    SUMMARY_WINDOW_HOURS: int = 24

    # --- Scheduling ---
    RUN_FREQUENCIES: dict[str, int] = {  # seconds
        "every_30_minutes": 30 * 60,
        "hourly": 60 * 60,
        "daily": 24 * 60 * 60,
        "weekly": 7 * 24 * 60 * 60,
    }
    DEFAULT_FREQUENCY: str = "hourly"
    DEFAULT_JITTER_MS: tuple[int, int] = (0, 3000)
    JITTER_MAX_FALLBACK_MS: int = 5000  # when only a min is configured
    RUN_ON_START: bool = True

    # --- Notifications ---
    NEW_LISTING_PREVIEW: int = 5
    KEYWORD_MATCH_PREVIEW: int = 3

    # --- Export ---
    CSV_FILENAME_TEMPLATE: str = "{search_name}_{site_name}_{timestamp}.csv"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    CONFIG_DIR: Path = _env_path(
        "LISTING_WATCH_CONFIG_DIR",
        BASE_DIR / "listing_watch" / "config",
    )
    SEARCHES_PATH: Path = CONFIG_DIR / "searches.json"
    SITES_DIR: Path = CONFIG_DIR / "sites"
    CREDENTIALS_PATH: Path = CONFIG_DIR / "credentials.json"
    DATA_DIR: Path = _env_path("LISTING_WATCH_DATA_DIR", BASE_DIR / "data")
    CHANGE_HISTORY_PATH: Path = DATA_DIR / "change_history.json"
    RESULTS_DIR: Path = _env_path(
        "LISTING_WATCH_RESULTS_DIR", BASE_DIR / "results"
    )
    LOGS_DIR: Path = _env_path("LISTING_WATCH_LOGS_DIR", BASE_DIR / "logs")

    # --- Extractors (registry keyed on normalised site name) ---
    AVAILABLE_EXTRACTORS: list[dict[str, str]] = [
        {
            "id": "craigslist",
            "label": "Craigslist",
            "extractor": (
                "listing_watch.extractors.html_extractor"
                ".HtmlListingExtractor"
            ),
        },
        {
            "id": "mock",
            "label": "Mock",
            "extractor": (
                "listing_watch.extractors.mock_extractor.MockExtractor"
            ),
        },
    ]
