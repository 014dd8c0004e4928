# listing_watch/storage/csv_exporter.py

"""Exports listing batches to CSV files."""

import csv
import json
import logging
import re
from pathlib import Path
from typing import Any

from listing_watch.config.settings import Settings
from listing_watch.errors import ExportError
from listing_watch.models.listing import ListingRecord

# Leading columns, in this order, when present in the batch
PREFERRED_COLUMNS: list[str] = [
    "title",
    "price",
    "location",
    "posted_date",
    "posting_id",
    "detail_url",
    "image_url",
    "images",
    "description",
    "is_new",
    "is_changed",
    "changes",
    "scraped_at",
    "source",
    "search_name",
    "site_name",
]

_UNSAFE_FILENAME_RE = re.compile(r"[^\w.\-]+")


def format_header(column: str) -> str:
    """``'posted_date'`` -> ``'Posted Date'``."""
    return column.replace("_", " ").title()


def safe_filename(name: str) -> str:
    """Replace characters that are awkward in file names."""
    return _UNSAFE_FILENAME_RE.sub("_", name).strip("_") or "export"


class CsvExporter:
    """Write listing batches to CSV files under a results directory."""

    def __init__(
        self,
        results_dir: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.results_dir: Path = results_dir or Settings.RESULTS_DIR
        self.logger = logger or logging.getLogger("listing_watch.storage")

    @staticmethod
    def _row(record: ListingRecord) -> dict[str, Any]:
        """Flatten one record into CSV-ready column values."""
        row: dict[str, Any] = record.to_snapshot()
        attributes: dict[str, str] = row.pop("attributes")
        row["images"] = "; ".join(record.images)
        row["is_new"] = record.is_new
        row["is_changed"] = record.is_changed
        row["changes"] = "; ".join(
            f"{c.get('field')}: {c.get('previous_value')} → "
            f"{c.get('current_value')}"
            for c in record.changes
        )
        for key, value in attributes.items():
            if key not in row:
                row[key] = value
        for key, value in row.items():
            if isinstance(value, (dict, list)):
                row[key] = json.dumps(value, ensure_ascii=False)
            elif value is None:
                row[key] = ""
        return row

    @staticmethod
    def _columns(rows: list[dict[str, Any]]) -> list[str]:
        seen: set[str] = set()
        for row in rows:
            seen.update(row)
        columns = [c for c in PREFERRED_COLUMNS if c in seen]
        extras: list[str] = []
        for row in rows:
            for key in row:
                if key not in PREFERRED_COLUMNS and key not in extras:
                    extras.append(key)
        return columns + extras

    def export(
        self,
        records: list[ListingRecord],
        filename_hint: str,
    ) -> Path | None:
        """Write *records* to ``results_dir/filename_hint``.

        Returns the written path, or ``None`` for an empty batch.
        """
        if not records:
            self.logger.debug("No listings to export for %s", filename_hint)
            return None

        self.results_dir.mkdir(parents=True, exist_ok=True)
        filename = safe_filename(filename_hint)
        if not filename.endswith(".csv"):
            filename += ".csv"
        filepath = self.results_dir / filename

        rows = [self._row(r) for r in records]
        columns = self._columns(rows)

        try:
            with open(filepath, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow([format_header(c) for c in columns])
                for row in rows:
                    writer.writerow([row.get(c, "") for c in columns])
        except OSError as exc:
            raise ExportError(
                f"Could not write {filepath}: {exc}",
                {"records": len(records)},
            ) from exc

        self.logger.info(
            "Exported %d listings to %s", len(records), filepath,
        )
        return filepath
