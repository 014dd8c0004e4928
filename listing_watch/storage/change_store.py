# listing_watch/storage/change_store.py

"""JSON-file backed store of previously observed listings."""

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from listing_watch.config.settings import Settings
from listing_watch.errors import PersistenceWarning
from listing_watch.models.history import HistoryEntry


class ChangeStore:
    """In-memory ``(search_key, identity_key) -> HistoryEntry`` mapping.

    The whole mapping is read by :meth:`load` and rewritten by
    :meth:`save`.  There is no locking: one writer at a time.
    """

    def __init__(
        self,
        path: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.path: Path = path or Settings.CHANGE_HISTORY_PATH
        self.logger = logger or logging.getLogger(
            "listing_watch.change_store"
        )
        self._entries: dict[tuple[str, str], HistoryEntry] = {}

    @staticmethod
    def make_key(search_key: str, identity_key: str) -> str:
        """Document key: the JSON-encoded ``[search_key, identity_key]`` pair."""
        return json.dumps([search_key, identity_key], ensure_ascii=False)

    # ── Persistence ──────────────────────────────────────

    def load(self) -> int:
        """Read the persisted document, replacing in-memory state.

        A missing file yields an empty store.  An unreadable or
        corrupt file is logged and also yields an empty store.
        Returns the number of entries loaded.
        """
        self._entries = {}
        if not self.path.exists():
            self.logger.debug(
                "No change history at %s, starting empty", self.path,
            )
            return 0

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")
            entries: dict[tuple[str, str], HistoryEntry] = {}
            for raw in data.values():
                if not isinstance(raw, dict):
                    continue
                entry = HistoryEntry.from_dict(raw)
                if not entry.search_key or not entry.identity_key:
                    continue
                entries[(entry.search_key, entry.identity_key)] = entry
        except (OSError, ValueError, TypeError) as exc:
            self.logger.warning(
                "Could not load change history from %s (%s: %s); "
                "continuing with empty history",
                self.path,
                PersistenceWarning.__name__,
                exc,
            )
            return 0

        self._entries = entries
        self.logger.info(
            "Loaded %d history entries from %s",
            len(entries),
            self.path,
        )
        return len(entries)

    def save(self) -> Path:
        """Serialise the full mapping and atomically replace the file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            self.make_key(*key): entry.to_dict()
            for key, entry in self._entries.items()
        }

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        self.logger.debug(
            "Saved %d history entries to %s",
            len(payload),
            self.path,
        )
        return self.path

    # ── Mapping access ───────────────────────────────────

    def get(
        self, search_key: str, identity_key: str,
    ) -> HistoryEntry | None:
        return self._entries.get((search_key, identity_key))

    def put(self, entry: HistoryEntry) -> None:
        self._entries[(entry.search_key, entry.identity_key)] = entry

    def remove(self, search_key: str, identity_key: str) -> bool:
        """Delete one entry; returns whether it existed."""
        removed = self._entries.pop((search_key, identity_key), None)
        return removed is not None

    def entries(
        self, search_key: str | None = None,
    ) -> Iterator[HistoryEntry]:
        """Iterate entries, optionally restricted to one search."""
        for entry in list(self._entries.values()):
            if search_key is None or entry.search_key == search_key:
                yield entry

    def __len__(self) -> int:
        return len(self._entries)
