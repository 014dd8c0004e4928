# listing_watch/errors.py

"""Exception hierarchy for listing_watch.

``ConfigurationError`` is fatal to the call that raised it.
``CollaboratorFailure`` subclasses are caught by the orchestrator at
per-site / per-notification granularity.  ``PersistenceWarning`` is
only ever logged.
"""


class ListingWatchError(Exception):
    """Base exception for all listing_watch errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, object] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, object] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(
                f"{k}={v}" for k, v in self.details.items()
            )
            return f"{self.message} ({details_str})"
        return self.message


# ── Configuration ────────────────────────────────────────


class ConfigurationError(ListingWatchError):
    """Missing or malformed search/site configuration."""


class NotFoundError(ConfigurationError):
    """A named search or site does not exist."""


# ── Collaborators ────────────────────────────────────────


class CollaboratorFailure(ListingWatchError):
    """An external collaborator (extractor, exporter, notifier) failed."""


class ExtractionError(CollaboratorFailure):
    """An extractor could not produce listings for a site."""


class ExportError(CollaboratorFailure):
    """Writing an export file failed."""


class NotificationError(CollaboratorFailure):
    """A notification payload could not be delivered."""


# ── Persistence ──────────────────────────────────────────


class PersistenceWarning(UserWarning):
    """The change history could not be read; starting empty."""
