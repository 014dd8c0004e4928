# listing_watch/services/notifier.py

"""Notification payloads and the notifier interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from listing_watch.models.listing import ListingRecord
from listing_watch.models.search import NotificationConfig


@dataclass
class NotificationPayload:
    """One notification: the trigger that fired and a listing preview."""

    trigger: str
    count: int
    listings: list[ListingRecord] = field(
        default_factory=lambda: list[ListingRecord]()
    )


class Notifier(ABC):
    """Delivers notification payloads somewhere a human will see them."""

    @abstractmethod
    def notify(
        self,
        label: str,
        payload: NotificationPayload,
        notification_config: NotificationConfig,
    ) -> None:
        """Deliver *payload*; *label* names the site or search.

        Raises ``NotificationError`` when delivery fails.
        """
        ...


class LogNotifier(Notifier):
    """Writes notifications to the log instead of an external channel."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("listing_watch.notifier")

    def notify(
        self,
        label: str,
        payload: NotificationPayload,
        notification_config: NotificationConfig,
    ) -> None:
        recipients = notification_config.email_settings.get("to") or []
        self.logger.warning(
            "[%s] %s: %d listing(s)%s",
            label,
            payload.trigger,
            payload.count,
            f" (for {', '.join(recipients)})" if recipients else "",
        )
        for listing in payload.listings:
            self.logger.info(
                "[%s]   %s | %s | %s | %s",
                label,
                listing.title or "No title",
                listing.price if listing.price is not None else "n/a",
                listing.location or "-",
                listing.detail_url or "-",
            )
