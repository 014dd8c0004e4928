# listing_watch/services/run_scheduler.py

"""Recurring per-search timers driving the orchestrator."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from listing_watch.config.config_store import ConfigStore
from listing_watch.config.logging_config import shutdown_logging
from listing_watch.config.settings import Settings
from listing_watch.models.search import SearchDefinition
from listing_watch.services.search_orchestrator import SearchOrchestrator

logger = logging.getLogger("listing_watch.scheduler")

_STATUS_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def frequency_seconds(frequency: str) -> int:
    """Interval for a named frequency; unknown names fall back to hourly."""
    key = frequency.strip().lower().replace("-", "_").replace(" ", "_")
    seconds = Settings.RUN_FREQUENCIES.get(key)
    if seconds is None:
        logger.warning(
            "Unknown run frequency '%s', defaulting to %s",
            frequency,
            Settings.DEFAULT_FREQUENCY,
        )
        seconds = Settings.RUN_FREQUENCIES[Settings.DEFAULT_FREQUENCY]
    return seconds


def random_delay_ms(
    random_delay: dict[str, int] | None,
    rng: random.Random | None = None,
) -> int:
    """Draw a jitter delay in milliseconds.

    Uses the search's ``{min, max}`` range when configured (a missing
    bound falls back to 0 or ``Settings.JITTER_MAX_FALLBACK_MS``),
    otherwise ``Settings.DEFAULT_JITTER_MS``.
    """
    rng = rng or random.Random()
    if random_delay:
        low = int(random_delay.get("min") or 0)
        high = int(
            random_delay.get("max") or Settings.JITTER_MAX_FALLBACK_MS
        )
    else:
        low, high = Settings.DEFAULT_JITTER_MS
    if high < low:
        high = low
    return rng.randint(low, high)


class RunScheduler:
    """One cancellable timer task per enabled search.

    Runs are launched as their own tasks so that :meth:`stop` only
    prevents future ticks; in-flight runs finish on their own and can be
    awaited with :meth:`wait_for_runs`.
    """

    def __init__(
        self,
        config_store: ConfigStore | None = None,
        orchestrator: SearchOrchestrator | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config_store = config_store or ConfigStore()
        self.orchestrator = orchestrator or SearchOrchestrator(
            self.config_store
        )
        self._sleep = sleep
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.logger = logger or logging.getLogger("listing_watch.scheduler")

        self.running = False
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._next_runs: dict[str, str] = {}
        self._in_flight: dict[str, asyncio.Task[None]] = {}

    # ── Lifecycle ────────────────────────────────────────

    async def start(self, run_immediately: bool | None = None) -> None:
        """Load configurations and schedule every enabled search."""
        if self.running:
            self.logger.warning("Scheduler already running")
            return
        if run_immediately is None:
            run_immediately = Settings.RUN_ON_START

        self.config_store.load()
        self.running = True
        searches = self.config_store.enabled_searches()
        for search in searches:
            self.schedule_search(search, run_immediately)

        self.logger.info(
            "Scheduler started with %d search(es)", len(searches),
        )

    def stop(self) -> None:
        """Cancel every timer and finalise logging."""
        for task in self._timers.values():
            task.cancel()
        self._timers.clear()
        self._next_runs.clear()
        was_running = self.running
        self.running = False
        if was_running:
            self.logger.info("Scheduler stopped")
        shutdown_logging()

    async def wait_for_runs(self) -> None:
        """Await runs that were in flight when called."""
        pending = [t for t in self._in_flight.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "scheduled_searches": list(self._timers),
            "next_runs": dict(self._next_runs),
        }

    # ── Scheduling ───────────────────────────────────────

    def schedule_search(
        self, search: SearchDefinition, run_immediately: bool = True,
    ) -> None:
        """Start (or replace) the timer task for *search*."""
        interval = frequency_seconds(search.run_frequency)
        existing = self._timers.pop(search.name, None)
        if existing is not None:
            existing.cancel()

        first_run = self.clock()
        if not run_immediately:
            first_run += timedelta(seconds=interval)
        self._next_runs[search.name] = first_run.strftime(
            _STATUS_TIME_FORMAT
        )
        self._timers[search.name] = asyncio.create_task(
            self._timer_loop(search, interval, run_immediately),
            name=f"schedule:{search.name}",
        )
        self.logger.info(
            "Scheduled '%s' every %ds (next run %s)",
            search.name,
            interval,
            self._next_runs[search.name],
        )

    async def _timer_loop(
        self,
        search: SearchDefinition,
        interval: int,
        run_immediately: bool,
    ) -> None:
        if run_immediately:
            self._launch(search.name)
        jitter = 0.0
        while True:
            # Ticks keep a fixed cadence; the last jitter is paid back here.
            await self._sleep(max(interval - jitter, 0.0))
            jitter = random_delay_ms(search.random_delay, self.rng) / 1000
            if jitter:
                self.logger.debug(
                    "Delaying '%s' by %.3fs", search.name, jitter,
                )
                await self._sleep(jitter)
            self._launch(search.name)

    def _launch(self, search_name: str) -> None:
        current = self._in_flight.get(search_name)
        if current is not None and not current.done():
            self.logger.warning(
                "Skipping '%s': previous run still in progress",
                search_name,
            )
            return
        self._in_flight[search_name] = asyncio.create_task(
            self._run(search_name), name=f"run:{search_name}",
        )

    async def _run(self, search_name: str) -> None:
        self.logger.info("Scheduled run of '%s' starting", search_name)
        try:
            result = await self.orchestrator.run_search(search_name)
        except Exception as exc:
            self.logger.error(
                "Scheduled run of '%s' failed: %s",
                search_name,
                exc,
                exc_info=True,
            )
            return
        self.logger.info(
            "Scheduled run of '%s' finished: %d results",
            search_name,
            result.total_results,
        )
