# tests/test_run_scheduler.py

"""Tests for RunScheduler timers, jitter and lifecycle."""

import asyncio
import random
import unittest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from listing_watch.models.search import SearchDefinition
from listing_watch.services.run_scheduler import (
    RunScheduler,
    frequency_seconds,
    random_delay_ms,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


class ScriptedSleep:
    """Return immediately for the first *immediate* calls, then block."""

    def __init__(self, immediate: int = 0) -> None:
        self.calls: list[float] = []
        self.immediate = immediate
        self._forever = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if len(self.calls) > self.immediate:
            await self._forever.wait()


async def _drain() -> None:
    """Let pending tasks run a few steps."""
    for _ in range(10):
        await asyncio.sleep(0)


class TestHelpers(unittest.TestCase):
    """Frequency lookup and jitter draws."""

    def test_known_frequencies(self) -> None:
        self.assertEqual(frequency_seconds("every_30_minutes"), 1800)
        self.assertEqual(frequency_seconds("hourly"), 3600)
        self.assertEqual(frequency_seconds("daily"), 86400)
        self.assertEqual(frequency_seconds("weekly"), 604800)

    def test_hyphenated_spelling(self) -> None:
        self.assertEqual(frequency_seconds("every-30-minutes"), 1800)

    def test_unknown_defaults_to_hourly(self) -> None:
        with self.assertLogs("listing_watch.scheduler", "WARNING"):
            self.assertEqual(frequency_seconds("fortnightly"), 3600)

    def test_default_jitter_range(self) -> None:
        rng = MagicMock()
        rng.randint.return_value = 1234
        self.assertEqual(random_delay_ms(None, rng), 1234)
        rng.randint.assert_called_once_with(0, 3000)

    def test_configured_jitter_range(self) -> None:
        rng = MagicMock()
        random_delay_ms({"min": 1000, "max": 4000}, rng)
        rng.randint.assert_called_once_with(1000, 4000)

    def test_min_only_uses_fallback_max(self) -> None:
        rng = MagicMock()
        random_delay_ms({"min": 1000}, rng)
        rng.randint.assert_called_once_with(1000, 5000)

    def test_max_only_uses_zero_min(self) -> None:
        rng = MagicMock()
        random_delay_ms({"max": 60000}, rng)
        rng.randint.assert_called_once_with(0, 60000)

    def test_max_only_range_is_honoured(self) -> None:
        draws = [
            random_delay_ms({"max": 60000}, random.Random(seed))
            for seed in range(200)
        ]
        self.assertGreater(max(draws), 3000)
        self.assertLessEqual(max(draws), 60000)

    def test_inverted_range_clamped(self) -> None:
        self.assertEqual(
            random_delay_ms({"min": 2000, "max": 10}, random.Random(1)), 2000,
        )


class TestRunScheduler(unittest.IsolatedAsyncioTestCase):
    """Lifecycle and tick behaviour with injected sleep and clock."""

    async def asyncSetUp(self) -> None:
        patcher = patch("listing_watch.services.run_scheduler.shutdown_logging")
        self.shutdown_logging = patcher.start()
        self.addCleanup(patcher.stop)

        self.searches = [
            SearchDefinition(name="BMW Z3", enabled=True, run_frequency="hourly"),
            SearchDefinition(name="Miata", enabled=True, run_frequency="daily"),
        ]
        self.config_store = MagicMock()
        self.config_store.enabled_searches.return_value = self.searches
        self.orchestrator = MagicMock()
        self.orchestrator.run_search = AsyncMock(
            return_value=MagicMock(total_results=0)
        )
        self.rng = MagicMock()
        self.rng.randint.return_value = 0
        self.sleep = ScriptedSleep()
        self.scheduler = self._make_scheduler()

    async def asyncTearDown(self) -> None:
        self.scheduler.stop()
        await _drain()

    def _make_scheduler(self) -> RunScheduler:
        return RunScheduler(
            config_store=self.config_store,
            orchestrator=self.orchestrator,
            sleep=self.sleep,
            rng=self.rng,
            clock=lambda: NOW,
        )

    async def test_start_runs_every_search_immediately(self) -> None:
        await self.scheduler.start(run_immediately=True)
        await _drain()

        self.config_store.load.assert_called_once()
        names = sorted(c.args[0] for c in self.orchestrator.run_search.call_args_list)
        self.assertEqual(names, ["BMW Z3", "Miata"])
        self.assertEqual(sorted(self.sleep.calls), [3600, 86400])

    async def test_status_reflects_schedule(self) -> None:
        await self.scheduler.start(run_immediately=False)
        status = self.scheduler.get_status()

        self.assertTrue(status["running"])
        self.assertEqual(status["scheduled_searches"], ["BMW Z3", "Miata"])
        self.assertEqual(
            status["next_runs"],
            {"BMW Z3": "2026-03-01 13:00:00", "Miata": "2026-03-02 12:00:00"},
        )

    async def test_suppressed_first_run(self) -> None:
        await self.scheduler.start(run_immediately=False)
        await _drain()
        self.orchestrator.run_search.assert_not_called()

    async def test_tick_waits_interval_then_jitter(self) -> None:
        self.config_store.enabled_searches.return_value = self.searches[:1]
        self.sleep.immediate = 2
        self.rng.randint.return_value = 1500

        await self.scheduler.start(run_immediately=False)
        await _drain()

        self.assertEqual(self.sleep.calls[:2], [3600, 1.5])
        self.orchestrator.run_search.assert_awaited_once_with("BMW Z3")

    async def test_jitter_does_not_drift_cadence(self) -> None:
        self.config_store.enabled_searches.return_value = self.searches[:1]
        self.sleep.immediate = 4
        self.rng.randint.return_value = 1500

        await self.scheduler.start(run_immediately=False)
        await _drain()

        self.assertEqual(self.sleep.calls[:4], [3600, 1.5, 3598.5, 1.5])
        await self.scheduler.wait_for_runs()

    async def test_stop_cancels_timers(self) -> None:
        await self.scheduler.start(run_immediately=False)
        timers = list(self.scheduler._timers.values())
        self.scheduler.stop()
        await _drain()

        self.assertTrue(all(t.cancelled() for t in timers))
        status = self.scheduler.get_status()
        self.assertFalse(status["running"])
        self.assertEqual(status["scheduled_searches"], [])
        self.assertEqual(status["next_runs"], {})
        self.shutdown_logging.assert_called()

    async def test_stop_does_not_interrupt_in_flight_run(self) -> None:
        release = asyncio.Event()

        async def slow_run(name: str) -> MagicMock:
            await release.wait()
            return MagicMock(total_results=3)

        self.orchestrator.run_search.side_effect = slow_run
        await self.scheduler.start(run_immediately=True)
        await _drain()
        self.scheduler.stop()

        run_task = self.scheduler._in_flight["BMW Z3"]
        self.assertFalse(run_task.done())
        release.set()
        await self.scheduler.wait_for_runs()
        self.assertTrue(run_task.done())
        self.assertFalse(run_task.cancelled())

    async def test_overlapping_tick_skipped(self) -> None:
        self.config_store.enabled_searches.return_value = self.searches[:1]
        self.sleep.immediate = 1
        release = asyncio.Event()

        async def slow_run(name: str) -> MagicMock:
            await release.wait()
            return MagicMock(total_results=0)

        self.orchestrator.run_search.side_effect = slow_run
        with self.assertLogs("listing_watch.scheduler", "WARNING") as logs:
            await self.scheduler.start(run_immediately=True)
            await _drain()

        self.assertEqual(self.orchestrator.run_search.call_count, 1)
        self.assertTrue(any("still in progress" in m for m in logs.output))
        release.set()
        await self.scheduler.wait_for_runs()

    async def test_failed_run_is_logged(self) -> None:
        self.config_store.enabled_searches.return_value = self.searches[:1]
        self.orchestrator.run_search.side_effect = RuntimeError("boom")
        with self.assertLogs("listing_watch.scheduler", "ERROR"):
            await self.scheduler.start(run_immediately=True)
            await _drain()
        self.assertFalse(self.scheduler._timers["BMW Z3"].done())

    async def test_start_twice_is_noop(self) -> None:
        await self.scheduler.start(run_immediately=False)
        with self.assertLogs("listing_watch.scheduler", "WARNING"):
            await self.scheduler.start(run_immediately=False)
        self.config_store.load.assert_called_once()


if __name__ == "__main__":
    unittest.main()
