"""Periodic health polling.

HealthMonitor refreshes an aggregated report on a fixed interval in a
background asyncio task and keeps the latest report, a bounded history and
connection state for dashboards to read.

Usage:
    monitor = HealthMonitor(aggregator, refresh_interval=30.0)
    monitor.start_polling()
    ...
    state = monitor.state  # read at any time
    await monitor.stop_polling()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from libs.telemetry.aggregator import HealthAggregator, now_ms
from libs.telemetry.models import AggregatedReport

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 30.0
DEFAULT_HISTORY_SIZE = 100
SIGNAL_COUNT = 4
CONNECTION_LOST = "Network connection lost"


@dataclass
class HealthMonitorState:
    """Snapshot of what the monitor knows."""

    report: AggregatedReport | None = None
    loading: bool = False
    error: str | None = None
    last_update: int | None = None  # epoch ms of the last completed refresh
    is_connected: bool = False
    refresh_count: int = 0


class HealthMonitor:
    """Poll a HealthAggregator and keep the results.

    ``state.error`` carries the partial-failure message of the latest report
    ("Partial failure: /health, /metrics"). ``state.is_connected`` is True
    while at least one of the four signals answers.

    Args:
        aggregator: Source of aggregated reports
        refresh_interval: Seconds between refreshes while polling
        history_size: Maximum number of reports kept in ``history``
        clock: Epoch-milliseconds source
        sleep: Awaitable sleep between refreshes (asyncio.sleep if None)
    """

    def __init__(
        self,
        aggregator: HealthAggregator,
        *,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if refresh_interval <= 0:
            raise ValueError(f"refresh_interval must be positive, got {refresh_interval}")
        self.aggregator = aggregator
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._sleep = sleep
        self._state = HealthMonitorState()
        self._history: deque[AggregatedReport] = deque(maxlen=history_size)
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> HealthMonitorState:
        return self._state

    @property
    def history(self) -> list[AggregatedReport]:
        """Reports from oldest to newest."""
        return list(self._history)

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> AggregatedReport:
        """Fetch one aggregated report and record it."""
        self._state.loading = True
        try:
            report = await self.aggregator.get_health_with_details()
        finally:
            self._state.loading = False

        self._history.append(report)
        self._state.report = report
        self._state.error = report.partial_failure_message()
        self._state.is_connected = len(report.errors) < SIGNAL_COUNT
        self._state.last_update = self._clock()
        self._state.refresh_count += 1
        return report

    async def _poll_loop(self) -> None:
        sleep = self._sleep or asyncio.sleep
        while True:
            try:
                await self.refresh()
            except Exception as e:
                logger.exception("Health refresh failed")
                self._state.error = str(e) or type(e).__name__
                self._state.is_connected = False
            await sleep(self.refresh_interval)

    def start_polling(self) -> None:
        """Start background polling; the first refresh happens immediately.

        Does nothing if polling is already running. Must be called from a
        running event loop.
        """
        if self.is_polling:
            return
        self._task = asyncio.create_task(self._poll_loop(), name="health-monitor-poll")
        logger.info("Health polling started", extra={"interval_seconds": self.refresh_interval})

    async def stop_polling(self) -> None:
        """Cancel background polling and wait for the task to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Health polling stopped")

    async def toggle_polling(self) -> bool:
        """Start polling if stopped, stop it if running. Returns the new polling state."""
        if self.is_polling:
            await self.stop_polling()
        else:
            self.start_polling()
        return self.is_polling

    async def mark_offline(self) -> None:
        """Record that the network went away and pause polling."""
        await self.stop_polling()
        self._state.is_connected = False
        self._state.error = CONNECTION_LOST

    async def reset(self) -> None:
        """Stop polling and forget all state and history."""
        await self.stop_polling()
        self._state = HealthMonitorState()
        self._history.clear()
