"""
Scheduled trigger - Run the orchestrator on a fixed interval

The scheduled trigger and the manual trigger call the same ``run_all``;
concurrent runs are serialized per zone by the orchestrator's zone locks.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..core.errors import ConfigurationError
from ..core.models import SyncRunSummary
from .orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 6 * 60 * 60


class SyncScheduler:
    """Periodically invokes ``SyncOrchestrator.run_all``."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval: float = DEFAULT_INTERVAL,
        on_summary: Optional[Callable[[SyncRunSummary], None]] = None,
    ):
        if interval <= 0:
            raise ValueError("Sync interval must be positive")
        self.orchestrator = orchestrator
        self.interval = interval
        self.on_summary = on_summary
        self._stopped = asyncio.Event()

    def stop(self) -> None:
        self._stopped.set()

    async def run_once(self) -> Optional[SyncRunSummary]:
        """Run one scheduled sync; configuration errors are logged, not raised."""
        logger.info("Running scheduled DNS sync task")
        try:
            summary = await self.orchestrator.run_all()
        except ConfigurationError as e:
            logger.error(f"Scheduled DNS sync skipped: {e}")
            return None
        if self.on_summary is not None:
            self.on_summary(summary)
        return summary

    async def run_forever(self, max_runs: Optional[int] = None) -> int:
        """Run until stopped (or max_runs is reached); returns the number of runs."""
        runs = 0
        while not self._stopped.is_set():
            await self.run_once()
            runs += 1
            if max_runs is not None and runs >= max_runs:
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info(f"Scheduler stopped after {runs} runs")
        return runs
