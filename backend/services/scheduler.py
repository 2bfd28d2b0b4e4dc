"""Background refresh for cache pre-warming.

Every `interval` seconds (5 minutes by default) each tracked ZIP code is run
through the full weather pipeline so user requests find warm caches. One
pass also runs immediately on start without blocking startup.

A ZIP that fails is logged and counted; it never stops the others, and a
pass never raises.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from services.weather import WeatherService
from services.zip_store import TrackedZipStore

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 300


@dataclass
class RefreshResult:
    """Result of a refresh pass."""

    total: int
    success: int
    failed: int
    duration_ms: int

    @property
    def success_rate(self) -> float:
        """Percentage of successful refreshes."""
        if self.total == 0:
            return 0.0
        return (self.success / self.total) * 100

    def __str__(self) -> str:
        return (
            f"Refresh complete: {self.success}/{self.total} successful, "
            f"{self.failed} failed ({self.duration_ms}ms)"
        )


class RefreshScheduler:
    def __init__(
        self,
        weather: WeatherService,
        store: TrackedZipStore,
        interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ):
        self.weather = weather
        self.store = store
        self.interval = interval
        self.pass_count = 0
        self.last_result: RefreshResult | None = None
        self.last_run_at: datetime | None = None
        self._loop_task: asyncio.Task | None = None
        self._passes: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Kick off an immediate pass and the periodic loop. Needs a running event loop."""
        if self.running:
            return
        logger.info(
            "Starting background refresh every %ss for %d tracked ZIP codes",
            self.interval, len(self.store.load()),
        )
        self._spawn_pass()
        self._loop_task = asyncio.create_task(self._run_periodically())

    def stop(self) -> None:
        """Cancel the periodic trigger. A pass already in flight runs to completion."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
            logger.info("Background refresh stopped")

    async def wait_idle(self) -> None:
        """Wait for in-flight passes to finish."""
        if self._passes:
            await asyncio.gather(*self._passes, return_exceptions=True)

    async def _run_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self._spawn_pass()

    def _spawn_pass(self) -> asyncio.Task:
        task = asyncio.create_task(self.run_pass())
        self._passes.add(task)
        task.add_done_callback(self._passes.discard)
        return task

    async def run_pass(self) -> RefreshResult:
        """Refresh every tracked ZIP code concurrently."""
        start_time = time.monotonic()
        try:
            zips = self.store.load()
        except Exception:
            logger.exception("Could not read tracked ZIP codes")
            zips = []

        logger.info("Starting refresh pass for %d ZIP codes", len(zips))
        outcomes = await asyncio.gather(
            *(self._refresh_zip(z) for z in zips), return_exceptions=True
        )
        success = sum(1 for ok in outcomes if ok is True)

        result = RefreshResult(
            total=len(zips),
            success=success,
            failed=len(zips) - success,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        self.pass_count += 1
        self.last_result = result
        self.last_run_at = datetime.now(timezone.utc)
        logger.info(str(result))
        return result

    async def _refresh_zip(self, zip_code: str) -> bool:
        try:
            failed_parts = await self.weather.prefetch(zip_code)
        except Exception as e:
            logger.error("Failed to refresh ZIP %s: %s", zip_code, e)
            return False
        if failed_parts:
            logger.info("Refreshed ZIP %s with %d failed parts", zip_code, failed_parts)
        else:
            logger.debug("Refreshed ZIP %s", zip_code)
        return True

    def status(self) -> dict:
        return {
            "state": "running" if self.running else "stopped",
            "refreshIntervalSeconds": self.interval,
            "trackedZipCodes": self.store.load(),
            "passCount": self.pass_count,
            "passesInFlight": len(self._passes),
            "lastRunAt": self.last_run_at.isoformat() if self.last_run_at else None,
            "lastResult": asdict(self.last_result) if self.last_result else None,
        }
