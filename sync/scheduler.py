"""Periodic per-feed sync scheduling on the asyncio event loop."""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from processor.models import FeedSourceConfig, SyncResult
from sync.feed_sync import FeedSyncService

logger = logging.getLogger(__name__)

ResultCallback = Callable[[SyncResult], None]


class SyncScheduler:
    """
    Owns one repeating sync task per feed.

    Each feed's task waits one interval, runs a full sync and only then
    starts waiting again, so a feed never overlaps with itself. Stopping
    prevents future runs; a run already in progress is allowed to finish.
    """

    def __init__(self, service: FeedSyncService, minute_seconds: float = 60.0):
        """
        Initialize the scheduler.

        Args:
            service: Service performing sync runs
            minute_seconds: Length of one interval minute in seconds
        """
        self.service = service
        self.minute_seconds = minute_seconds
        self._tasks: Dict[str, asyncio.Task] = {}
        self._stop_event: Optional[asyncio.Event] = None
        self._in_flight: Set[str] = set()
        # Stopped tasks may still be finishing a run
        self._live_tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    @property
    def active_feed_ids(self) -> List[str]:
        return sorted(self._tasks)

    def start(self, configs: List[FeedSourceConfig], on_result: ResultCallback) -> None:
        """
        Start periodic syncing for every enabled feed with a positive interval.

        Any previously started tasks are stopped first. Must be called from
        within a running event loop.

        Args:
            configs: All configured feeds
            on_result: Called with the SyncResult of every scheduled run
        """
        self.stop()

        stop_event = asyncio.Event()
        self._stop_event = stop_event

        for config in configs:
            if not config.enabled or config.sync_interval_minutes <= 0:
                continue
            interval = config.sync_interval_minutes * self.minute_seconds
            task = asyncio.create_task(
                self._run_periodically(config, interval, on_result, stop_event),
                name=f"feed-sync-{config.id}"
            )
            self._tasks[config.id] = task
            self._live_tasks.add(task)
            task.add_done_callback(self._live_tasks.discard)
            logger.info(
                f"Scheduled feed '{config.name}' every {config.sync_interval_minutes} minutes"
            )

    def stop(self) -> None:
        """Stop all scheduled syncing. Safe to call when nothing is running."""
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

        if self._tasks:
            logger.info(f"Stopping {len(self._tasks)} scheduled feed syncs")
        self._tasks.clear()

    async def wait_stopped(self) -> None:
        """Wait until runs still executing after stop() have finished."""
        if self._live_tasks:
            await asyncio.gather(*self._live_tasks, return_exceptions=True)

    async def _run_periodically(
        self,
        config: FeedSourceConfig,
        interval: float,
        on_result: ResultCallback,
        stop_event: asyncio.Event
    ) -> None:
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass

            if config.id in self._in_flight:
                logger.warning(f"Previous sync of feed '{config.name}' still running; skipping tick")
                continue

            self._in_flight.add(config.id)
            try:
                result = await self.service.sync_feed(config)
            finally:
                self._in_flight.discard(config.id)

            try:
                on_result(result)
            except Exception as e:
                logger.error(f"Sync result callback failed for feed '{config.name}': {e}", exc_info=True)

            if stop_event.is_set():
                return
