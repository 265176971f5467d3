"""Long-running calendar feed sync process."""
import argparse
import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import List, Optional

from lambda_function import setup_logging
from processor.models import FeedSourceConfig, SyncResult
from scraper.feed_fetcher import FeedFetcher
from storage.local_note_store import LocalNoteStore
from sync.config import ConfigError, load_feed_configs, save_feed_configs
from sync.feed_sync import FeedSyncService
from sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


class SyncDaemon:
    """Syncs start-up feeds once, then keeps the scheduler running until stopped."""

    def __init__(
        self,
        configs: List[FeedSourceConfig],
        service: FeedSyncService,
        config_path: Optional[str] = None,
        scheduler: Optional[SyncScheduler] = None
    ):
        self.configs = configs
        self.service = service
        self.config_path = config_path
        self.scheduler = scheduler or SyncScheduler(service)
        self._stopped: Optional[asyncio.Event] = None

    async def run(self) -> None:
        self._stopped = asyncio.Event()

        startup = [c for c in self.configs if c.enabled and c.sync_on_start]
        for config in startup:
            self.handle_result(await self.service.sync_feed(config))

        self.scheduler.start(self.configs, self.handle_result)
        if not self.scheduler.is_running:
            logger.info("No feeds with a sync interval; exiting after start-up sync")
            return

        await self._stopped.wait()
        await self.scheduler.wait_stopped()

    def stop(self) -> None:
        self.scheduler.stop()
        if self._stopped is not None:
            self._stopped.set()

    def handle_result(self, result: SyncResult) -> None:
        """Log a run result and record the sync time of successful runs."""
        logger.info(
            f"Feed '{result.feed_name}' synced",
            extra={
                'success': result.success,
                'events_created': result.created,
                'events_updated': result.updated,
                'events_skipped': result.skipped,
                'notes_quarantined': result.quarantined,
                'errors': result.errors
            }
        )
        if not result.success:
            return

        for config in self.configs:
            if config.id == result.feed_id:
                config.last_sync = datetime.now(timezone.utc).isoformat()

        if self.config_path:
            try:
                save_feed_configs(self.config_path, self.configs)
            except OSError as e:
                logger.error(f"Could not save last sync time to {self.config_path}: {e}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Keep note folders in sync with calendar feeds.')
    parser.add_argument('--config', default='feeds.yaml', help='Feed configuration YAML file')
    parser.add_argument('--notes-root', default='.', help='Root directory of the notes')
    parser.add_argument('--log-level', default='INFO', help='DEBUG, INFO, WARNING or ERROR')
    parser.add_argument('--timeout', type=int, default=30, help='HTTP timeout in seconds')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        configs = load_feed_configs(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 2

    store = LocalNoteStore(args.notes_root)
    service = FeedSyncService(store=store, fetcher=FeedFetcher(timeout=args.timeout))
    daemon = SyncDaemon(configs, service, config_path=args.config)

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, daemon.stop)
        await daemon.run()

    asyncio.run(_run())
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
