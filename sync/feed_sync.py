"""Sync runs: fetch, parse, reconcile and quarantine for each feed."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from processor.ics_parser import parse_ics
from processor.models import FeedSourceConfig, SyncResult
from scraper.feed_fetcher import FeedFetcher
from storage.note_store import NoteStore
from sync.orphan_detector import OrphanDetector
from sync.reconciler import ReconciliationEngine

logger = logging.getLogger(__name__)

FETCH_FAILED = 'Failed to fetch calendar data'
NOT_A_CALENDAR = 'Feed response is not a calendar document'


class FeedSyncService:
    """Runs complete sync cycles for configured feeds."""

    def __init__(
        self,
        store: NoteStore,
        fetcher: Optional[FeedFetcher] = None,
        engine: Optional[ReconciliationEngine] = None,
        detector: Optional[OrphanDetector] = None
    ):
        self.store = store
        self.fetcher = fetcher or FeedFetcher()
        self.engine = engine or ReconciliationEngine(store)
        self.detector = detector or OrphanDetector(store)

    async def sync_feed(self, config: FeedSourceConfig) -> SyncResult:
        """
        Run one sync cycle for a feed.

        A failed fetch ends the run before any note is touched. Orphan
        detection runs only after every event has been reconciled.

        Args:
            config: Feed to synchronize

        Returns:
            SyncResult for the run
        """
        result = SyncResult(feed_id=config.id, feed_name=config.name)
        logger.info(f"Starting sync for feed '{config.name}' ({config.id})")

        try:
            content = await asyncio.to_thread(self.fetcher.fetch, config.url)
            if content is None:
                result.errors.append(FETCH_FAILED)
                return result
            if 'BEGIN:VCALENDAR' not in content:
                result.errors.append(NOT_A_CALENDAR)
                return result

            events = parse_ics(content)
            logger.info(f"Parsed {len(events)} events from feed '{config.name}'")

            self.store.ensure_folder(config.folder)

            reconciled = await self.engine.reconcile(events, config)
            result.created = reconciled.created
            result.updated = reconciled.updated
            result.skipped = reconciled.skipped
            result.errors.extend(reconciled.errors)

            current_uids = {event.uid for event in events}
            result.quarantined = self.detector.detect_orphans(config.folder, current_uids)

            result.success = True
        except Exception as e:
            logger.error(
                f"Sync failed for feed '{config.name}': {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            result.errors.append(str(e))
        finally:
            logger.info(
                f"Sync finished for feed '{config.name}'",
                extra={'success': result.success, 'errors': len(result.errors)}
            )

        return result

    async def sync_all_feeds(self, configs: List[FeedSourceConfig]) -> List[SyncResult]:
        """
        Sync every enabled feed, one after another.

        Successful runs stamp config.last_sync with the current UTC time.

        Args:
            configs: All configured feeds

        Returns:
            One SyncResult per enabled feed
        """
        results = []
        for config in configs:
            if not config.enabled:
                continue
            result = await self.sync_feed(config)
            if result.success:
                config.last_sync = datetime.now(timezone.utc).isoformat()
            results.append(result)
        return results
