"""Tests for complete sync runs."""
from unittest.mock import Mock

import pytest
import responses

from processor.models import FeedSourceConfig
from scraper.feed_fetcher import FeedFetcher
from storage.local_note_store import LocalNoteStore
from sync.feed_sync import FETCH_FAILED, NOT_A_CALENDAR, FeedSyncService

FEED_URL = 'https://calendar.example.com/work.ics'


def calendar(*events):
    """Build feed text from (uid, summary, dtstart, sequence) tuples."""
    lines = ['BEGIN:VCALENDAR', 'VERSION:2.0']
    for uid, summary, start, sequence in events:
        lines += [
            'BEGIN:VEVENT',
            f'UID:{uid}',
            f'SUMMARY:{summary}',
            f'DTSTART:{start}',
            f'SEQUENCE:{sequence}',
            'END:VEVENT',
        ]
    lines.append('END:VCALENDAR')
    return '\r\n'.join(lines)


@pytest.fixture
def store(tmp_path):
    return LocalNoteStore(str(tmp_path))


@pytest.fixture
def config():
    return FeedSourceConfig(id='work', url=FEED_URL, name='Work', folder='Calendar/Work')


def service_with_feed(store, *feeds):
    """Create a service whose fetcher returns the given texts in order."""
    fetcher = Mock(spec=FeedFetcher)
    fetcher.fetch.side_effect = list(feeds)
    return FeedSyncService(store=store, fetcher=fetcher)


class TestFeedSyncService:
    """Test cases for FeedSyncService."""

    @pytest.mark.asyncio
    async def test_standup_example_end_to_end(self, store, config):
        """Test fetch, parse and reconcile over HTTP."""
        feed = (
            'BEGIN:VCALENDAR\r\nBEGIN:VEVENT\r\nUID:e1\r\nSUMMARY:Standup\r\n'
            'DTSTART:20250310T090000Z\r\nDTEND:20250310T093000Z\r\nEND:VEVENT\r\nEND:VCALENDAR'
        )
        service = FeedSyncService(store=store, fetcher=FeedFetcher(timeout=5))

        with responses.RequestsMock() as rsps:
            rsps.add(responses.GET, FEED_URL, body=feed, status=200)
            result = await service.sync_feed(config)

        assert result.success is True
        assert (result.created, result.updated, result.skipped, result.quarantined) == (1, 0, 0, 0)
        assert result.errors == []
        assert len(store.list_notes('Calendar/Work')) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_touches_nothing(self, store, config):
        """Test that a failed fetch ends the run without quarantining."""
        store.write_note('Calendar/Work/old.md', {'source_uid': 'x'}, 'Body\n')
        service = service_with_feed(store, None)

        result = await service.sync_feed(config)

        assert result.success is False
        assert result.errors == [FETCH_FAILED]
        assert store.exists('Calendar/Work/old.md')

    @pytest.mark.asyncio
    async def test_malformed_url_is_a_fetch_failure(self, store):
        config = FeedSourceConfig(id='bad', url='http://[bad-host/feed.ics', folder='Calendar/Bad')
        service = FeedSyncService(store=store, fetcher=FeedFetcher(timeout=5))

        result = await service.sync_feed(config)

        assert result.success is False
        assert result.errors == [FETCH_FAILED]

    @pytest.mark.asyncio
    async def test_non_calendar_response_is_rejected(self, store, config):
        store.write_note('Calendar/Work/old.md', {'source_uid': 'x'}, 'Body\n')
        service = service_with_feed(store, '<html><body>Sign in</body></html>')

        result = await service.sync_feed(config)

        assert result.success is False
        assert result.errors == [NOT_A_CALENDAR]
        assert store.exists('Calendar/Work/old.md')

    @pytest.mark.asyncio
    async def test_removed_event_is_quarantined(self, store, config):
        """Test orphan quarantine across two runs."""
        first = calendar(('X', 'Gone', '20250310T120000Z', 0), ('Y', 'Kept', '20250311T120000Z', 0))
        second = calendar(('Y', 'Kept', '20250311T120000Z', 0))
        service = service_with_feed(store, first, second)

        await service.sync_feed(config)
        result = await service.sync_feed(config)

        assert result.success is True
        assert result.quarantined == 1
        assert result.skipped == 1
        assert store.list_notes('Calendar/Work') == ['Calendar/Work/2025-03-11 Kept.md']
        assert store.exists('Calendar/Work/.deleted/2025-03-10 Gone.md')

    @pytest.mark.asyncio
    async def test_idempotent_second_run(self, store, config):
        feed = calendar(('A', 'One', '20250310T120000Z', 1), ('B', 'Two', '20250312T120000Z', 4))
        service = service_with_feed(store, feed, feed)

        await service.sync_feed(config)
        result = await service.sync_feed(config)

        assert (result.created, result.updated, result.skipped, result.quarantined) == (0, 0, 2, 0)

    @pytest.mark.asyncio
    async def test_sequence_change_updates(self, store, config):
        service = service_with_feed(
            store,
            calendar(('A', 'One', '20250310T120000Z', 1)),
            calendar(('A', 'One', '20250310T120000Z', 2))
        )

        await service.sync_feed(config)
        result = await service.sync_feed(config)

        assert (result.created, result.updated) == (0, 1)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self, store, config):
        service = service_with_feed(store, calendar(('A', 'One', '20250310T120000Z', 1)))
        service.detector = Mock()
        service.detector.detect_orphans.side_effect = RuntimeError('listing failed')

        result = await service.sync_feed(config)

        assert result.success is False
        assert result.created == 1
        assert result.errors == ['listing failed']

    @pytest.mark.asyncio
    async def test_sync_all_feeds_skips_disabled_and_stamps_last_sync(self, store):
        enabled = FeedSourceConfig(id='a', url=FEED_URL, folder='A')
        disabled = FeedSourceConfig(id='b', url=FEED_URL, folder='B', enabled=False)
        failing = FeedSourceConfig(id='c', url=FEED_URL, folder='C')
        service = service_with_feed(store, calendar(('A', 'One', '20250310T120000Z', 1)), None)

        results = await service.sync_all_feeds([enabled, disabled, failing])

        assert [r.feed_id for r in results] == ['a', 'c']
        assert enabled.last_sync is not None
        assert disabled.last_sync is None
        assert failing.last_sync is None
