"""AWS Lambda handler for calendar feed note sync."""
import asyncio
import json
import logging
import os
import time
from typing import Dict, Any

from scraper.feed_fetcher import FeedFetcher
from storage.local_note_store import LocalNoteStore
from storage.note_store import NoteStore
from storage.s3_note_store import S3NoteStore
from sync.config import load_feed_configs
from sync.feed_sync import FeedSyncService
from sync.reconciler import ReconciliationEngine


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    RESERVED = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including fields passed via extra."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in self.RESERVED and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_note_store() -> NoteStore:
    """Create the note store selected by NOTES_BUCKET or NOTES_ROOT."""
    bucket = os.environ.get('NOTES_BUCKET')
    if bucket:
        return S3NoteStore(bucket=bucket, prefix=os.environ.get('NOTES_PREFIX', ''))
    return LocalNoteStore(os.environ.get('NOTES_ROOT', '/tmp/notes'))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for calendar feed note sync.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and per-feed statistics
    """
    config_path = os.environ.get('FEED_CONFIG_PATH', 'feeds.yaml')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    batch_size = int(os.environ.get('BATCH_SIZE', '20'))

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'config_path': config_path,
            'timeout_seconds': timeout_seconds,
            'batch_size': batch_size
        }
    )

    try:
        configs = load_feed_configs(config_path)

        store = build_note_store()
        service = FeedSyncService(
            store=store,
            fetcher=FeedFetcher(timeout=timeout_seconds),
            engine=ReconciliationEngine(store, batch_size=batch_size)
        )

        results = asyncio.run(service.sync_all_feeds(configs))

        duration = time.time() - start_time
        failed = [result for result in results if not result.success]

        logger.info(
            "Lambda execution completed",
            extra={
                'duration_seconds': round(duration, 2),
                'feeds_synced': len(results),
                'feeds_failed': len(failed),
                'events_created': sum(r.created for r in results),
                'events_updated': sum(r.updated for r in results),
                'notes_quarantined': sum(r.quarantined for r in results)
            }
        )

        return {
            'statusCode': 500 if failed else 200,
            'body': json.dumps({
                'message': 'Sync completed with failures' if failed else 'Sync completed successfully',
                'feeds': [result.to_dict() for result in results],
                'duration_seconds': round(duration, 2)
            })
        }

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
