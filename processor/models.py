"""Data models for feed ingestion and note synchronization."""
import random
import string
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Event:
    """Calendar event parsed from a feed."""
    uid: str
    summary: str
    start_date: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    end_date: Optional[datetime] = None
    is_all_day: bool = False
    is_recurring: bool = False
    recurrence_rule: Optional[str] = None
    sequence: Optional[int] = None
    last_modified: Optional[str] = None


@dataclass
class FeedSourceConfig:
    """Configuration of one calendar feed."""
    id: str
    url: str
    name: str = 'Google Calendar'
    folder: str = 'Calendar/Google'
    color: str = 'blue'
    sync_on_start: bool = True
    sync_interval_minutes: int = 0
    enabled: bool = True
    last_sync: Optional[str] = None

    @classmethod
    def create_default(cls, url: str = '') -> 'FeedSourceConfig':
        """Create a config with default settings and a generated id."""
        return cls(id=generate_feed_id(), url=url)


@dataclass
class ReconcileResult:
    """Outcome of reconciling one batch of events against a folder."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class SyncResult:
    """Result of one sync run for a feed."""
    feed_id: str
    feed_name: str
    success: bool = False
    created: int = 0
    updated: int = 0
    skipped: int = 0
    quarantined: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def generate_feed_id() -> str:
    """Generate a unique feed id of the form feed_<millis>_<random>."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = ''.join(random.choice(alphabet) for _ in range(9))
    return f"feed_{int(time.time() * 1000)}_{suffix}"
