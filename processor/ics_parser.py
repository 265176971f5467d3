"""Parser for iCalendar (ICS) feeds."""
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from processor.models import Event

logger = logging.getLogger(__name__)

FOLDED_LINE_RE = re.compile(r'\r?\n[ \t]')
INVALID_FILENAME_RE = re.compile(r'[<>:"/\\|?*]')
MAX_FILENAME_LENGTH = 100


class MalformedEventError(ValueError):
    """Raised while decoding a property that cannot be interpreted."""


def parse_ics(content: str) -> List[Event]:
    """
    Parse ICS content into events.

    Only VEVENT blocks are interpreted. Records missing a UID, SUMMARY or
    DTSTART, or carrying an undecodable date, are dropped without raising.

    Args:
        content: Raw feed text

    Returns:
        List of Event objects in feed order
    """
    events = []
    dropped = 0
    current = None
    malformed = False
    nested_depth = 0

    for line in unfold_lines(content).splitlines():
        line = line.strip()

        if line == 'BEGIN:VEVENT':
            current = {}
            malformed = False
            nested_depth = 0
            continue

        # Components nested in an event (VALARM) carry their own SUMMARY etc.
        if current is not None and line.startswith('BEGIN:'):
            nested_depth += 1
            continue
        if nested_depth:
            if line.startswith('END:'):
                nested_depth -= 1
            continue

        if line == 'END:VEVENT':
            if current is not None:
                event = _build_event(current) if not malformed else None
                if event:
                    events.append(event)
                else:
                    dropped += 1
                    logger.debug(f"Dropped incomplete event record: {current.get('uid')}")
            current = None
            nested_depth = 0
            continue

        if current is None:
            continue

        try:
            _apply_property(current, line)
        except MalformedEventError as e:
            logger.debug(f"Malformed property in event {current.get('uid')}: {e}")
            malformed = True

    if dropped:
        logger.info(f"Dropped {dropped} malformed or incomplete events")
    return events


def unfold_lines(content: str) -> str:
    """Join continuation lines (starting with space or tab) to their predecessor."""
    return FOLDED_LINE_RE.sub('', content)


def unescape_value(value: str) -> str:
    """Reverse ICS text escaping."""
    return (
        value.replace('\\n', '\n')
        .replace('\\,', ',')
        .replace('\\;', ';')
        .replace('\\\\', '\\')
    )


def parse_ics_date(value: str, params: str) -> Tuple[datetime, bool]:
    """
    Decode a DTSTART/DTEND value.

    Args:
        value: Date value (YYYYMMDD or YYYYMMDDTHHMMSS[Z])
        params: Property parameter string (e.g. VALUE=DATE)

    Returns:
        Tuple of (datetime, is_all_day). UTC values are timezone-aware,
        local and all-day values are naive.

    Raises:
        MalformedEventError: If the value cannot be decoded
    """
    is_all_day = 'VALUE=DATE' in params and 'VALUE=DATE-TIME' not in params

    try:
        year = int(value[0:4])
        month = int(value[4:6])
        day = int(value[6:8])

        if is_all_day or len(value) < 15:
            return datetime(year, month, day), True

        hour = int(value[9:11])
        minute = int(value[11:13])
        second = int(value[13:15])

        if value.endswith('Z'):
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc), False
        return datetime(year, month, day, hour, minute, second), False
    except ValueError as e:
        raise MalformedEventError(f"Invalid date value '{value}': {e}") from e


def is_yearly_recurring(event: Event) -> bool:
    """Check if event is a yearly recurring event (birthday/anniversary)."""
    return (
        event.is_recurring
        and event.recurrence_rule is not None
        and 'FREQ=YEARLY' in event.recurrence_rule
    )


def format_date_iso(value: datetime) -> str:
    """Format a datetime as YYYY-MM-DD in local time."""
    return _to_local(value).strftime('%Y-%m-%d')


def format_time(value: datetime) -> str:
    """Format a datetime as HH:MM in local time."""
    return _to_local(value).strftime('%H:%M')


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in filenames and limit the length."""
    cleaned = INVALID_FILENAME_RE.sub('-', name)
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()
    return cleaned[:MAX_FILENAME_LENGTH]


def _to_local(value: datetime) -> datetime:
    return value.astimezone() if value.tzinfo else value


def _split_property(line: str) -> Optional[Tuple[str, str, str]]:
    colon_index = line.find(':')
    if colon_index == -1:
        return None

    property_part = line[:colon_index]
    value = line[colon_index + 1:]
    name, _, params = property_part.partition(';')
    return name, params, value


def _apply_property(current: dict, line: str) -> None:
    parts = _split_property(line)
    if parts is None:
        return
    name, params, value = parts

    if name == 'UID':
        current['uid'] = value
    elif name == 'SUMMARY':
        current['summary'] = unescape_value(value)
    elif name == 'DESCRIPTION':
        current['description'] = unescape_value(value)
    elif name == 'LOCATION':
        current['location'] = unescape_value(value)
    elif name == 'DTSTART':
        current['start_date'], current['is_all_day'] = parse_ics_date(value, params)
    elif name == 'DTEND':
        current['end_date'], _ = parse_ics_date(value, params)
    elif name == 'RRULE':
        current['is_recurring'] = True
        current['recurrence_rule'] = value
    elif name == 'SEQUENCE':
        try:
            current['sequence'] = int(value)
        except ValueError:
            logger.debug(f"Ignoring non-numeric SEQUENCE '{value}'")
    elif name == 'LAST-MODIFIED':
        current['last_modified'] = value


def _build_event(record: dict) -> Optional[Event]:
    if not record.get('uid') or not record.get('summary') or not record.get('start_date'):
        return None
    return Event(**record)
