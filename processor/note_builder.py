"""Builder turning calendar events into Markdown notes."""
import logging
import re
import warnings
from typing import Any, Dict, Tuple

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from processor.ics_parser import (
    format_date_iso,
    format_time,
    is_yearly_recurring,
    sanitize_filename,
)
from processor.models import Event, FeedSourceConfig

logger = logging.getLogger(__name__)

# Metadata keys written to each managed note
START_KEY = 'start'
END_KEY = 'end'
COLOR_KEY = 'color'
LABEL_KEY = 'label'
SOURCE_UID_KEY = 'source_uid'
SOURCE_NAME_KEY = 'source_name'
SOURCE_SEQUENCE_KEY = 'source_sequence'
SOURCE_LAST_MODIFIED_KEY = 'source_last_modified'
RECURRING_KEY = 'recurring'
ANNIVERSARY_KEY = 'anniversary'
LOCATION_KEY = 'location'


class NoteBuilder:
    """Serializes events into note metadata and body."""

    def identity_key(self, event: Event) -> str:
        """
        Derive the deterministic note name for an event.

        Args:
            event: Parsed Event

        Returns:
            "<YYYY-MM-DD> <sanitized summary>"
        """
        return f"{format_date_iso(event.start_date)} {sanitize_filename(event.summary)}"

    def build(self, event: Event, config: FeedSourceConfig) -> Tuple[Dict[str, Any], str]:
        """
        Build the metadata block and body for an event.

        Args:
            event: Parsed Event
            config: Feed the event belongs to

        Returns:
            Tuple of (metadata dict, Markdown body)
        """
        return self.build_metadata(event, config), self.build_body(event)

    def build_metadata(self, event: Event, config: FeedSourceConfig) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {START_KEY: format_date_iso(event.start_date)}

        if event.end_date:
            metadata[END_KEY] = format_date_iso(event.end_date)

        metadata[COLOR_KEY] = config.color
        metadata[LABEL_KEY] = event.summary
        metadata[SOURCE_UID_KEY] = event.uid
        metadata[SOURCE_NAME_KEY] = config.name

        if event.sequence is not None:
            metadata[SOURCE_SEQUENCE_KEY] = event.sequence
        if event.last_modified:
            metadata[SOURCE_LAST_MODIFIED_KEY] = event.last_modified

        if event.is_recurring:
            metadata[RECURRING_KEY] = True
            if is_yearly_recurring(event):
                metadata[ANNIVERSARY_KEY] = True

        if event.location:
            metadata[LOCATION_KEY] = event.location

        return metadata

    def build_body(self, event: Event) -> str:
        lines = [f"# {event.summary}", '']

        if not event.is_all_day:
            start_time = format_time(event.start_date)
            if event.end_date:
                lines.append(f"**Time:** {start_time} - {format_time(event.end_date)}")
            else:
                lines.append(f"**Time:** {start_time}")
            lines.append('')

        if event.location:
            lines.append(f"**Location:** {event.location}")
            lines.append('')

        if event.description:
            lines.append('## Description')
            lines.append('')
            lines.append(sanitize_description(event.description))
            lines.append('')

        return '\n'.join(lines)


def sanitize_description(html: str) -> str:
    """
    Convert an HTML event description to plain text.

    Line breaks, paragraphs and list items keep their layout, every other
    tag is removed and entities are decoded.

    Args:
        html: Description as delivered by the feed

    Returns:
        Plain-text description
    """
    with warnings.catch_warnings():
        # Descriptions are often a bare meeting link
        warnings.simplefilter('ignore', MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(html, 'html.parser')

    for br in soup.find_all('br'):
        br.replace_with('\n')
    for paragraph in soup.find_all('p'):
        paragraph.append('\n\n')
    for item in soup.find_all('li'):
        item.insert(0, '- ')
        item.append('\n')

    text = soup.get_text().replace('\xa0', ' ')
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()
