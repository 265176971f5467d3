"""Unit tests for NoteBuilder."""
from datetime import datetime

import pytest
from bs4 import MarkupResemblesLocatorWarning

from processor.models import Event, FeedSourceConfig
from processor.note_builder import NoteBuilder, sanitize_description


@pytest.fixture
def config():
    return FeedSourceConfig(id='work', url='https://example.com/work.ics', name='Work', color='red')


@pytest.fixture
def event():
    return Event(
        uid='evt-1',
        summary='Planning: Q3/Q4',
        start_date=datetime(2025, 7, 1, 10, 0),
        end_date=datetime(2025, 7, 1, 11, 30),
        location='Room "A"',
        description='Agenda<br>1. Budget',
        sequence=2,
        last_modified='20250601T120000Z'
    )


class TestNoteBuilder:
    """Test cases for NoteBuilder."""

    def test_identity_key(self, event):
        """Test the date plus sanitized title key."""
        assert NoteBuilder().identity_key(event) == '2025-07-01 Planning- Q3-Q4'

    def test_build_metadata(self, event, config):
        """Test metadata fields of a timed event."""
        metadata, _ = NoteBuilder().build(event, config)

        assert metadata == {
            'start': '2025-07-01',
            'end': '2025-07-01',
            'color': 'red',
            'label': 'Planning: Q3/Q4',
            'source_uid': 'evt-1',
            'source_name': 'Work',
            'source_sequence': 2,
            'source_last_modified': '20250601T120000Z',
            'location': 'Room "A"',
        }

    def test_build_metadata_yearly_recurring(self, config):
        """Test recurring and anniversary flags."""
        birthday = Event(
            uid='b1', summary='Birthday', start_date=datetime(1990, 4, 12),
            is_all_day=True, is_recurring=True, recurrence_rule='FREQ=YEARLY'
        )

        metadata = NoteBuilder().build_metadata(birthday, config)

        assert metadata['recurring'] is True
        assert metadata['anniversary'] is True
        assert 'end' not in metadata
        assert 'source_sequence' not in metadata

    def test_build_metadata_weekly_recurring_is_not_anniversary(self, config):
        weekly = Event(
            uid='w1', summary='Sync', start_date=datetime(2025, 1, 6, 9, 0),
            is_recurring=True, recurrence_rule='FREQ=WEEKLY;BYDAY=MO'
        )

        metadata = NoteBuilder().build_metadata(weekly, config)

        assert metadata['recurring'] is True
        assert 'anniversary' not in metadata

    def test_build_body_timed_event(self, event):
        """Test body with time range, location and description."""
        body = NoteBuilder().build_body(event)

        assert body == (
            '# Planning: Q3/Q4\n'
            '\n'
            '**Time:** 10:00 - 11:30\n'
            '\n'
            '**Location:** Room "A"\n'
            '\n'
            '## Description\n'
            '\n'
            'Agenda\n1. Budget\n'
        )

    def test_build_body_all_day_event_has_no_time(self):
        all_day = Event(uid='d1', summary='Holiday', start_date=datetime(2025, 12, 24), is_all_day=True)

        body = NoteBuilder().build_body(all_day)

        assert body == '# Holiday\n'
        assert '**Time:**' not in body

    def test_build_body_without_end(self):
        start_only = Event(uid='s1', summary='Call', start_date=datetime(2025, 1, 2, 8, 15))

        body = NoteBuilder().build_body(start_only)

        assert '**Time:** 08:15\n' in body


class TestSanitizeDescription:
    """Test cases for HTML description sanitizing."""

    def test_line_breaks_and_paragraphs(self):
        html = '<p>First</p><p>Second<br/>line</p>'
        assert sanitize_description(html) == 'First\n\nSecond\nline'

    def test_list_items(self):
        html = '<ul><li>One</li><li>Two</li></ul>'
        assert sanitize_description(html) == '- One\n- Two'

    def test_entities_are_decoded(self):
        html = 'Tom &amp; Jerry &lt;3&gt; &quot;hi&quot; &#39;yo&#39;&nbsp;!'
        assert sanitize_description(html) == 'Tom & Jerry <3> "hi" \'yo\' !'

    def test_generic_tags_removed(self):
        html = '<b>Bold</b> and <a href="https://example.com">link</a>'
        assert sanitize_description(html) == 'Bold and link'

    def test_blank_lines_collapsed(self):
        html = 'A<br><br><br><br>B'
        assert sanitize_description(html) == 'A\n\nB'

    def test_bare_link_emits_no_warning(self, recwarn):
        """Test that a description holding only a URL is kept without bs4 warnings."""
        link = 'https://meet.google.com/abc-defg-hij'

        assert sanitize_description(link) == link
        assert not [w for w in recwarn if w.category is MarkupResemblesLocatorWarning]

    def test_plain_text_unchanged(self):
        assert sanitize_description('Just text\nwith newline') == 'Just text\nwith newline'
