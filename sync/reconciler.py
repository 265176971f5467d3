"""Differential reconciliation of parsed events against a note folder."""
import asyncio
import logging
from typing import Dict, List, Optional

from processor.models import Event, FeedSourceConfig, ReconcileResult
from processor.note_builder import SOURCE_SEQUENCE_KEY, SOURCE_UID_KEY, NoteBuilder
from storage.note_store import NoteStore, join_path

logger = logging.getLogger(__name__)

CREATED = 'created'
UPDATED = 'updated'
SKIPPED = 'skipped'


class FolderIndex:
    """Source uid and sequence of every note in a target folder."""

    def __init__(self):
        self.owners: Dict[str, Optional[str]] = {}
        self.sequences: Dict[str, int] = {}
        self.uid_paths: Dict[str, str] = {}

    def add(self, path: str, uid: Optional[str], sequence: int) -> None:
        self.owners[path] = uid
        self.sequences[path] = sequence
        if uid is not None:
            self.uid_paths.setdefault(uid, path)

    def move(self, old_path: str, new_path: str) -> None:
        uid = self.owners.pop(old_path)
        sequence = self.sequences.pop(old_path, -1)
        self.owners[new_path] = uid
        self.sequences[new_path] = sequence
        if uid is not None:
            self.uid_paths[uid] = new_path


class ReconciliationEngine:
    """Creates, updates or skips notes so that a folder mirrors a feed."""

    BATCH_SIZE = 20

    def __init__(
        self,
        store: NoteStore,
        builder: Optional[NoteBuilder] = None,
        batch_size: Optional[int] = None
    ):
        """
        Initialize the engine.

        Args:
            store: Note storage the folder lives in
            builder: Serializer for event notes
            batch_size: Events processed between cooperative yields

        Raises:
            ValueError: If batch_size is smaller than 1
        """
        self.store = store
        self.builder = builder or NoteBuilder()
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.batch_size = batch_size or self.BATCH_SIZE

    async def reconcile(self, events: List[Event], config: FeedSourceConfig) -> ReconcileResult:
        """
        Reconcile events against the notes in the feed's folder.

        Events are handled in feed order, in chunks of batch_size with a
        yield to the event loop between chunks. A failing event is recorded
        in the result and does not stop the rest of the batch.

        Args:
            events: Parsed events of one fetch
            config: Feed whose folder is reconciled

        Returns:
            ReconcileResult with created, updated and skipped counts
        """
        logger.info(f"Reconciling {len(events)} events into {config.folder}")
        result = ReconcileResult()
        index = self._index_folder(config.folder)
        seen_uids = set()

        for i in range(0, len(events), self.batch_size):
            batch = events[i:i + self.batch_size]

            for event in batch:
                try:
                    outcome = self._process_event(event, config, index, seen_uids)
                except Exception as e:
                    error_msg = f'Event "{event.summary}": {e}'
                    logger.warning(f"Failed to reconcile event: {error_msg}")
                    result.errors.append(error_msg)
                    continue

                if outcome == CREATED:
                    result.created += 1
                elif outcome == UPDATED:
                    result.updated += 1
                else:
                    result.skipped += 1

            if i + self.batch_size < len(events):
                await asyncio.sleep(0)

        logger.info(
            f"Reconcile complete: {result.created} created, {result.updated} updated, "
            f"{result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    def _process_event(
        self,
        event: Event,
        config: FeedSourceConfig,
        index: FolderIndex,
        seen_uids: set
    ) -> str:
        if event.uid in seen_uids:
            # Recurrence overrides share the uid of their series
            logger.debug(f"Skipping repeated uid {event.uid} ('{event.summary}')")
            return SKIPPED
        seen_uids.add(event.uid)

        path = self._resolve_path(event, config.folder, index)
        metadata, body = self.builder.build(event, config)
        sequence = event.sequence if event.sequence is not None else -1

        if path not in index.owners:
            previous_path = index.uid_paths.get(event.uid)
            if previous_path and previous_path != path:
                logger.info(f"Moving note for {event.uid} from {previous_path} to {path}")
                self.store.rename(previous_path, path)
                index.move(previous_path, path)
                self.store.write_note(path, metadata, body)
                index.sequences[path] = sequence
                return UPDATED

            self.store.write_note(path, metadata, body)
            index.add(path, event.uid, sequence)
            return CREATED

        stored_sequence = index.sequences.get(path, -1)
        if event.sequence is not None and stored_sequence == event.sequence:
            return SKIPPED

        self.store.write_note(path, metadata, body)
        index.sequences[path] = sequence
        return UPDATED

    def _resolve_path(self, event: Event, folder: str, index: FolderIndex) -> str:
        """
        Find the note path for an event.

        The identity key path is used unless it already holds a note for
        another uid or an unmanaged note; then "<key>_2", "<key>_3", ... are
        tried until a free path or the event's own note is found.
        """
        key = self.builder.identity_key(event)
        attempt = 1

        while True:
            name = key if attempt == 1 else f"{key}_{attempt}"
            path = join_path(folder, f"{name}.md")

            if path not in index.owners and self.store.exists(path):
                self._index_note(index, path)

            if path not in index.owners or index.owners[path] == event.uid:
                return path
            attempt += 1

    def _index_folder(self, folder: str) -> FolderIndex:
        index = FolderIndex()
        for path in self.store.list_notes(folder):
            self._index_note(index, path)
        return index

    def _index_note(self, index: FolderIndex, path: str) -> None:
        try:
            metadata = self.store.read_metadata(path)
        except Exception as e:
            logger.warning(f"Could not read metadata of {path}: {e}")
            index.add(path, None, -1)
            return

        uid = metadata.get(SOURCE_UID_KEY)
        index.add(path, str(uid) if uid is not None else None, parse_sequence(metadata.get(SOURCE_SEQUENCE_KEY)))


def parse_sequence(value) -> int:
    """Return a stored sequence number, or -1 when missing or unparseable."""
    if isinstance(value, bool):
        return -1
    try:
        return int(value)
    except (TypeError, ValueError):
        return -1
