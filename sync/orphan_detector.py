"""Detection of notes whose source event left the feed."""
import logging
import posixpath
from typing import Set

from processor.note_builder import SOURCE_UID_KEY
from storage.note_store import NoteStore, join_path

logger = logging.getLogger(__name__)


class OrphanDetector:
    """Moves orphaned notes into a quarantine subfolder instead of deleting them."""

    QUARANTINE_FOLDER = '.deleted'

    def __init__(self, store: NoteStore, quarantine_name: str = QUARANTINE_FOLDER):
        self.store = store
        self.quarantine_name = quarantine_name

    def quarantine_folder(self, folder: str) -> str:
        return join_path(folder, self.quarantine_name)

    def detect_orphans(self, folder: str, current_uids: Set[str]) -> int:
        """
        Quarantine managed notes whose uid is not in the latest fetch.

        Notes without a source uid are not managed by the sync and stay
        untouched. A note that cannot be moved is logged and left in place.

        Args:
            folder: Target folder of the feed
            current_uids: Uids of every event parsed from the latest fetch

        Returns:
            Number of notes moved into quarantine
        """
        quarantine = self.quarantine_folder(folder)
        moved_count = 0

        for path in self.store.list_notes(folder):
            if path.startswith(quarantine + '/'):
                continue

            try:
                uid = self.store.read_metadata(path).get(SOURCE_UID_KEY)
                if uid is None:
                    continue

                if str(uid) not in current_uids:
                    destination = self._quarantine_note(path, quarantine)
                    logger.info(f"Quarantined orphaned note {path} -> {destination}")
                    moved_count += 1
            except Exception as e:
                logger.error(f"Failed to check orphan status for {path}: {e}")

        if moved_count:
            logger.info(f"Moved {moved_count} orphaned notes to {quarantine}")
        return moved_count

    def _quarantine_note(self, path: str, quarantine: str) -> str:
        self.store.ensure_folder(quarantine)

        filename = posixpath.basename(path)
        stem, extension = posixpath.splitext(filename)
        destination = join_path(quarantine, filename)
        counter = 1
        while self.store.exists(destination):
            destination = join_path(quarantine, f"{stem}_{counter}{extension}")
            counter += 1

        self.store.rename(path, destination)
        return destination
