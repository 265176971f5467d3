"""Note store backed by a local directory."""
import logging
from pathlib import Path
from typing import List

from storage.note_store import NoteNotFoundError, NoteStore, join_path

logger = logging.getLogger(__name__)


class LocalNoteStore(NoteStore):
    """Notes stored as UTF-8 files below a root directory."""

    def __init__(self, root: str):
        """
        Initialize the store.

        Args:
            root: Directory all note paths are relative to
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized LocalNoteStore at: {self.root}")

    def read(self, path: str) -> str:
        target = self._resolve(path)
        try:
            return target.read_text(encoding='utf-8')
        except FileNotFoundError as e:
            raise NoteNotFoundError(f"Note not found: {path}") from e

    def write(self, path: str, text: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding='utf-8')

    def rename(self, old_path: str, new_path: str) -> None:
        source = self._resolve(old_path)
        target = self._resolve(new_path)
        if not source.is_file():
            raise NoteNotFoundError(f"Note not found: {old_path}")
        if target.exists():
            raise FileExistsError(f"Destination already exists: {new_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def list_notes(self, folder: str) -> List[str]:
        directory = self._resolve(folder)
        if not directory.is_dir():
            return []
        return sorted(
            join_path(folder, entry.name)
            for entry in directory.iterdir()
            if entry.is_file() and entry.suffix == '.md'
        )

    def ensure_folder(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        return self.root / path.strip('/')
