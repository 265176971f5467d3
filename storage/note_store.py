"""Abstract note storage interface."""
import logging
import posixpath
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from storage.frontmatter import join_frontmatter, split_frontmatter

logger = logging.getLogger(__name__)


class NoteStoreError(Exception):
    """Base error for note storage operations."""


class NoteNotFoundError(NoteStoreError):
    """Raised when a note does not exist."""


class NoteStore(ABC):
    """
    Storage of Markdown notes addressed by relative POSIX paths.

    Subclasses implement raw text access; metadata is read and written
    through the structured accessors on this class.
    """

    @abstractmethod
    def read(self, path: str) -> str:
        """Return the full text of a note, raising NoteNotFoundError if missing."""

    @abstractmethod
    def write(self, path: str, text: str) -> None:
        """Create or overwrite a note."""

    @abstractmethod
    def rename(self, old_path: str, new_path: str) -> None:
        """Move a note to a new path."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check whether a note exists."""

    @abstractmethod
    def list_notes(self, folder: str) -> List[str]:
        """Return paths of the Markdown notes directly inside a folder."""

    @abstractmethod
    def ensure_folder(self, path: str) -> None:
        """Create a folder and its parents if necessary."""

    def read_metadata(self, path: str) -> Dict[str, Any]:
        """Return the frontmatter fields of a note."""
        metadata, _ = split_frontmatter(self.read(path))
        return metadata

    def write_note(self, path: str, metadata: Dict[str, Any], body: str) -> None:
        """Create or overwrite a note from metadata and body."""
        self.write(path, join_frontmatter(metadata, body))

    def update_metadata(self, path: str, fields: Dict[str, Any]) -> None:
        """Set named frontmatter fields, keeping the body and other fields."""
        metadata, body = split_frontmatter(self.read(path))
        metadata.update(fields)
        self.write(path, join_frontmatter(metadata, body.lstrip('\n')))


def join_path(*parts: str) -> str:
    """Join relative note path segments."""
    segments = [part.strip('/') for part in parts if part and part.strip('/')]
    return posixpath.join(*segments) if segments else ''
