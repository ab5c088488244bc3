"""
file_picker.py — directory listing for choosing a secret file.

Listing order: synthetic ".." entry, then directories, then files, both
groups case-insensitively alphabetical. Hidden entries (leading dot) are
skipped.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from otp_auth.core.errors import BrowseError

logger = logging.getLogger(__name__)

PARENT_NAME = ".."


@dataclass(frozen=True)
class FileEntry:
    name: str
    path: str
    is_dir: bool
    is_parent: bool = False


def list_directory(dir_path: Optional[str] = None) -> List[FileEntry]:
    """
    List *dir_path* (working directory when empty) in picker order.

    Raises:
        BrowseError: directory missing, not a directory or not readable
    """
    if not dir_path:
        try:
            dir_path = os.getcwd()
        except OSError as e:
            raise BrowseError(f"failed to get current directory: {e}") from e

    abs_path = os.path.abspath(dir_path)
    try:
        with os.scandir(abs_path) as it:
            children = [
                FileEntry(name=e.name, path=os.path.join(abs_path, e.name), is_dir=e.is_dir())
                for e in it
                if not e.name.startswith(".")
            ]
    except OSError as e:
        raise BrowseError(f"failed to read directory: {e}") from e

    children.sort(key=lambda entry: (not entry.is_dir, entry.name.lower()))
    parent = FileEntry(
        name=PARENT_NAME, path=os.path.dirname(abs_path), is_dir=True, is_parent=True
    )
    return [parent] + children


class FilePicker:
    """
    One picker interaction.

    Holds the directory being shown. choose() on a directory re-lists it,
    on a file returns the absolute path and marks the picker done. A failed
    listing leaves the picker where it was.
    """

    def __init__(self, start_dir: Optional[str] = None):
        # the first listing has no "last good directory"; BrowseError propagates
        self.entries = list_directory(start_dir)
        self.current_dir = os.path.abspath(start_dir) if start_dir else os.getcwd()
        self.selected_path: Optional[str] = None
        self.error: Optional[BrowseError] = None

    @property
    def done(self) -> bool:
        return self.selected_path is not None

    def open(self, dir_path: str) -> bool:
        """Show *dir_path*; on BrowseError keep the current listing and return False."""
        try:
            entries = list_directory(dir_path)
        except BrowseError as e:
            logger.warning("browse failed for %s: %s", dir_path, e)
            self.error = e
            return False
        self.entries = entries
        self.current_dir = os.path.abspath(dir_path)
        self.error = None
        return True

    def choose(self, index: int) -> Optional[str]:
        """
        Act on entry *index* of the current listing.

        Returns the absolute file path when a file was chosen, else None.

        Raises:
            IndexError: index outside the listing
        """
        if not 0 <= index < len(self.entries):
            raise IndexError(f"no entry at index {index}")
        entry = self.entries[index]
        if entry.is_dir:
            self.open(entry.path)
            return None
        self.selected_path = entry.path
        return entry.path
