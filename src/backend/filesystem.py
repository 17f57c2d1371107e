"""Filesystem access for media streaming."""

from pathlib import Path
from typing import BinaryIO


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the music directory."""


def resolve_path(root: Path, user_path: str) -> Path:
    """Resolve a client-supplied path inside root.

    Raises:
        ForbiddenPath: If the path is empty, contains NUL or escapes root
    """
    if "\x00" in user_path:
        raise ForbiddenPath(user_path)

    root = Path(root).resolve()
    relative = user_path.lstrip("/")
    if not relative or ".." in Path(relative).parts:
        raise ForbiddenPath(user_path)

    target = (root / relative).resolve()
    if root not in target.parents:
        raise ForbiddenPath(user_path)
    return target


class OSFilesystem:
    """Read-only view of the local music directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def open(self, path: str) -> BinaryIO:
        """Open a file below the music directory for binary reading.

        Raises:
            ForbiddenPath: If path escapes the music directory
            FileNotFoundError: If the file does not exist
            IsADirectoryError: If path names a directory
        """
        return open(resolve_path(self.root, path), "rb")
