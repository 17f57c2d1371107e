"""Backends behind the Subsonic API: the MPD database and the music directory."""

from backend.database import (
    MPDDatabase,
    BackendError,
    NotFoundError,
)
from backend.filesystem import (
    OSFilesystem,
    ForbiddenPath,
)

__all__ = [
    "MPDDatabase",
    "BackendError",
    "NotFoundError",
    "OSFilesystem",
    "ForbiddenPath",
]
