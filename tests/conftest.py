"""Shared pytest fixtures for mpdsub tests."""

import io
import logging
import sys
import threading
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import Config


class FakeDatabase:
    """In-memory stand-in for MPDDatabase.

    Counts pings, can be told to fail them, and serves lsinfo results
    from a dict keyed by directory path.
    """

    def __init__(self, entries=None, ping_error=None):
        self.entries = entries or {}
        self.ping_error = ping_error
        self.pings = 0
        self.pinged = threading.Event()
        self._lock = threading.Lock()

    def ping(self):
        with self._lock:
            self.pings += 1
        self.pinged.set()
        if self.ping_error:
            raise self.ping_error

    def ping_count(self):
        with self._lock:
            return self.pings

    def list_info(self, path=""):
        from backend.database import NotFoundError
        if path not in self.entries:
            raise NotFoundError(f"[50@0] {{lsinfo}} No such directory: {path}")
        return self.entries[path]

    def close(self):
        pass


class FakeFilesystem:
    """In-memory stand-in for OSFilesystem."""

    def __init__(self, files=None):
        self.files = files or {}

    def open(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return io.BytesIO(self.files[path])


@pytest.fixture
def config():
    """Config with the joe/sesame credentials and keepalive disabled."""
    return Config(
        subsonic_user="joe",
        subsonic_password="sesame",
        music_directory=Path("/music"),
        logger=logging.getLogger("subsonic.test"),
    )


@pytest.fixture
def library():
    """A small MPD database: two artists, one loose song at the root."""
    return {
        "": [
            {"directory": "Beatles"},
            {"directory": "abba"},
            {"directory": "2Pac"},
            {"playlist": "favourites"},
            {"file": "loose.mp3", "title": "Loose", "time": "61"},
        ],
        "Beatles": [
            {"directory": "Beatles/Abbey Road"},
        ],
        "Beatles/Abbey Road": [
            {
                "file": "Beatles/Abbey Road/01 Come Together.flac",
                "title": "Come Together",
                "artist": "The Beatles",
                "album": "Abbey Road",
                "track": "1",
                "date": "1969",
                "duration": "259.947",
            },
        ],
    }


@pytest.fixture
def fake_db(library):
    return FakeDatabase(entries=library)


@pytest.fixture
def fake_fs():
    return FakeFilesystem(files={"loose.mp3": b"ID3" + b"\x00" * 125})
