"""Tests for backend/filesystem.py - music directory access."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from backend.filesystem import ForbiddenPath, OSFilesystem, resolve_path


@pytest.fixture
def music_dir(tmp_path):
    root = tmp_path / "music"
    (root / "Beatles").mkdir(parents=True)
    (root / "Beatles" / "song.mp3").write_bytes(b"ID3data")
    (tmp_path / "secret.txt").write_text("secret")
    return root


class TestResolvePath:
    """Tests for resolve_path."""

    def test_inside_root(self, music_dir):
        """Relative paths resolve under the root."""
        assert resolve_path(music_dir, "Beatles/song.mp3") == (music_dir / "Beatles" / "song.mp3").resolve()

    def test_leading_slash(self, music_dir):
        """Leading slashes are ignored."""
        assert resolve_path(music_dir, "/Beatles/song.mp3").name == "song.mp3"

    @pytest.mark.parametrize("path", ["../secret.txt", "Beatles/../../secret.txt", "", "/", "a\x00b"])
    def test_rejected(self, music_dir, path):
        """Traversal, empty and NUL paths are forbidden."""
        with pytest.raises(ForbiddenPath):
            resolve_path(music_dir, path)

    def test_symlink_escape(self, music_dir, tmp_path):
        """Symlinks pointing outside the root are forbidden."""
        (music_dir / "link.txt").symlink_to(tmp_path / "secret.txt")
        with pytest.raises(ForbiddenPath):
            resolve_path(music_dir, "link.txt")


class TestOSFilesystem:
    """Tests for OSFilesystem."""

    def test_open(self, music_dir):
        """Files open for binary reading."""
        fs = OSFilesystem(music_dir)
        with fs.open("Beatles/song.mp3") as f:
            assert f.read() == b"ID3data"

    def test_missing(self, music_dir):
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            OSFilesystem(music_dir).open("Beatles/nope.mp3")

    def test_directory(self, music_dir):
        """Directories cannot be opened."""
        with pytest.raises(OSError):
            OSFilesystem(music_dir).open("Beatles")

    def test_forbidden(self, music_dir):
        """Traversal raises ForbiddenPath."""
        with pytest.raises(ForbiddenPath):
            OSFilesystem(music_dir).open("../secret.txt")
