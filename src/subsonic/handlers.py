"""Subsonic API endpoint handlers.

Handlers run after the request has been authenticated. Each takes the
Server and the Request and returns a Response; protocol errors are raised
as SubsonicError and rendered by the Server.

Directory and song IDs are the hex encoding of the path relative to
MPD's music directory.
"""

import logging
import mimetypes
import posixpath
from typing import Optional

from backend.filesystem import ForbiddenPath
from subsonic.responses import (
    ERROR_MISSING_PARAMETER,
    ERROR_NOT_FOUND,
    Response,
    SubsonicError,
    new_element,
    xml_response,
)

logger = logging.getLogger(__name__)

MUSIC_FOLDER_ID = 0
MUSIC_FOLDER_NAME = "Music"

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def encode_id(path: str) -> str:
    """Encode an MPD path as a Subsonic ID."""
    return path.encode("utf-8", errors="surrogateescape").hex()


def decode_id(value: str) -> str:
    """Decode a Subsonic ID back into an MPD path.

    Raises:
        SubsonicError: If the ID is not valid hex (data not found)
    """
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise SubsonicError(ERROR_NOT_FOUND, f"Invalid id: {value}")
    return raw.decode("utf-8", errors="surrogateescape")


def _required_param(request, name: str) -> str:
    values = request.query.get(name)
    if not values or not values[0]:
        raise SubsonicError(ERROR_MISSING_PARAMETER, f"Required parameter is missing: {name}")
    return values[0]


def _tag(entry: dict, key: str) -> Optional[str]:
    """Return a single tag value; MPD repeats tags as lists."""
    value = entry.get(key)
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _duration(entry: dict) -> Optional[int]:
    value = _tag(entry, "duration") or _tag(entry, "time")
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _parent_id(path: str) -> Optional[str]:
    parent = posixpath.dirname(path)
    return encode_id(parent) if parent else None


def _directory_child(path: str):
    return new_element(
        "child",
        id=encode_id(path),
        parent=_parent_id(path),
        isDir=True,
        title=posixpath.basename(path),
    )


def _song_child(entry: dict):
    path = entry["file"]
    name = posixpath.basename(path)
    suffix = posixpath.splitext(name)[1].lstrip(".").lower() or None
    content_type, _ = mimetypes.guess_type(name)

    return new_element(
        "child",
        id=encode_id(path),
        parent=_parent_id(path),
        isDir=False,
        title=_tag(entry, "title") or name,
        album=_tag(entry, "album"),
        artist=_tag(entry, "artist"),
        track=_tag(entry, "track"),
        year=_tag(entry, "date"),
        genre=_tag(entry, "genre"),
        duration=_duration(entry),
        suffix=suffix,
        contentType=content_type,
        path=path,
    )


def _children(entries: list) -> list:
    """Build <child> elements for directories and songs, skipping playlists."""
    children = []
    for entry in entries:
        if "directory" in entry:
            children.append(_directory_child(entry["directory"]))
        elif "file" in entry:
            children.append(_song_child(entry))
    return children


def _index_name(name: str) -> str:
    first = name[:1].upper()
    return first if first.isalpha() else "#"


def get_license(server, request) -> Response:
    """Handle getLicense: the emulated server is always licensed."""
    return xml_response(new_element("license", valid=True))


def ping(server, request) -> Response:
    return xml_response()


def get_music_folders(server, request) -> Response:
    """Handle getMusicFolders: MPD exposes a single music directory."""
    folders = new_element("musicFolders")
    folders.append(new_element("musicFolder", id=MUSIC_FOLDER_ID, name=MUSIC_FOLDER_NAME))
    return xml_response(folders)


def get_indexes(server, request) -> Response:
    """Handle getIndexes: top-level directories grouped by first letter.

    Songs stored directly in the music directory are listed as <child>
    elements after the indexes.
    """
    entries = server.db.list_info("")

    groups: dict = {}
    for entry in entries:
        if "directory" not in entry:
            continue
        path = entry["directory"]
        name = posixpath.basename(path)
        groups.setdefault(_index_name(name), []).append((name, path))

    indexes = new_element("indexes", lastModified=0, ignoredArticles="")
    for index_name in sorted(groups):
        index = new_element("index", name=index_name)
        for name, path in sorted(groups[index_name], key=lambda item: item[0].lower()):
            index.append(new_element("artist", id=encode_id(path), name=name))
        indexes.append(index)

    for entry in entries:
        if "file" in entry:
            indexes.append(_song_child(entry))

    return xml_response(indexes)


def get_music_directory(server, request) -> Response:
    """Handle getMusicDirectory: list one directory by ID."""
    dir_id = _required_param(request, "id")
    path = decode_id(dir_id)
    if not path:
        raise SubsonicError(ERROR_NOT_FOUND, "Directory not found")

    entries = server.db.list_info(path)

    directory = new_element(
        "directory",
        id=dir_id,
        parent=_parent_id(path),
        name=posixpath.basename(path),
    )
    for child in _children(entries):
        directory.append(child)
    return xml_response(directory)


def _stream_size(stream) -> Optional[int]:
    try:
        size = stream.seek(0, 2)
        stream.seek(0)
    except OSError:
        return None
    return size


def stream(server, request) -> Response:
    """Handle stream: send the raw media file, no transcoding."""
    song_id = _required_param(request, "id")
    path = decode_id(song_id)

    try:
        f = server.fs.open(path)
    except (OSError, ForbiddenPath) as e:
        logger.debug("Cannot open %s for streaming: %s", path, e)
        raise SubsonicError(ERROR_NOT_FOUND, "File not found")

    content_type, _ = mimetypes.guess_type(posixpath.basename(path))
    headers = {"Content-Type": content_type or DEFAULT_CONTENT_TYPE}
    size = _stream_size(f)
    if size is not None:
        headers["Content-Length"] = str(size)

    return Response(status=200, headers=headers, stream=f)
