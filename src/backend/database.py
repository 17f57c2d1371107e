"""MPD database access.

Wraps a python-mpd2 client so that it can be shared by request threads
and the keepalive thread: every command runs under a lock, and a lost
connection is re-established once before the command is reported as
failed.
"""

import logging
import re
import threading
from typing import Optional

from mpd import MPDClient, MPDError, CommandError
from mpd import ConnectionError as MPDConnectionError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10

# MPD ACK error code for "No such file or directory"
ACK_ERROR_NO_EXIST = 50

_ACK_RE = re.compile(r"\[(\d+)@\d+\]")


class BackendError(Exception):
    """MPD connection or protocol error."""


class NotFoundError(BackendError):
    """MPD reported that the requested path does not exist."""


def _ack_code(error: CommandError) -> Optional[int]:
    """Extract the numeric ACK code from an MPD command error."""
    match = _ACK_RE.search(str(error))
    return int(match.group(1)) if match else None


class MPDDatabase:
    """Thread-safe handle to an MPD server."""

    def __init__(
        self,
        host: str,
        port: int = 6600,
        password: str = "",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize database handle. Connects lazily on first use.

        Args:
            host: MPD host name, IP address or UNIX socket path
            port: MPD TCP port (ignored for UNIX sockets)
            password: MPD password, if MPD requires one
            timeout: Socket timeout in seconds
        """
        self.host = host
        self.port = port
        self.password = password
        self._client = MPDClient()
        self._client.timeout = timeout
        self._lock = threading.Lock()
        self._connected = False

    def _connect(self):
        self._client.connect(self.host, self.port)
        if self.password:
            self._client.password(self.password)
        self._connected = True
        logger.info(
            "Connected to MPD at %s:%d (protocol %s)",
            self.host, self.port, self._client.mpd_version,
        )

    def _disconnect(self):
        self._connected = False
        try:
            self._client.disconnect()
        except (MPDError, OSError) as e:
            logger.debug("Error while disconnecting from MPD: %s", e)

    def _call(self, command: str, *args):
        """Run an MPD command, reconnecting once if the connection dropped.

        Raises:
            NotFoundError: If MPD reports the path does not exist
            BackendError: On any other MPD or connection failure
        """
        with self._lock:
            for attempt in (1, 2):
                try:
                    if not self._connected:
                        self._connect()
                    return getattr(self._client, command)(*args)
                except CommandError as e:
                    if _ack_code(e) == ACK_ERROR_NO_EXIST:
                        raise NotFoundError(str(e)) from e
                    raise BackendError(f"MPD {command} failed: {e}") from e
                except (MPDConnectionError, OSError) as e:
                    self._disconnect()
                    if attempt == 2:
                        raise BackendError(f"MPD {command} failed: {e}") from e
                    logger.debug("MPD connection lost, reconnecting: %s", e)
                except MPDError as e:
                    raise BackendError(f"MPD {command} failed: {e}") from e

    def ping(self):
        """Send a no-op to MPD, keeping the connection alive."""
        self._call("ping")

    def list_info(self, path: str = "") -> list:
        """List directories, songs and playlists directly under path.

        Args:
            path: Directory relative to MPD's music directory ("" for root)

        Returns:
            List of MPD lsinfo entries (dicts keyed by directory/file/playlist)
        """
        return self._call("lsinfo", path)

    def close(self):
        """Close the MPD connection, if open."""
        with self._lock:
            if self._connected:
                self._disconnect()
