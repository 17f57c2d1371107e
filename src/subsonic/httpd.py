"""Subsonic API HTTP server.

Exposes an emulated Subsonic API in front of an MPD server, so that
Subsonic clients can read MPD's database and stream files from the local
filesystem.
"""

import logging
import shutil
import signal
import threading
from dataclasses import dataclass, field
from functools import partial
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from config import Config, Settings, DEFAULT_BIND, DEFAULT_PORT
from backend.database import BackendError, MPDDatabase, NotFoundError
from backend.filesystem import OSFilesystem
from subsonic import handlers
from subsonic.auth import authenticate
from subsonic.context import parse_request_context
from subsonic.keepalive import Keepalive
from subsonic.responses import (
    ERROR_GENERIC,
    ERROR_MISSING_PARAMETER,
    ERROR_NOT_FOUND,
    ERROR_UNAUTHORIZED,
    Response,
    SubsonicError,
    error_response,
    text_response,
)

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST")
STREAM_CHUNK_SIZE = 64 * 1024


@dataclass
class Request:
    """An inbound request, reduced to what the Server needs."""

    method: str
    target: str
    remote_addr: str = ""
    path: str = field(init=False)
    query: Dict[str, List[str]] = field(init=False)

    def __post_init__(self):
        parts = urlsplit(self.target)
        self.path = parts.path
        self.query = parse_qs(parts.query, keep_blank_values=True)


Handler = Callable[["Server", Request], Response]


class ServerHandler(BaseHTTPRequestHandler):
    """HTTP request handler delegating every request to a Server."""

    protocol_version = "HTTP/1.1"

    def __init__(self, *args, app: "Server", **kwargs):
        # Must be set before BaseHTTPRequestHandler.__init__ handles the request
        self.app = app
        super().__init__(*args, **kwargs)

    def log_message(self, format: str, *args):
        """Override to use Python logging."""
        logger.debug("%s - %s", self.address_string(), format % args)

    def _dispatch(self):
        request = Request(
            method=self.command,
            target=self.path,
            remote_addr=self.client_address[0],
        )
        self.send(self.app.handle(request))

    def __getattr__(self, name: str):
        # Every method goes through the Server, which rejects all but GET
        # and POST. Without a do_<METHOD> the base class would answer 501.
        if name.startswith("do_"):
            return self._dispatch
        raise AttributeError(name)

    def send(self, response: Response):
        """Write a Response, streaming its body if it has one."""
        try:
            self.send_response(response.status)
            for name, value in response.headers.items():
                self.send_header(name, value)
            if response.stream is None:
                self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()

            if self.command != "HEAD":
                self.wfile.write(response.body)
                if response.stream is not None:
                    shutil.copyfileobj(response.stream, self.wfile, STREAM_CHUNK_SIZE)
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug("Client %s disconnected: %s", self.address_string(), e)
        finally:
            if response.stream is not None:
                response.stream.close()


class Server:
    """Subsonic API server in front of an MPD database."""

    def __init__(
        self,
        db,
        fs,
        cfg: Config,
        bind: str = DEFAULT_BIND,
        port: int = DEFAULT_PORT,
    ):
        """Initialize server and start background threads.

        Args:
            db: Database handle (ping() for keepalive, list_info() for handlers)
            fs: Filesystem handle (open() for streaming)
            cfg: Server configuration
            bind: Address to bind to
            port: Port to listen on
        """
        self.db = db
        self.fs = fs
        self.cfg = cfg
        self.bind = bind
        self.port = port
        self.httpd: Optional[ThreadingHTTPServer] = None

        self.routes: Dict[str, Handler] = {
            "/rest/getLicense.view": handlers.get_license,
            "/rest/getIndexes.view": handlers.get_indexes,
            "/rest/getMusicDirectory.view": handlers.get_music_directory,
            "/rest/getMusicFolders.view": handlers.get_music_folders,
            "/rest/ping.view": handlers.ping,
            "/rest/stream.view": handlers.stream,
        }

        self._stop_event = threading.Event()
        self._serving = threading.Event()
        self._lock = threading.Lock()
        self._workers: List[threading.Thread] = []

        if cfg.keepalive > 0:
            worker = Keepalive(db, cfg.keepalive, self._stop_event, cfg.logger)
            self._workers.append(worker)
            worker.start()

    def logf(self, format: str, *args):
        """Log a message through the configured logger."""
        self.cfg.logger.info(format, *args)

    def handle(self, request: Request) -> Response:
        """Run a request through method, parameter and credential checks.

        Subsonic clients expect HTTP 200 for missing parameters and failed
        authentication, with the error carried in the response body.
        """
        if self.cfg.verbose:
            self.logf("%s -> %s %s", request.remote_addr, request.method, request.target)

        if request.method not in ALLOWED_METHODS:
            response = text_response(405, "method not allowed")
        else:
            response = self._handle_allowed(request)

        response.headers["Connection"] = "close"
        return response

    def _handle_allowed(self, request: Request) -> Response:
        rctx = parse_request_context(request.query)
        if rctx is None:
            return error_response(ERROR_MISSING_PARAMETER)

        if not authenticate(rctx, self.cfg):
            return error_response(ERROR_UNAUTHORIZED)

        handler = self.routes.get(request.path)
        if handler is None:
            return text_response(404, "404 page not found")

        try:
            return handler(self, request)
        except SubsonicError as e:
            return error_response(e.code, e.message)
        except NotFoundError:
            return error_response(ERROR_NOT_FOUND)
        except BackendError as e:
            self.cfg.logger.error("%s failed: %s", request.path, e)
            return error_response(ERROR_GENERIC, str(e))

    def close(self):
        """Stop background threads started by the Server and wait for them.

        Returns immediately if no background thread was started.
        """
        self._stop_event.set()
        for worker in self._workers:
            worker.join()

    def start(self):
        """Bind the HTTP listener.

        Raises:
            RuntimeError: If the address cannot be bound
        """
        try:
            self.httpd = ThreadingHTTPServer(
                (self.bind, self.port),
                partial(ServerHandler, app=self),
            )
        except OSError as e:
            logger.error("Failed to bind %s:%d: %s", self.bind, self.port, e)
            raise RuntimeError(f"Bind failed: {e}") from e

        # Pick up the OS-assigned port when started with port 0
        self.port = self.httpd.server_address[1]
        logger.info("Server starting on http://%s:%d", self.bind, self.port)

    def serve_forever(self):
        """Serve requests until shutdown() or Ctrl+C."""
        with self._lock:
            httpd = self.httpd
            if not httpd:
                raise RuntimeError("Server not started")
            self._serving.set()

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutdown requested")
        finally:
            self._serving.clear()

    def shutdown(self):
        """Stop the HTTP listener and background threads.

        Must not be called from the thread running serve_forever().
        """
        logger.info("Shutting down server")

        with self._lock:
            httpd, self.httpd = self.httpd, None
            serving = self._serving.is_set()

        # shutdown() waits for serve_forever() even if its loop has not begun
        if httpd:
            if serving:
                httpd.shutdown()
            httpd.server_close()

        self.close()

    def install_signal_handlers(self):
        """Stop serving on SIGTERM. Call from the main thread."""

        def handle_sigterm(signum, frame):
            logger.info("Received SIGTERM")
            # serve_forever() runs on this thread, so stop it from another
            httpd = self.httpd
            if httpd:
                threading.Thread(target=httpd.shutdown, daemon=True).start()

        signal.signal(signal.SIGTERM, handle_sigterm)


def create_server(settings: Settings) -> Server:
    """Create a server backed by MPD and the local music directory.

    Args:
        settings: Loaded settings

    Returns:
        Server instance (not yet started)
    """
    db = MPDDatabase(
        settings.mpd_host,
        settings.mpd_port,
        password=settings.mpd_password,
    )
    fs = OSFilesystem(settings.config.music_directory)
    return Server(db, fs, settings.config, bind=settings.bind, port=settings.port)
