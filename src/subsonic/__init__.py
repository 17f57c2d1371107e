"""Subsonic API emulation for MPD.

The server authenticates Subsonic clients, keeps the MPD connection
alive and answers the Subsonic endpoints from MPD's database and the
local music directory.
"""

from subsonic.httpd import (
    Request,
    Server,
    create_server,
)
from subsonic.context import (
    AuthMethod,
    RequestContext,
    decode_password,
    parse_request_context,
)
from subsonic.auth import (
    authenticate,
    make_token,
)
from subsonic.keepalive import Keepalive
from subsonic.responses import (
    Response,
    SubsonicError,
)

__all__ = [
    # Server
    "Request",
    "Server",
    "create_server",
    # Request context
    "AuthMethod",
    "RequestContext",
    "decode_password",
    "parse_request_context",
    # Auth
    "authenticate",
    "make_token",
    # Keepalive
    "Keepalive",
    # Responses
    "Response",
    "SubsonicError",
]
