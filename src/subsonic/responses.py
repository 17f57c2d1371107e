"""Subsonic API responses.

Every API response is a <subsonic-response> XML document. Failures are
reported inside the document with HTTP status 200, as Subsonic clients
expect; only transport-level problems use other HTTP statuses.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional

SUBSONIC_NAMESPACE = "http://subsonic.org/restapi"
API_VERSION = "1.13.0"

XML_CONTENT_TYPE = "text/xml; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

# Subsonic error codes used by the server
ERROR_GENERIC = 0
ERROR_MISSING_PARAMETER = 10
ERROR_UNAUTHORIZED = 40
ERROR_NOT_FOUND = 70

ERROR_MESSAGES = {
    ERROR_GENERIC: "A generic error.",
    ERROR_MISSING_PARAMETER: "Required parameter is missing.",
    ERROR_UNAUTHORIZED: "Wrong username or password.",
    ERROR_NOT_FOUND: "The requested data was not found.",
}


class SubsonicError(Exception):
    """Protocol-level error reported to the client in a failed response."""

    def __init__(self, code: int, message: Optional[str] = None):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, ERROR_MESSAGES[ERROR_GENERIC])
        super().__init__(f"{code}: {self.message}")


@dataclass
class Response:
    """HTTP response produced by the Server.

    If stream is set, its contents are copied to the client after body
    and the stream is closed afterwards.
    """

    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[BinaryIO] = None


def new_element(tag: str, **attrs) -> ET.Element:
    """Create an element, formatting attribute values the way Subsonic does.

    None values are omitted and booleans are written as true/false.
    """
    element = ET.Element(tag)
    for name, value in attrs.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        element.set(name, str(value))
    return element


def subsonic_response(child: Optional[ET.Element] = None, status: str = "ok") -> ET.Element:
    """Wrap an optional payload element in a <subsonic-response> root."""
    root = new_element(
        "subsonic-response",
        xmlns=SUBSONIC_NAMESPACE,
        status=status,
        version=API_VERSION,
    )
    if child is not None:
        root.append(child)
    return root


def xml_response(child: Optional[ET.Element] = None, status: str = "ok") -> Response:
    """Build an HTTP 200 response carrying a <subsonic-response> document."""
    body = ET.tostring(
        subsonic_response(child, status=status),
        encoding="utf-8",
        xml_declaration=True,
    )
    return Response(
        status=200,
        headers={"Content-Type": XML_CONTENT_TYPE},
        body=body,
    )


def error_response(code: int, message: Optional[str] = None) -> Response:
    """Build a failed <subsonic-response> with HTTP status 200."""
    err = SubsonicError(code, message)
    return xml_response(
        new_element("error", code=err.code, message=err.message),
        status="failed",
    )


def text_response(status: int, message: str) -> Response:
    """Build a plain-text response for transport-level errors."""
    return Response(
        status=status,
        headers={
            "Content-Type": TEXT_CONTENT_TYPE,
            "X-Content-Type-Options": "nosniff",
        },
        body=f"{message}\n".encode("utf-8"),
    )
