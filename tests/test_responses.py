"""Tests for subsonic/responses.py - subsonic-response documents."""

import sys
import xml.etree.ElementTree as ET
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subsonic.responses import (
    API_VERSION,
    SUBSONIC_NAMESPACE,
    SubsonicError,
    error_response,
    new_element,
    text_response,
    xml_response,
)

NS = {"s": SUBSONIC_NAMESPACE}


class TestSubsonicError:
    """Tests for SubsonicError."""

    def test_default_message(self):
        """Known codes get the standard message."""
        err = SubsonicError(40)
        assert err.code == 40
        assert err.message == "Wrong username or password."

    def test_custom_message(self):
        """Explicit messages override the default."""
        err = SubsonicError(10, "Required parameter is missing: id")
        assert err.message == "Required parameter is missing: id"

    def test_unknown_code(self):
        """Unknown codes fall back to the generic message."""
        assert SubsonicError(99).message == "A generic error."


class TestNewElement:
    """Tests for new_element attribute formatting."""

    def test_booleans(self):
        """Booleans are written as true/false."""
        element = new_element("child", isDir=True, video=False)
        assert element.get("isDir") == "true"
        assert element.get("video") == "false"

    def test_none_omitted(self):
        """None attributes are left out."""
        element = new_element("child", album=None, title="x")
        assert "album" not in element.attrib

    def test_numbers(self):
        """Numbers are stringified."""
        assert new_element("child", duration=61).get("duration") == "61"


class TestXmlResponse:
    """Tests for xml_response and error_response."""

    def test_ok_document(self):
        """Successful responses are namespaced subsonic-response documents."""
        response = xml_response(new_element("license", valid=True))
        root = ET.fromstring(response.body)

        assert response.status == 200
        assert response.headers["Content-Type"] == "text/xml; charset=utf-8"
        assert root.tag == f"{{{SUBSONIC_NAMESPACE}}}subsonic-response"
        assert root.get("status") == "ok"
        assert root.get("version") == API_VERSION
        assert root.find("s:license", NS).get("valid") == "true"

    def test_xml_declaration(self):
        """Body starts with an XML declaration."""
        assert xml_response().body.startswith(b"<?xml")

    def test_error_document(self):
        """Errors use HTTP 200 and status=failed."""
        response = error_response(10)
        root = ET.fromstring(response.body)
        error = root.find("s:error", NS)

        assert response.status == 200
        assert root.get("status") == "failed"
        assert error.get("code") == "10"
        assert error.get("message") == "Required parameter is missing."

    def test_error_message_escaped(self):
        """Messages with markup characters stay well-formed."""
        response = error_response(0, 'bad <path> & "quotes"')
        error = ET.fromstring(response.body).find("s:error", NS)
        assert error.get("message") == 'bad <path> & "quotes"'


class TestTextResponse:
    """Tests for text_response."""

    def test_plain_text(self):
        """Transport errors are plain text with the given status."""
        response = text_response(405, "method not allowed")

        assert response.status == 405
        assert response.body == b"method not allowed\n"
        assert response.headers["Content-Type"].startswith("text/plain")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
