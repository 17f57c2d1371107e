"""Request context parsing for Subsonic API requests.

Every request identifies the client (u, c, v) and carries credentials
in one of two forms:
- p: the password, optionally hex-encoded as "enc:<hex>"
- t, s: a token md5(password + salt) together with its salt
"""

import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

ENCODED_PASSWORD_PREFIX = "enc:"


class AuthMethod(Enum):
    """Authentication methods supported by the Server."""

    # Legacy method: username and password sent with each request
    PASSWORD = "password"

    # Recommended method (API 1.13.0+): token and salt sent with each request
    TOKEN_SALT = "token_salt"


@dataclass(frozen=True)
class RequestContext:
    """Client identity and credentials parsed from a single request.

    A RequestContext is never partially filled: user, client and version
    are always set, and exactly one of password or (token, salt) is.
    """

    user: str
    client: str
    version: str
    auth_method: AuthMethod
    password: str = field(default="", repr=False)
    token: str = field(default="", repr=False)
    salt: str = ""

    def __post_init__(self):
        if not (self.user and self.client and self.version):
            raise ValueError("user, client and version are required")

        has_password = bool(self.password)
        has_token = bool(self.token and self.salt)
        if has_password == has_token:
            raise ValueError("exactly one of password or token and salt is required")

        expected = AuthMethod.PASSWORD if has_password else AuthMethod.TOKEN_SALT
        if self.auth_method is not expected:
            raise ValueError(
                f"auth method {self.auth_method} does not match credentials"
            )


def _first(query: Mapping[str, Sequence[str]], key: str) -> str:
    """Return the first value for key, or an empty string."""
    values = query.get(key)
    if not values:
        return ""
    return values[0]


def decode_password(p: str) -> str:
    """Decode a password from its "enc:<hex>" form, if encoded.

    Unencoded passwords are returned unchanged. Invalid hex decodes to an
    empty password so that the request falls through to token auth or is
    reported as missing a parameter.
    """
    if not p.startswith(ENCODED_PASSWORD_PREFIX):
        return p

    try:
        raw = binascii.unhexlify(p[len(ENCODED_PASSWORD_PREFIX):].encode("ascii"))
    except ValueError:
        # binascii.Error and UnicodeEncodeError are both ValueErrors
        return ""
    return raw.decode("utf-8", errors="surrogateescape")


def parse_request_context(
    query: Mapping[str, Sequence[str]],
) -> Optional[RequestContext]:
    """Parse query parameters into a RequestContext.

    Args:
        query: Parsed query string, as returned by urllib.parse.parse_qs

    Returns:
        RequestContext, or None if any mandatory parameter is missing
    """
    user = _first(query, "u")
    client = _first(query, "c")
    version = _first(query, "v")
    if not (user and client and version):
        return None

    # Password takes precedence over token and salt whenever present
    password = decode_password(_first(query, "p"))
    if password:
        return RequestContext(
            user=user,
            client=client,
            version=version,
            auth_method=AuthMethod.PASSWORD,
            password=password,
        )

    token = _first(query, "t")
    salt = _first(query, "s")
    if not (token and salt):
        return None

    return RequestContext(
        user=user,
        client=client,
        version=version,
        auth_method=AuthMethod.TOKEN_SALT,
        token=token,
        salt=salt,
    )
