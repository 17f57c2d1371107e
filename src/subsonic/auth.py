"""Authentication for Subsonic API requests.

Provides:
- Password authentication (legacy, p parameter)
- Token and salt authentication (t and s parameters, API 1.13.0+)

From the Subsonic API documentation:
    token = md5(password + salt)

MD5 is used only because Subsonic clients compute it; do not reuse this
scheme elsewhere.
"""

import hashlib
import hmac

from config import Config
from subsonic.context import AuthMethod, RequestContext


def _to_bytes(value: str) -> bytes:
    return value.encode("utf-8", errors="surrogateescape")


def make_token(password: str, salt: str) -> str:
    """Compute the Subsonic authentication token for a password and salt.

    Returns:
        Lowercase hex MD5 digest of password + salt
    """
    return hashlib.md5(_to_bytes(password + salt)).hexdigest()


def authenticate(rctx: RequestContext, cfg: Config) -> bool:
    """Check a request's credentials against the configured ones.

    Args:
        rctx: Parsed request context
        cfg: Server configuration holding the expected credentials

    Returns:
        True if authentication is successful, False otherwise
    """
    if rctx.user != cfg.subsonic_user:
        return False

    if rctx.auth_method is AuthMethod.PASSWORD:
        return hmac.compare_digest(
            _to_bytes(rctx.password), _to_bytes(cfg.subsonic_password)
        )

    if rctx.auth_method is AuthMethod.TOKEN_SALT:
        expected = make_token(cfg.subsonic_password, rctx.salt)
        return hmac.compare_digest(_to_bytes(rctx.token), expected.encode("ascii"))

    return False
