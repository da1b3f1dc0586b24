"""Caller pre-checks run before a payload reaches the engine.

These helpers cover address allow-lists, HTTP Basic style credentials and the
username/password table of :class:`~rpcengine.config.ServerConfig`. A failing
check raises an exception the server renders as an error with a null id.
"""

import base64
import binascii
import hmac
import logging
from typing import Mapping

from .errors import AccessDenied, AuthenticationFailure

logger = logging.getLogger(__name__)


def check_host(allowed_hosts: list[str], remote_addr: str | None) -> None:
    """Raises AccessDenied if ``remote_addr`` is not allowed."""
    if not allowed_hosts:
        return
    if remote_addr not in allowed_hosts:
        logger.warning("Rejected client address %s", remote_addr)
        raise AccessDenied()


def check_user(users: Mapping[str, str], username: str, password: str) -> None:
    """Raises AuthenticationFailure if the pair is not in ``users``."""
    if not users:
        return
    expected = users.get(username)
    if expected is None or not hmac.compare_digest(
        expected.encode(), (password or "").encode()
    ):
        logger.warning("Rejected credentials for user %r", username)
        raise AuthenticationFailure()


def decode_basic_credentials(value: str | None) -> tuple[str, str]:
    """Decode a base64 ``user:password`` value.

    The ``Basic`` scheme prefix is optional. Anything undecodable gives empty
    credentials.
    """
    if not value:
        return ("", "")
    value = value.strip()
    if value[:6].lower() == "basic ":
        value = value[6:].strip()
    try:
        decoded = base64.b64decode(value, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        return ("", "")
    username, sep, password = decoded.partition(":")
    if not sep:
        return ("", "")
    return (username, password)


def credentials_from_headers(
    headers: Mapping[str, str], header_name: str | None = None
) -> tuple[str, str]:
    """Read caller credentials from request headers.

    ``header_name`` replaces ``Authorization`` when set. Header lookup is
    case-insensitive.
    """
    wanted = (header_name or "Authorization").lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return decode_basic_credentials(value)
    return ("", "")
