"""
Authentication and authorization utilities.
"""

import base64
import binascii
import hmac
import re
from typing import Annotated

from fastapi import Depends, Header, Request

from lider_gateway.config import get_settings
from lider_gateway.constants import API_KEY_HEADER
from lider_gateway.exceptions import AuthenticationError

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")


def decode_basic_auth(header: str | None) -> tuple[str, str]:
    """
    Decode a Basic Authorization header into username and password.

    Args:
        header: The raw Authorization header value.

    Returns:
        Tuple of (username, password), both stripped. Returns empty strings
        when the header does not use the Basic scheme.

    Raises:
        AuthenticationError: If the credentials are not valid base64 or the
            username or password is empty.
    """
    if not header or not header.startswith("Basic "):
        return "", ""

    encoded = header[6:].strip()
    if not _BASE64_PATTERN.match(encoded):
        raise AuthenticationError("Authentication failed")

    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise AuthenticationError("Authentication failed") from e

    username, _, password = decoded.partition(":")
    if not username.strip() or not password.strip():
        raise AuthenticationError("Username and password cannot be empty")

    return username.strip(), password.strip()


def credentials_from_header(header: str | None) -> tuple[str, str]:
    """
    Extract credentials from an Authorization header.

    Accepts the Basic scheme and, as a fallback, a raw ``user:password``.

    Raises:
        AuthenticationError: If the header is missing or malformed.
    """
    if not header:
        raise AuthenticationError("Authentication failed")

    username, password = decode_basic_auth(header)
    if not username or not password:
        username, _, password = header.partition(":")

    return username, password


def get_client_ip(request: Request) -> str:
    """
    Get the client's IP address.

    Uses the first X-Forwarded-For entry when present, the peer address otherwise.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "Unknown IP"


async def require_api_key(
    api_key: Annotated[str | None, Header(alias=API_KEY_HEADER)] = None,
) -> None:
    """
    FastAPI dependency guarding machine-to-machine endpoints.

    Raises:
        AuthenticationError: If the api-key header is missing or wrong.
    """
    if not api_key:
        raise AuthenticationError("Unauthorized")

    expected = get_settings().api_key
    if not hmac.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
        raise AuthenticationError("Unauthorized")


# Type alias for dependency injection
ApiKeyGuard = Depends(require_api_key)
