"""Encoding of an authenticated identity into HTTP headers."""

from __future__ import annotations

import base64
import binascii

from starlette.datastructures import Headers

from ..constants import (
    DISPLAY_NAME_ENCODING,
    HEADER_USER_EMAIL,
    HEADER_USER_ID,
    HEADER_USER_NAME,
    HEADER_USER_NAME_ENCODING,
)
from ..exceptions import InvalidHeaderValueError
from ..models.session import Identity

__all__ = [
    "IdentityHeaderEncoder",
    "build_passthrough_headers",
    "decode_display_name",
]


class IdentityHeaderEncoder:
    """Map an identity onto the headers passed to protected applications.

    The same four headers are always produced so that applications can rely
    on their presence. Missing fields become empty strings. The display name
    may contain arbitrary Unicode and is therefore sent base64-encoded, with
    ``X-User-Name-Encoding`` declaring the encoding. The user ID and email
    address are sent as-is but must be printable ASCII.
    """

    def encode(self, identity: Identity) -> dict[str, str]:
        """Build the identity headers.

        Parameters
        ----------
        identity
            Identity of the authenticated user.

        Returns
        -------
        dict of str
            Mapping of header names to values.

        Raises
        ------
        InvalidHeaderValueError
            Raised if the user ID or email address cannot be sent verbatim
            in an HTTP header.
        """
        email = identity.email or ""
        _check_header_value(HEADER_USER_ID, identity.id)
        _check_header_value(HEADER_USER_EMAIL, email)
        name = ""
        if identity.name:
            name = base64.b64encode(identity.name.encode()).decode()
        return {
            HEADER_USER_ID: identity.id,
            HEADER_USER_EMAIL: email,
            HEADER_USER_NAME: name,
            HEADER_USER_NAME_ENCODING: DISPLAY_NAME_ENCODING,
        }


def build_passthrough_headers(headers: Headers) -> list[tuple[str, str]]:
    """Build the headers copied from the request to the allow response.

    The proxy replaces the request headers sent to the protected application
    with those in the authorization response, so every ``Cookie`` header is
    reflected to make the application see the same cookies it would have
    received directly.

    Parameters
    ----------
    headers
        Headers of the incoming request.

    Returns
    -------
    list of tuple
        Header name and value pairs, in request order.
    """
    return [("Cookie", v) for v in headers.getlist("cookie")]


def decode_display_name(
    value: str, encoding: str | None = DISPLAY_NAME_ENCODING
) -> str:
    """Decode an ``X-User-Name`` header as a protected application would.

    Parameters
    ----------
    value
        Value of the ``X-User-Name`` header.
    encoding
        Value of the ``X-User-Name-Encoding`` header. If it is missing, the
        value is assumed to be unencoded.

    Returns
    -------
    str
        The display name.

    Raises
    ------
    ValueError
        Raised if the encoding is unknown or the value is not validly
        encoded.
    """
    if not encoding:
        return value
    if encoding != DISPLAY_NAME_ENCODING:
        raise ValueError(f"Unknown display name encoding {encoding}")
    try:
        return base64.b64decode(value, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid encoded display name: {e!s}") from e


def _check_header_value(header: str, value: str) -> None:
    if not all(" " <= c <= "~" for c in value):
        raise InvalidHeaderValueError(header)
