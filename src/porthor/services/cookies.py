"""Session cookie management.

The session cookie carries a JSON serialization of the provider session.
Its name and format match those used by the Supabase client libraries, so
the browser-side client can read the session that Porthor sets, and Porthor
can read sessions set by the browser-side client. For the same reason, the
cookie is not marked ``HttpOnly``.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote, unquote

from fastapi import Response

from ..constants import ACCESS_TOKEN_COOKIE, COOKIE_PATH, REFRESH_TOKEN_COOKIE
from ..models.session import Session

__all__ = [
    "CookieDirective",
    "CookieManager",
]

_BASE64_PREFIX = "base64-"
"""Prefix of cookie values written by newer Supabase SSR client libraries."""


@dataclass(frozen=True, slots=True)
class CookieDirective:
    """Instruction to set or clear a cookie in a response."""

    name: str
    """Name of the cookie."""

    value: str
    """Value of the cookie, already encoded for the wire."""

    max_age: int
    """Lifetime in seconds. Zero tells the browser to delete the cookie."""

    path: str = COOKIE_PATH
    """Path attribute."""

    domain: str | None = None
    """Domain attribute, or `None` for a host-only cookie."""

    secure: bool = False
    """Whether to set the ``Secure`` attribute."""

    httponly: bool = False
    """Whether to set the ``HttpOnly`` attribute."""

    samesite: Literal["lax", "strict", "none"] = "lax"
    """Value of the ``SameSite`` attribute."""

    def apply(self, response: Response) -> None:
        """Add the corresponding ``Set-Cookie`` header to a response."""
        response.set_cookie(
            self.name,
            self.value,
            max_age=self.max_age,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


class CookieManager:
    """Read, issue, and clear the cookies Porthor is responsible for.

    Parameters
    ----------
    cookie_name
        Name of the session cookie.
    code_verifier_cookie_name
        Name of the cookie holding the PKCE code verifier.
    domain
        Domain attribute for every cookie, or `None` for host-only cookies.
    secure
        Whether to mark cookies as secure.
    """

    def __init__(
        self,
        *,
        cookie_name: str,
        code_verifier_cookie_name: str,
        domain: str | None,
        secure: bool,
    ) -> None:
        self._name = cookie_name
        self._code_verifier_name = code_verifier_cookie_name
        self._domain = domain
        self._secure = secure

    @property
    def cookie_name(self) -> str:
        """Name of the session cookie."""
        return self._name

    def issue_cookie(self, session: Session) -> CookieDirective:
        """Build the directive that stores a session in the browser.

        Parameters
        ----------
        session
            Session to store.

        Returns
        -------
        CookieDirective
            Directive setting the session cookie, expiring with the session.
        """
        return CookieDirective(
            name=self._name,
            value=self.encode_session(session),
            max_age=session.expires_in,
            domain=self._domain,
            secure=self._secure,
        )

    def clear_cookie(self) -> CookieDirective:
        """Build the directive that removes the session cookie.

        The name, path, and domain must match those used when issuing the
        cookie or the browser will not remove it.
        """
        return self._clear(self._name)

    def issue_access_token_cookie(self, session: Session) -> CookieDirective:
        """Build the directive storing an access token renewed by refresh.

        This cookie is only read by the server, so it is ``HttpOnly``.
        """
        return CookieDirective(
            name=ACCESS_TOKEN_COOKIE,
            value=session.access_token,
            max_age=session.expires_in,
            domain=self._domain,
            secure=self._secure,
            httponly=True,
        )

    def clear_access_token_cookie(self) -> CookieDirective:
        """Build the directive that removes the renewed access token."""
        return self._clear(ACCESS_TOKEN_COOKIE, httponly=True)

    def clear_code_verifier_cookie(self) -> CookieDirective:
        """Build the directive that removes the PKCE code verifier."""
        return self._clear(self._code_verifier_name)

    def encode_session(self, session: Session) -> str:
        """Serialize a session into a cookie value.

        The JSON is percent-encoded so that it contains only characters that
        are legal in a cookie value without quoting.
        """
        return quote(session.model_dump_json(), safe="")

    def parse_session(self, value: str) -> Session | None:
        """Parse a session cookie value.

        Parameters
        ----------
        value
            Cookie value, either percent-encoded JSON, raw JSON, or
            ``base64-`` followed by URL-safe base64-encoded JSON.

        Returns
        -------
        Session or None
            The session, or `None` if the value could not be parsed or was
            not a complete session.
        """
        try:
            data = _decode_cookie_value(value)
            return Session.model_validate_json(data)
        except ValueError:
            return None

    def read_session(self, cookies: Mapping[str, str]) -> Session | None:
        """Find and parse the session cookie among request cookies.

        Client libraries split large sessions across cookies named with
        ``.0``, ``.1``, and so on appended to the cookie name, so those are
        reassembled if the unsplit cookie is not present.
        """
        if self._name in cookies:
            return self.parse_session(cookies[self._name])
        chunks = []
        while f"{self._name}.{len(chunks)}" in cookies:
            chunks.append(cookies[f"{self._name}.{len(chunks)}"])
        if not chunks:
            return None
        return self.parse_session("".join(chunks))

    def read_refresh_token(self, cookies: Mapping[str, str]) -> str | None:
        """Return the refresh token cookie, if present and non-empty."""
        return cookies.get(REFRESH_TOKEN_COOKIE) or None

    def read_code_verifier(self, cookies: Mapping[str, str]) -> str | None:
        """Return the PKCE code verifier, if present.

        The browser-side client library stores the verifier JSON-encoded,
        possibly in the same ``base64-`` form as the session, so it is decoded
        and a quoted string is unquoted.
        """
        value = cookies.get(self._code_verifier_name)
        if not value:
            return None
        try:
            value = _decode_cookie_value(value)
        except ValueError:
            return None
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        return value or None

    def _clear(self, name: str, *, httponly: bool = False) -> CookieDirective:
        return CookieDirective(
            name=name,
            value="",
            max_age=0,
            domain=self._domain,
            secure=self._secure,
            httponly=httponly,
        )


def _decode_cookie_value(value: str) -> str:
    """Undo the encodings client libraries apply to auth cookie values.

    Raises
    ------
    ValueError
        Raised if a ``base64-`` value is not valid base64 or UTF-8.
    """
    if value.startswith(_BASE64_PREFIX):
        encoded = value[len(_BASE64_PREFIX) :]
        encoded += "=" * (-len(encoded) % 4)
        return base64.urlsafe_b64decode(encoded).decode()
    if value.startswith("{"):
        return value
    return unquote(value)
