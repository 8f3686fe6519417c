"""Validation of redirect targets against the allowed domains.

Several routes accept a caller-supplied URL to which the browser is sent
afterwards. To avoid creating an open redirect, those URLs must point to a
host in the configured allow-list. This is the only defense against open
redirects, so every check fails closed: anything that cannot be parsed
unambiguously is rejected.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Self
from urllib.parse import urlsplit

from ..exceptions import InvalidDomainPatternError

__all__ = [
    "DomainPattern",
    "RedirectPolicy",
]

_HOSTNAME_REGEX = re.compile(
    r"^(?=.{1,253}$)"
    r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
    r"(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)*$"
)
"""Lower-case ASCII hostname with no trailing dot."""

_UNSAFE_REGEX = re.compile(r"[\\\s\x00-\x1f\x7f]")
"""Characters that browsers and Python URL parsers may interpret differently.

Browsers treat a backslash in a URL as a slash and silently drop embedded
tabs and newlines, so ``https://evil.com\\.example.com`` would be sent to
``evil.com`` even though Python sees the hostname as ending in
``.example.com``.
"""

_ALLOWED_SCHEMES = frozenset({"http", "https"})
"""URL schemes that may be used for a redirect."""


@dataclass(frozen=True, slots=True)
class DomainPattern:
    """One entry in the redirect allow-list."""

    domain: str
    """Lower-case hostname, without any wildcard prefix."""

    wildcard: bool = False
    """Whether subdomains of ``domain`` also match."""

    @classmethod
    def from_string(cls, pattern: str) -> Self:
        """Parse an allow-list entry.

        Parameters
        ----------
        pattern
            Either an exact hostname or ``*.`` followed by a hostname.

        Returns
        -------
        DomainPattern
            The parsed pattern, normalized to lower case.

        Raises
        ------
        InvalidDomainPatternError
            Raised if the pattern is not a valid hostname or wildcard.
        """
        domain = pattern.strip().lower()
        wildcard = domain.startswith("*.")
        if wildcard:
            domain = domain[2:]
        if not _HOSTNAME_REGEX.match(domain):
            msg = f"Invalid domain pattern: {pattern}"
            raise InvalidDomainPatternError(msg)
        return cls(domain=domain, wildcard=wildcard)

    def matches(self, hostname: str) -> bool:
        """Check whether a lower-case hostname matches this pattern.

        A wildcard pattern matches its base domain and anything ending in a
        dot followed by the base domain. The dot is required, so
        ``*.example.com`` does not match ``badexample.com``.
        """
        if hostname == self.domain:
            return True
        return self.wildcard and hostname.endswith(f".{self.domain}")

    def __str__(self) -> str:
        return f"*.{self.domain}" if self.wildcard else self.domain


class RedirectPolicy:
    """Decide whether a redirect target is safe to honor.

    The allow-list is fixed when the policy is constructed.

    Parameters
    ----------
    patterns
        Allowed domain patterns, either parsed or in string form.

    Raises
    ------
    InvalidDomainPatternError
        Raised if one of the string patterns is invalid.
    """

    def __init__(self, patterns: Iterable[DomainPattern | str]) -> None:
        self._patterns = tuple(
            p if isinstance(p, DomainPattern) else DomainPattern.from_string(p)
            for p in patterns
        )

    @property
    def patterns(self) -> tuple[DomainPattern, ...]:
        """The configured allow-list."""
        return self._patterns

    def is_allowed(self, url: str | None) -> bool:
        """Check whether an absolute URL is an acceptable redirect target.

        Parameters
        ----------
        url
            Untrusted URL, which may be malformed.

        Returns
        -------
        bool
            `True` if the URL is an absolute ``http`` or ``https`` URL whose
            hostname matches an allow-list entry, `False` otherwise. Never
            raises.
        """
        hostname = _parse_hostname(url)
        if not hostname:
            return False
        return any(p.matches(hostname) for p in self._patterns)

    def is_local_path(self, target: str | None) -> bool:
        """Check whether a target is a path on the same host.

        Parameters
        ----------
        target
            Untrusted redirect target.

        Returns
        -------
        bool
            `True` if the target is an absolute path with no scheme or host,
            which a browser will always resolve against the current origin.
        """
        if not target or not target.startswith("/"):
            return False
        if target.startswith("//") or _UNSAFE_REGEX.search(target):
            return False
        try:
            parsed = urlsplit(target)
        except ValueError:
            return False
        return not parsed.scheme and not parsed.netloc


def _parse_hostname(url: str | None) -> str | None:
    """Extract the hostname of an absolute URL, or `None` if unsafe."""
    if not url or not isinstance(url, str):
        return None
    if _UNSAFE_REGEX.search(url):
        return None
    try:
        parsed = urlsplit(url)
        hostname = parsed.hostname

        # Accessing the port validates it and raises ValueError if invalid.
        parsed.port  # noqa: B018
    except ValueError:
        return None
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        return None
    if not hostname or not _HOSTNAME_REGEX.match(hostname):
        return None
    return hostname
