"""Exceptions for Porthor."""

from __future__ import annotations

from safir.slack.blockkit import SlackException, SlackWebException

__all__ = [
    "InvalidDomainPatternError",
    "InvalidHeaderValueError",
    "ProviderError",
    "ProviderWebError",
    "SupabaseError",
    "SupabaseWebError",
]


class InvalidDomainPatternError(ValueError):
    """An entry in the redirect allow-list is not a valid domain pattern.

    This derives from `ValueError` so that it is reported as a validation
    error when raised while parsing the configuration.
    """


class InvalidHeaderValueError(ValueError):
    """A value cannot be safely sent in an HTTP header."""

    def __init__(self, header: str) -> None:
        super().__init__(f"Value for {header} is not printable ASCII")
        self.header = header


class ProviderError(SlackException):
    """Something failed while talking to the identity provider.

    These exceptions are only raised inside the provider implementations and
    are converted to `~porthor.models.results.ProviderFailure` before leaving
    them.
    """


class ProviderWebError(SlackWebException, ProviderError):
    """A web request to the identity provider failed."""


class SupabaseError(ProviderError):
    """Supabase returned an invalid response or an error."""


class SupabaseWebError(ProviderWebError):
    """A web request to Supabase failed."""
