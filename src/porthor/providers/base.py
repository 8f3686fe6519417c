"""Base class for identity providers."""

from __future__ import annotations

from abc import ABCMeta, abstractmethod

from ..models.results import ProviderFailure
from ..models.session import Session

__all__ = ["IdentityProvider"]


class IdentityProvider(metaclass=ABCMeta):
    """Abstract base class for identity providers.

    Implementations must not raise exceptions for provider, network, or
    protocol failures. Every such failure is returned as a
    `~porthor.models.results.ProviderFailure`.
    """

    @abstractmethod
    async def get_session(self, session: Session) -> Session | ProviderFailure:
        """Confirm that the provider still accepts a session.

        Parameters
        ----------
        session
            Session read from a cookie. Only its access token is trusted.

        Returns
        -------
        Session or ProviderFailure
            The session with the user information returned by the provider,
            or the reason it was not accepted.
        """

    @abstractmethod
    async def refresh_session(
        self, refresh_token: str
    ) -> Session | ProviderFailure:
        """Obtain a new session using a refresh token.

        Parameters
        ----------
        refresh_token
            Refresh token supplied by the client.

        Returns
        -------
        Session or ProviderFailure
            The new session, or the reason none was issued.
        """

    @abstractmethod
    async def exchange_code_for_session(
        self, code: str, code_verifier: str | None
    ) -> Session | ProviderFailure:
        """Exchange an authorization code for a session.

        Parameters
        ----------
        code
            Authorization code returned to the callback route.
        code_verifier
            PKCE code verifier stored by the client that started the login,
            if any.

        Returns
        -------
        Session or ProviderFailure
            The new session, or the reason none was issued.
        """

    @abstractmethod
    async def sign_out(self, access_token: str) -> ProviderFailure | None:
        """Invalidate a session at the provider.

        Parameters
        ----------
        access_token
            Access token of the session to invalidate.

        Returns
        -------
        ProviderFailure or None
            The reason the sign-out failed, or `None` on success.
        """
