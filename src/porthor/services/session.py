"""Validation and renewal of the session carried by a request."""

from __future__ import annotations

from collections.abc import Mapping

from structlog.stdlib import BoundLogger

from ..models.results import (
    Authenticated,
    AuthenticationResult,
    ProviderFailure,
    SessionError,
    SessionState,
    Unauthenticated,
)
from ..models.session import Session
from ..providers.base import IdentityProvider
from .cookies import CookieManager

__all__ = ["SessionService"]


class SessionService:
    """Decide whether a request carries a valid session.

    The request cookies are the only input. No state is kept between
    requests, so every decision is made again against the identity provider.

    Parameters
    ----------
    provider
        Identity provider that validates and renews sessions.
    cookie_manager
        Used to read the session and refresh token from cookies.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        provider: IdentityProvider,
        cookie_manager: CookieManager,
        logger: BoundLogger,
    ) -> None:
        self._provider = provider
        self._cookie_manager = cookie_manager
        self._logger = logger

    async def authenticate(
        self, cookies: Mapping[str, str]
    ) -> AuthenticationResult:
        """Validate the session carried by the cookies of a request.

        The session cookie is checked first. If it is absent, expired, or
        rejected by the provider, a refresh is attempted with the refresh
        token cookie or, failing that, the refresh token in the session
        cookie.

        Parameters
        ----------
        cookies
            Cookies of the incoming request.

        Returns
        -------
        Authenticated or Unauthenticated
            Outcome of the validation. This method never raises, and any
            unexpected error is reported as `Unauthenticated`.
        """
        try:
            return await self._authenticate(cookies)
        except Exception:
            self._logger.exception("Unexpected error validating session")
            return Unauthenticated(
                state=SessionState.no_credential,
                error=SessionError.provider_unavailable,
            )

    async def _authenticate(
        self, cookies: Mapping[str, str]
    ) -> AuthenticationResult:
        session = self._cookie_manager.read_session(cookies)
        if session and session.is_expired():
            self._logger.debug(
                "Session cookie has expired",
                expires=session.expires.isoformat(),
            )
        elif session:
            result = await self._provider.get_session(session)
            match result:
                case Session():
                    return self._success(result, SessionState.valid_session)
                case ProviderFailure(kind=kind, message=message):
                    self._logger.warning(
                        "Session rejected by provider",
                        error_kind=kind.value,
                        error=message,
                    )

        refresh_token = self._cookie_manager.read_refresh_token(cookies)
        if not refresh_token and session:
            refresh_token = session.refresh_token
        if not refresh_token:
            if session:
                error = SessionError.credential_expired
            else:
                error = SessionError.credential_absent
            self._logger.debug("No valid session", error_kind=error.value)
            return Unauthenticated(
                state=SessionState.no_credential, error=error
            )

        state = SessionState.expired_session_with_refresh
        self._logger.debug(
            "Attempting session refresh", session_state=state.value
        )
        refreshed = await self._provider.refresh_session(refresh_token)
        match refreshed:
            case Session():
                return self._success(
                    refreshed, SessionState.refresh_succeeded
                )
            case ProviderFailure(kind=kind, message=message):
                self._logger.warning(
                    "Unable to refresh session",
                    error_kind=kind.value,
                    error=message,
                )
                return Unauthenticated(
                    state=SessionState.refresh_failed, error=kind
                )

    def _success(
        self, session: Session, state: SessionState
    ) -> Authenticated:
        identity = session.user.to_identity()
        self._logger.debug(
            "Authenticated session",
            user_id=identity.id,
            session_state=state.value,
        )
        return Authenticated(identity=identity, session=session, state=state)
