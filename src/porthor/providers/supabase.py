"""Supabase identity provider."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

from httpx import AsyncClient, HTTPError, Response
from pydantic import ValidationError
from safir.datetime import current_datetime
from structlog.stdlib import BoundLogger

from ..config import SupabaseConfig
from ..exceptions import ProviderError, SupabaseError, SupabaseWebError
from ..models.results import ProviderFailure, SessionError
from ..models.session import Session, SessionUser
from .base import IdentityProvider

__all__ = ["SupabaseProvider"]


class SupabaseProvider(IdentityProvider):
    """Talk to the authentication API of a Supabase project.

    Parameters
    ----------
    config
        Configuration for the Supabase project.
    http_client
        Session to use to make HTTP requests.
    timeout
        Upper bound on the duration of each call.
    logger
        Logger for any log messages.
    """

    _USER_PATH = "/auth/v1/user"
    """Route returning the user for an access token."""

    _TOKEN_PATH = "/auth/v1/token"
    """Route issuing sessions for the various grant types."""

    _LOGOUT_PATH = "/auth/v1/logout"
    """Route invalidating a session."""

    def __init__(
        self,
        *,
        config: SupabaseConfig,
        http_client: AsyncClient,
        timeout: timedelta,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._timeout = timeout
        self._logger = logger

    async def get_session(self, session: Session) -> Session | ProviderFailure:
        try:
            r = await self._request(
                "GET", self._USER_PATH, token=session.access_token
            )
        except ProviderError as e:
            return self._unavailable(e)
        if r.status_code in (401, 403):
            msg = self._error_message(r)
            return ProviderFailure(SessionError.credential_expired, msg)
        if r.status_code != 200:
            msg = self._error_message(r)
            return ProviderFailure(SessionError.provider_unavailable, msg)

        # The user in the cookie is under the control of the client, so the
        # identity must come from the provider's response instead.
        try:
            user = SessionUser.model_validate(r.json())
        except ValueError as e:
            return self._invalid_response("user", e)
        return session.model_copy(update={"user": user})

    async def refresh_session(
        self, refresh_token: str
    ) -> Session | ProviderFailure:
        try:
            r = await self._request(
                "POST",
                self._TOKEN_PATH,
                params={"grant_type": "refresh_token"},
                body={"refresh_token": refresh_token},
                privileged=True,
            )
        except ProviderError as e:
            return self._unavailable(e)
        if 400 <= r.status_code < 500:
            msg = self._error_message(r)
            return ProviderFailure(SessionError.refresh_rejected, msg)
        return self._parse_session(r)

    async def exchange_code_for_session(
        self, code: str, code_verifier: str | None
    ) -> Session | ProviderFailure:
        body = {"auth_code": code}
        if code_verifier:
            body["code_verifier"] = code_verifier
        try:
            r = await self._request(
                "POST",
                self._TOKEN_PATH,
                params={"grant_type": "pkce"},
                body=body,
            )
        except ProviderError as e:
            return self._unavailable(e)
        if 400 <= r.status_code < 500:
            msg = self._error_message(r)
            return ProviderFailure(SessionError.malformed_callback, msg)
        return self._parse_session(r)

    async def sign_out(self, access_token: str) -> ProviderFailure | None:
        try:
            r = await self._request(
                "POST",
                self._LOGOUT_PATH,
                params={"scope": "global"},
                token=access_token,
            )
        except ProviderError as e:
            return self._unavailable(e)
        if r.status_code in (401, 403, 404):
            msg = self._error_message(r)
            return ProviderFailure(SessionError.credential_expired, msg)
        if r.status_code >= 300:
            msg = self._error_message(r)
            return ProviderFailure(SessionError.provider_unavailable, msg)
        return None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, str] | None = None,
        token: str | None = None,
        privileged: bool = False,
    ) -> Response:
        """Send a request to the Supabase authentication API.

        Raises
        ------
        SupabaseError
            Raised if the request timed out.
        SupabaseWebError
            Raised if the request failed at the HTTP level.
        """
        key = self._config.anon_key
        if privileged and self._config.service_role_key:
            key = self._config.service_role_key
        headers = {
            "Accept": "application/json",
            "apikey": key.get_secret_value(),
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = str(self._config.url).rstrip("/") + path
        try:
            async with asyncio.timeout(self._timeout.total_seconds()):
                r = await self._http_client.request(
                    method, url, params=params, json=body, headers=headers
                )
        except TimeoutError as e:
            seconds = self._timeout.total_seconds()
            msg = f"Request to {path} timed out after {seconds:g}s"
            raise SupabaseError(msg) from e
        except HTTPError as e:
            raise SupabaseWebError.from_exception(e) from e
        self._logger.debug(
            "Supabase request complete", path=path, status=r.status_code
        )
        return r

    def _parse_session(self, r: Response) -> Session | ProviderFailure:
        """Parse a session from a token response.

        A success response without any session is reported as
        ``credential_absent``. One with an incomplete session is reported as
        ``provider_unavailable``.
        """
        if r.status_code != 200:
            msg = self._error_message(r)
            return ProviderFailure(SessionError.provider_unavailable, msg)
        try:
            data = r.json()
        except ValueError as e:
            return self._invalid_response("session", e)
        if not isinstance(data, dict) or not data.get("access_token"):
            msg = "No session returned by provider"
            return ProviderFailure(SessionError.credential_absent, msg)
        if data.get("expires_at") is None and "expires_in" in data:
            try:
                lifetime = int(data["expires_in"])
            except (TypeError, ValueError) as e:
                return self._invalid_response("session", e)
            now = int(current_datetime().timestamp())
            data["expires_at"] = now + lifetime
        try:
            return Session.model_validate(data)
        except ValidationError as e:
            return self._invalid_response("session", e)

    def _error_message(self, r: Response) -> str:
        """Extract a human-readable error from a Supabase error response."""
        data: Any = None
        try:
            data = r.json()
        except ValueError:
            pass
        if isinstance(data, dict):
            for key in ("error_description", "msg", "message", "error"):
                value = data.get(key)
                if value and isinstance(value, str):
                    return value
        return f"Status {r.status_code} from Supabase"

    def _invalid_response(self, what: str, exc: Exception) -> ProviderFailure:
        msg = f"Invalid {what} returned by Supabase"
        self._logger.warning(msg, error=_summarize(exc))
        return ProviderFailure(SessionError.provider_unavailable, msg)

    def _unavailable(self, exc: ProviderError) -> ProviderFailure:
        return ProviderFailure(SessionError.provider_unavailable, str(exc))


def _summarize(exc: Exception) -> str:
    error = type(exc).__name__
    if str(exc):
        error += f": {exc!s}"
    return error
