"""Helper functions for creating test sessions and session cookies."""

from __future__ import annotations

import secrets
from datetime import timedelta
from uuid import uuid4

from httpx import AsyncClient
from safir.datetime import current_datetime

from porthor.config import Config
from porthor.constants import REFRESH_TOKEN_COOKIE
from porthor.models.session import Session, SessionUser
from porthor.services.cookies import CookieManager

from .constants import TEST_HOSTNAME

__all__ = [
    "build_session",
    "cookie_manager_for",
    "set_refresh_cookie",
    "set_session_cookie",
]


def build_session(
    *,
    user_id: str | None = None,
    email: str | None = "someone@example.com",
    name: str | None = "Some User",
    lifetime: timedelta = timedelta(hours=1),
    expired: bool = False,
) -> Session:
    """Create a session as the identity provider would issue it.

    Parameters
    ----------
    user_id
        ID of the user. A random UUID is used if not given.
    email
        Email address of the user.
    name
        Display name of the user, stored as the ``name`` user metadata.
    lifetime
        Lifetime of the session.
    expired
        If `True`, the session expired five minutes ago.

    Returns
    -------
    Session
        The new session with random tokens.
    """
    now = current_datetime()
    if expired:
        expires = now - timedelta(minutes=5)
    else:
        expires = now + lifetime
    user = SessionUser(
        id=user_id or str(uuid4()),
        email=email,
        user_metadata={"name": name} if name else {},
        app_metadata={"provider": "github"},
        aud="authenticated",
    )
    return Session(
        access_token=secrets.token_urlsafe(),
        refresh_token=secrets.token_urlsafe(),
        token_type="bearer",
        expires_in=int(lifetime.total_seconds()),
        expires_at=int(expires.timestamp()),
        user=user,
    )


def cookie_manager_for(config: Config) -> CookieManager:
    """Create a cookie manager matching a configuration."""
    return CookieManager(
        cookie_name=config.auth_cookie_name,
        code_verifier_cookie_name=config.code_verifier_cookie_name,
        domain=config.cookie_domain,
        secure=config.secure_cookies,
    )


def set_session_cookie(
    client: AsyncClient, config: Config, session: Session
) -> None:
    """Add a session cookie to the ``httpx.AsyncClient``.

    Parameters
    ----------
    client
        The client to add the session cookie to.
    config
        Porthor configuration, used to determine the cookie name.
    session
        Session to store in the cookie.
    """
    value = cookie_manager_for(config).encode_session(session)
    client.cookies.set(config.auth_cookie_name, value, domain=TEST_HOSTNAME)


def set_refresh_cookie(client: AsyncClient, refresh_token: str) -> None:
    """Add a refresh token cookie to the ``httpx.AsyncClient``."""
    client.cookies.set(
        REFRESH_TOKEN_COOKIE, refresh_token, domain=TEST_HOSTNAME
    )
