"""Constants for Porthor."""

from datetime import timedelta

__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "CONFIG_PATH",
    "COOKIE_PATH",
    "DISPLAY_NAME_ENCODING",
    "HEADER_USER_EMAIL",
    "HEADER_USER_ID",
    "HEADER_USER_NAME",
    "HEADER_USER_NAME_ENCODING",
    "LOGIN_ERROR_NO_CODE",
    "LOGIN_ERROR_NO_SESSION",
    "LOGIN_ERROR_UNEXPECTED",
    "PROVIDER_TIMEOUT",
    "REFRESH_TOKEN_COOKIE",
]

ACCESS_TOKEN_COOKIE = "sb-access-token"
"""Name of the short-lived cookie holding an access token renewed by refresh.

This is separate from the session cookie, whose name is derived from the
Supabase project reference.
"""

CONFIG_PATH = "/etc/porthor/porthor.yaml"
"""Default configuration path."""

COOKIE_PATH = "/"
"""Path attribute of every cookie Porthor sets or clears."""

DISPLAY_NAME_ENCODING = "base64"
"""Value of the encoding marker header for the display name."""

HEADER_USER_EMAIL = "X-User-Email"
"""Header carrying the email address of the authenticated user."""

HEADER_USER_ID = "X-User-Id"
"""Header carrying the provider-assigned ID of the authenticated user."""

HEADER_USER_NAME = "X-User-Name"
"""Header carrying the encoded display name of the authenticated user."""

HEADER_USER_NAME_ENCODING = "X-User-Name-Encoding"
"""Header declaring how ``X-User-Name`` is encoded."""

LOGIN_ERROR_NO_CODE = "no_code"
"""Login error code when the callback had no authorization code."""

LOGIN_ERROR_NO_SESSION = "no_session"
"""Login error code when the provider returned no session for a code."""

LOGIN_ERROR_UNEXPECTED = "unexpected_error"
"""Login error code for any other callback failure."""

PROVIDER_TIMEOUT = timedelta(seconds=10)
"""Default upper bound on the duration of a single identity provider call."""

REFRESH_TOKEN_COOKIE = "sb-refresh-token"
"""Name of the cookie that may carry a refresh token."""
