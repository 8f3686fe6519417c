"""Result types for identity provider calls and session validation.

Identity provider calls return either a value or a `ProviderFailure` rather
than raising exceptions, and session validation always resolves to exactly
one of `Authenticated` or `Unauthenticated`. Callers handle these with
``match`` statements.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .session import Identity, Session

__all__ = [
    "Authenticated",
    "AuthenticationResult",
    "ProviderFailure",
    "SessionError",
    "SessionState",
    "Unauthenticated",
]


class SessionError(str, Enum):
    """Kinds of authentication failure.

    The credential and provider kinds all produce the same response to the
    caller. They are distinguished only for logging.
    """

    credential_absent = "credential_absent"
    credential_expired = "credential_expired"
    refresh_rejected = "refresh_rejected"
    provider_unavailable = "provider_unavailable"
    invalid_redirect_target = "invalid_redirect_target"
    malformed_callback = "malformed_callback"


class SessionState(str, Enum):
    """Terminal state reached while validating the session of a request."""

    no_credential = "no_credential"
    valid_session = "valid_session"
    expired_session_with_refresh = "expired_session_with_refresh"
    refresh_succeeded = "refresh_succeeded"
    refresh_failed = "refresh_failed"


@dataclass(frozen=True, slots=True)
class ProviderFailure:
    """An identity provider call did not produce a result."""

    kind: SessionError
    """Classification of the failure."""

    message: str
    """Human-readable reason, possibly supplied by the provider."""


@dataclass(frozen=True, slots=True)
class Authenticated:
    """The request carries a valid or successfully renewed session."""

    identity: Identity
    """Identity to forward to the protected application."""

    session: Session
    """The validated session."""

    state: SessionState
    """Either ``valid_session`` or ``refresh_succeeded``."""

    @property
    def refreshed(self) -> bool:
        """Whether the session was issued by a refresh during this request."""
        return self.state == SessionState.refresh_succeeded


@dataclass(frozen=True, slots=True)
class Unauthenticated:
    """The request could not be authenticated."""

    state: SessionState
    """Either ``no_credential`` or ``refresh_failed``."""

    error: SessionError
    """Reason for the failure, used only for logging."""


type AuthenticationResult = Authenticated | Unauthenticated
"""Outcome of validating the session of a request."""
