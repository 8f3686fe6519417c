"""Representation of an identity provider session and the identity in it.

These are the value types Porthor works with. The identity provider adapter
translates whatever the provider returns into them, and the session cookie
is a serialization of `Session`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from safir.datetime import current_datetime

__all__ = [
    "Identity",
    "Session",
    "SessionUser",
]


class SessionUser(BaseModel):
    """User record embedded in a session.

    Only the fields Porthor uses are declared. Any other fields returned by
    the identity provider are preserved so that the browser-side client
    library sees the same user object it would have received directly.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(
        ...,
        title="User ID",
        description="Stable, opaque identifier assigned by the provider",
        examples=["8d0fd2b3-9ca7-4c4e-a2fd-5b4c2b3a0e4d"],
        min_length=1,
    )

    email: str | None = Field(
        None, title="Email address", examples=["someone@example.com"]
    )

    user_metadata: dict[str, Any] = Field(
        {},
        title="User metadata",
        description="User-editable metadata, including the display name",
    )

    app_metadata: dict[str, Any] = Field(
        {},
        title="Application metadata",
        description="Provider-controlled metadata, including the provider",
    )

    def to_identity(self) -> Identity:
        """Derive the identity to forward to protected applications."""
        name = self.user_metadata.get("name")
        if not name:
            name = self.user_metadata.get("full_name")
        provider = self.app_metadata.get("provider")
        return Identity(
            id=self.id,
            email=self.email or None,
            name=str(name) if name else None,
            provider=str(provider) if provider else None,
        )


class Session(BaseModel):
    """A session issued by the identity provider.

    A session is either complete or not a session at all. Every field is
    required, so a provider response or cookie missing any of them fails
    validation and is treated as absent.
    """

    access_token: str = Field(..., title="Access token", min_length=1)

    refresh_token: str = Field(..., title="Refresh token", min_length=1)

    token_type: str = Field(..., title="Token type", examples=["bearer"])

    expires_in: int = Field(
        ..., title="Lifetime in seconds", examples=[3600], ge=0
    )

    expires_at: int = Field(
        ...,
        title="Expiration time",
        description="Expiration time in seconds since epoch",
        examples=[1767225600],
    )

    user: SessionUser = Field(..., title="Authenticated user")

    @property
    def expires(self) -> datetime:
        """Expiration time as a `~datetime.datetime`."""
        return datetime.fromtimestamp(self.expires_at, tz=UTC)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the session has expired.

        Parameters
        ----------
        now
            Time to compare against, defaulting to the current time.
        """
        if not now:
            now = current_datetime()
        return self.expires <= now


class Identity(BaseModel):
    """Identity of an authenticated user, derived from a session."""

    id: str = Field(..., title="User ID", min_length=1)

    email: str | None = Field(None, title="Email address")

    name: str | None = Field(
        None,
        title="Display name",
        description="May contain arbitrary Unicode text",
        examples=["张三"],
    )

    provider: str | None = Field(
        None, title="Authentication provider", examples=["github"]
    )
