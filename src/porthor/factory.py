"""Create Porthor components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from httpx import AsyncClient
from safir.dependencies.http_client import http_client_dependency
from structlog.stdlib import BoundLogger

from .config import Config
from .providers.base import IdentityProvider
from .providers.supabase import SupabaseProvider
from .services.cookies import CookieManager
from .services.headers import IdentityHeaderEncoder
from .services.redirect import RedirectPolicy
from .services.session import SessionService

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process application context.

    This object caches all of the per-process singletons that can be reused
    for every request and only need to be recreated if the application
    configuration changes. None of them hold mutable state.
    """

    config: Config
    """Porthor's configuration."""

    http_client: AsyncClient
    """Shared HTTP client."""

    redirect_policy: RedirectPolicy
    """Policy built from the allowed redirect domains."""

    cookie_manager: CookieManager
    """Manager for the cookies set by Porthor."""

    header_encoder: IdentityHeaderEncoder
    """Encoder for the identity headers."""

    @classmethod
    async def from_config(cls, config: Config) -> Self:
        """Create a new process context from the Porthor configuration.

        Parameters
        ----------
        config
            The Porthor configuration.

        Returns
        -------
        ProcessContext
            Shared context for a Porthor process.
        """
        cookie_manager = CookieManager(
            cookie_name=config.auth_cookie_name,
            code_verifier_cookie_name=config.code_verifier_cookie_name,
            domain=config.cookie_domain,
            secure=config.secure_cookies,
        )
        return cls(
            config=config,
            http_client=await http_client_dependency(),
            redirect_policy=RedirectPolicy(config.allowed_domains),
            cookie_manager=cookie_manager,
            header_encoder=IdentityHeaderEncoder(),
        )


class Factory:
    """Build Porthor components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for errors.
    """

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger

    def create_provider(self) -> IdentityProvider:
        """Create the identity provider.

        Returns
        -------
        IdentityProvider
            A new provider for the configured Supabase project.
        """
        return SupabaseProvider(
            config=self._context.config.supabase,
            http_client=self._context.http_client,
            timeout=self._context.config.provider_timeout,
            logger=self._logger,
        )

    def create_session_service(self) -> SessionService:
        """Create a new manager object for validating sessions.

        Returns
        -------
        SessionService
            Newly-created session service.
        """
        return SessionService(
            provider=self.create_provider(),
            cookie_manager=self._context.cookie_manager,
            logger=self._logger,
        )

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
