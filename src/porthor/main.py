"""Application definition for Porthor."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version

import structlog
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from safir.dependencies.http_client import http_client_dependency
from safir.logging import configure_uvicorn_logging
from safir.middleware.x_forwarded import XForwardedMiddleware
from safir.sentry import initialize_sentry
from safir.slack.webhook import SlackRouteErrorHandler

from . import __version__
from .dependencies.config import config_dependency
from .dependencies.context import context_dependency
from .handlers import callback, forward_auth, internal, logout

__all__ = ["create_app", "create_openapi"]


def create_app(*, load_config: bool = True) -> FastAPI:
    """Create the FastAPI application.

    This is in a function rather than using a global variable (as is more
    typical for FastAPI) because some middleware depends on configuration
    settings and we therefore want to recreate the application between tests.

    Parameters
    ----------
    load_config
        If set to `False`, do not try to load the configuration. This is used
        primarily for OpenAPI schema generation, where constructing the app is
        required but the configuration won't matter.
    """
    # Configure Sentry. If the SENTRY_DSN environment variable is not set, then
    # the Sentry integration won't be enabled.
    initialize_sentry(release=__version__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        config = config_dependency.config()
        await context_dependency.initialize(config)

        yield

        await http_client_dependency.aclose()
        await context_dependency.aclose()

    app = FastAPI(
        title="Porthor",
        description=(
            "Porthor is a ForwardAuth gateway. It validates and renews the"
            " sessions of requests to applications behind a reverse proxy,"
            " forwards the identity of the user to those applications, and"
            " completes logins and logouts."
        ),
        version=version("porthor"),
        tags_metadata=[
            {
                "name": "browser",
                "description": "Routes intended for use from a web browser.",
            },
            {
                "name": "internal",
                "description": (
                    "Internal routes used by the proxy and health checks."
                ),
            },
        ],
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Add all of the routes.
    app.include_router(forward_auth.router)
    app.include_router(callback.router)
    app.include_router(logout.router)
    app.include_router(internal.router)

    # Load configuration if it is available to us and configure Uvicorn
    # logging.
    config = None
    if load_config:
        config = config_dependency.config()
        configure_uvicorn_logging(config.log_level)

    # Install the middleware.
    if config and config.proxies:
        app.add_middleware(
            XForwardedMiddleware,
            proxies=config.proxies,  # type: ignore[arg-type] # needs Safir fix
        )

    # Configure Slack alerts.
    if config and config.slack_alerts and config.slack_webhook:
        logger = structlog.get_logger("porthor")
        SlackRouteErrorHandler.initialize(
            config.slack_webhook, "Porthor", logger
        )
        logger.debug("Initialized Slack webhook")

    return app


def create_openapi() -> str:
    """Generate the OpenAPI schema.

    Returns
    -------
    str
        OpenAPI schema as serialized JSON.
    """
    app = create_app(load_config=False)
    schema = get_openapi(
        title=app.title,
        description=app.description,
        version=app.version,
        routes=app.routes,
    )
    return json.dumps(schema)
