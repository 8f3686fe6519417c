"""Test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
import respx
import structlog
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from safir.dependencies.http_client import http_client_dependency

from porthor.config import Config
from porthor.factory import Factory, ProcessContext
from porthor.main import create_app

from .support.config import configure
from .support.constants import (
    TEST_ANON_KEY,
    TEST_HOSTNAME,
    TEST_SERVICE_ROLE_KEY,
)
from .support.supabase import MockSupabase, patch_supabase


@pytest.fixture(autouse=True)
def environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set default values of environment variables for testing."""
    monkeypatch.setenv("PORTHOR_SUPABASE_ANON_KEY", TEST_ANON_KEY)
    monkeypatch.setenv(
        "PORTHOR_SUPABASE_SERVICE_ROLE_KEY", TEST_SERVICE_ROLE_KEY
    )


@pytest_asyncio.fixture
async def app(config: Config) -> AsyncIterator[FastAPI]:
    """Return a configured test application.

    Wraps the application in a lifespan manager so that startup and shutdown
    events are sent during test execution.
    """
    app = create_app()
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an ``httpx.AsyncClient`` configured to talk to the test app."""
    async with AsyncClient(
        base_url=f"https://{TEST_HOSTNAME}",
        transport=ASGITransport(app=app),
    ) as client:
        yield client


@pytest.fixture
def config() -> Config:
    """Set up and return the default test configuration.

    Notes
    -----
    This fixture must not be async so that it can be used by the cli tests,
    which must not be async because the Click support starts its own asyncio
    loop.
    """
    return configure("base")


@pytest_asyncio.fixture
async def factory(config: Config) -> AsyncIterator[Factory]:
    """Return a component factory outside of any request."""
    context = await ProcessContext.from_config(config)
    yield Factory(context, structlog.get_logger("porthor"))
    await http_client_dependency.aclose()


@pytest.fixture
def mock_supabase(
    config: Config, respx_mock: respx.Router
) -> MockSupabase:
    """Mock the Supabase authentication API."""
    return patch_supabase(respx_mock, config.supabase)
