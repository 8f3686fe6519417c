"""Tests for the /api/auth/logout route."""

from __future__ import annotations

import pytest
import respx
from _pytest.logging import LogCaptureFixture
from httpx import AsyncClient, Response

from porthor.config import Config
from porthor.services.redirect import RedirectPolicy

from ..support.constants import TEST_HOSTNAME
from ..support.headers import parse_set_cookies
from ..support.logging import parse_log
from ..support.sessions import build_session, set_session_cookie
from ..support.supabase import MockSupabase


def assert_cookies_cleared(r: Response, config: Config) -> None:
    cookies = parse_set_cookies(r)
    for name in (config.auth_cookie_name, "sb-access-token"):
        cookie = cookies[name]
        assert cookie.value == ""
        assert cookie["max-age"] == "0"
        assert cookie["path"] == "/"
        assert cookie["domain"] == ".example.com"


@pytest.mark.asyncio
async def test_logout(
    client: AsyncClient,
    config: Config,
    mock_supabase: MockSupabase,
    caplog: LogCaptureFixture,
) -> None:
    session = build_session(user_id="some-user")
    mock_supabase.add_session(session)
    set_session_cookie(client, config, session)

    # Confirm that we're logged in.
    r = await client.get("/api/auth")
    assert r.status_code == 200

    caplog.clear()
    r = await client.get("/api/auth/logout")
    assert r.status_code == 302
    assert r.headers["Location"] == config.login_url
    assert_cookies_cleared(r, config)
    assert mock_supabase.signed_out == [session.access_token]
    assert parse_log(caplog) == [
        {
            "event": "Successful logout",
            "httpRequest": {
                "requestMethod": "GET",
                "requestUrl": f"https://{TEST_HOSTNAME}/api/auth/logout",
                "remoteIp": "127.0.0.1",
            },
            "severity": "info",
            "user_id": "some-user",
        }
    ]

    # The session is no longer accepted by the provider.
    r = await client.get("/api/auth")
    assert r.status_code == 302


@pytest.mark.asyncio
async def test_logout_with_url(
    client: AsyncClient, config: Config, mock_supabase: MockSupabase
) -> None:
    session = build_session()
    mock_supabase.add_session(session)
    set_session_cookie(client, config, session)

    redirect_url = "https://app.example.org:4444/logged-out"
    r = await client.get("/api/auth/logout", params={"redirect": redirect_url})
    assert r.status_code == 302
    assert r.headers["Location"] == redirect_url
    assert_cookies_cleared(r, config)


@pytest.mark.asyncio
async def test_logout_post(
    client: AsyncClient, config: Config, mock_supabase: MockSupabase
) -> None:
    session = build_session()
    mock_supabase.add_session(session)
    set_session_cookie(client, config, session)

    r = await client.post("/api/auth/logout")
    assert r.status_code == 302
    assert r.headers["Location"] == config.login_url
    assert_cookies_cleared(r, config)
    assert mock_supabase.signed_out == [session.access_token]


@pytest.mark.asyncio
async def test_logout_local_path(
    client: AsyncClient, config: Config, mock_supabase: MockSupabase
) -> None:
    r = await client.get("/api/auth/logout", params={"redirect": "/goodbye"})
    assert r.status_code == 302
    assert r.headers["Location"] == "https://example.com/goodbye"


@pytest.mark.asyncio
async def test_logout_bad_url(
    client: AsyncClient,
    config: Config,
    mock_supabase: MockSupabase,
    caplog: LogCaptureFixture,
) -> None:
    for redirect in ("https://evil.com/", "//evil.com/", "javascript:foo"):
        caplog.clear()
        r = await client.get(
            "/api/auth/logout", params={"redirect": redirect}
        )
        assert r.status_code == 302
        assert r.headers["Location"] == config.login_url
        assert_cookies_cleared(r, config)
        log = parse_log(caplog)
        assert [m["event"] for m in log] == [
            "Ignoring disallowed redirect target",
            "Logout of already-logged-out session",
        ]
        assert log[0]["error_kind"] == "invalid_redirect_target"
        assert log[0]["redirect"] == redirect


@pytest.mark.asyncio
async def test_logout_not_logged_in(
    client: AsyncClient,
    config: Config,
    respx_mock: respx.Router,
    caplog: LogCaptureFixture,
) -> None:
    caplog.clear()
    r = await client.get("/api/auth/logout")
    assert r.status_code == 302
    assert r.headers["Location"] == config.login_url
    assert_cookies_cleared(r, config)
    assert respx_mock.calls.call_count == 0
    assert parse_log(caplog) == [
        {
            "event": "Logout of already-logged-out session",
            "httpRequest": {
                "requestMethod": "GET",
                "requestUrl": f"https://{TEST_HOSTNAME}/api/auth/logout",
                "remoteIp": "127.0.0.1",
            },
            "severity": "info",
        }
    ]


@pytest.mark.asyncio
async def test_logout_provider_failure(
    client: AsyncClient,
    config: Config,
    mock_supabase: MockSupabase,
    caplog: LogCaptureFixture,
) -> None:
    session = build_session(user_id="some-user")
    mock_supabase.add_session(session)
    mock_supabase.fail_logout = True
    set_session_cookie(client, config, session)

    # The cookies are cleared even though the provider could not invalidate
    # the session.
    caplog.clear()
    r = await client.get(
        "/api/auth/logout", params={"redirect": "https://example.com/bye"}
    )
    assert r.status_code == 302
    assert r.headers["Location"] == "https://example.com/bye"
    assert_cookies_cleared(r, config)
    assert mock_supabase.signed_out == [session.access_token]

    log = parse_log(caplog)
    assert [m["event"] for m in log] == ["Unable to sign out at provider"]
    assert log[0]["severity"] == "warning"
    assert log[0]["error_kind"] == "provider_unavailable"
    assert log[0]["error"] == "Internal server error"
    assert log[0]["user_id"] == "some-user"


@pytest.mark.asyncio
async def test_logout_provider_down(
    client: AsyncClient, config: Config, respx_mock: respx.Router
) -> None:
    supabase_url = str(config.supabase.url).rstrip("/")
    respx_mock.post(f"{supabase_url}/auth/v1/logout").respond(502)
    set_session_cookie(client, config, build_session())

    r = await client.get("/api/auth/logout")
    assert r.status_code == 302
    assert r.headers["Location"] == config.login_url
    assert_cookies_cleared(r, config)


@pytest.mark.asyncio
async def test_logout_unexpected_error(
    client: AsyncClient,
    config: Config,
    mock_supabase: MockSupabase,
    monkeypatch: pytest.MonkeyPatch,
    caplog: LogCaptureFixture,
) -> None:
    def broken(self: RedirectPolicy, url: str | None) -> bool:
        raise RuntimeError("Something went wrong")

    monkeypatch.setattr(RedirectPolicy, "is_allowed", broken)
    set_session_cookie(client, config, build_session())

    caplog.clear()
    r = await client.get(
        "/api/auth/logout", params={"redirect": "https://example.com/bye"}
    )
    assert r.status_code == 302
    assert r.headers["Location"] == config.login_url
    assert_cookies_cleared(r, config)
    log = parse_log(caplog)
    assert [m["event"] for m in log] == ["Unexpected error during logout"]
    assert log[0]["severity"] == "error"
