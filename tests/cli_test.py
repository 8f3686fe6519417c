"""Tests for the command-line interface.

None of these tests can be async, since the click command handling code may
start its own asyncio loop.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from porthor.cli import main

from .support.config import config_path


def test_help() -> None:
    runner = CliRunner()

    result = runner.invoke(main, ["help"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "check-redirect" in result.output
    assert "openapi-schema" in result.output

    result = runner.invoke(
        main, ["help", "check-redirect"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert "allowed redirect target" in result.output


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/",
        "https://app.example.org/some/page",
        "https://example.org/",
    ],
)
def test_check_redirect_allowed(url: str) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["check-redirect", "--config-path", str(config_path("base")), url],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    assert result.output == f"Allowed: {url}\n"


@pytest.mark.parametrize(
    "url",
    [
        "https://evil.com/",
        "https://app.example.com/",
        "https://example.com@evil.com/",
        "/dashboard",
    ],
)
def test_check_redirect_rejected(url: str) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["check-redirect", "--config-path", str(config_path("base")), url],
        catch_exceptions=False,
    )
    assert result.exit_code == 1
    assert result.output == f"Not allowed: {url}\n"


def test_check_redirect_envvar(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORTHOR_CONFIG_PATH", str(config_path("paths")))
    runner = CliRunner()

    result = runner.invoke(
        main, ["check-redirect", "https://app.example.com/"]
    )
    assert result.exit_code == 0
    result = runner.invoke(main, ["check-redirect", "https://example.com/"])
    assert result.exit_code == 1


def test_openapi_schema(tmp_path: Path) -> None:
    output_path = tmp_path / "openapi.json"
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["openapi-schema", "--output", str(output_path)],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    schema = json.loads(output_path.read_text())
    assert schema["info"]["title"] == "Porthor"
    assert "/api/auth" in schema["paths"]
    assert "/api/auth/logout" in schema["paths"]

    result = runner.invoke(main, ["openapi-schema"], catch_exceptions=False)
    assert result.exit_code == 0
    assert json.loads(result.output) == schema
