"""Administrative command-line interface."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import uvicorn
from safir.click import display_help

from .dependencies.config import config_dependency
from .main import create_openapi
from .services.redirect import RedirectPolicy

__all__ = [
    "check_redirect",
    "help",
    "main",
    "openapi_schema",
    "run",
]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Administrative command-line interface for porthor."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.argument("url")
@click.option(
    "--config-path",
    envvar="PORTHOR_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)
def check_redirect(*, url: str, config_path: Path | None) -> None:
    """Check whether a URL is an allowed redirect target.

    Exits with status 0 if the configured allowed domains accept the URL and
    with status 1 otherwise.
    """
    if config_path:
        config_dependency.set_config_path(config_path)
    config = config_dependency.config()
    policy = RedirectPolicy(config.allowed_domains)
    if policy.is_allowed(url):
        click.echo(f"Allowed: {url}")
    else:
        click.echo(f"Not allowed: {url}")
        sys.exit(1)


@main.command()
@click.option(
    "--output",
    default=None,
    type=click.Path(path_type=Path),
    help="Output path (output to stdout if not given).",
)
def openapi_schema(*, output: Path | None) -> None:
    """Generate the OpenAPI schema."""
    schema = create_openapi()
    if output:
        output.parent.mkdir(exist_ok=True)
        output.write_text(schema)
    else:
        sys.stdout.write(schema)


@main.command()
@click.option(
    "--port", default=8080, type=int, help="Port to run the application on."
)
def run(*, port: int) -> None:
    """Run the application (for testing only)."""
    uvicorn.run(
        "porthor.main:create_app",
        factory=True,
        port=port,
        reload=True,
        reload_dirs=["src"],
    )
