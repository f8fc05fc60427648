"""
QuickBridge CLI: command-line interface.

Usage:
    quickbridge serve --config quickbridge.yaml
    quickbridge auth-url
    quickbridge config --config quickbridge.yaml
"""

from __future__ import annotations

import logging
import os
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from quickbridge import __version__

app = typer.Typer(
    name="quickbridge",
    help="QuickBridge: QuickBooks and Shopify API bridge for the dashboard",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]QuickBridge[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """QuickBridge: connect once, read QuickBooks and Shopify data."""


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


@app.command()
def serve(
    config: str = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file",
    ),
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Listen port (default from config / PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
) -> None:
    """Run the API server."""
    import uvicorn

    from quickbridge.api.app import CONFIG_ENV_VAR
    from quickbridge.config import BridgeConfig

    cfg = BridgeConfig.load(config)
    _configure_logging(cfg.server.log_level)

    # The app factory reads the config path from the environment so that
    # reload workers pick up the same file
    if config:
        os.environ[CONFIG_ENV_VAR] = config

    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port

    console.print(Panel.fit(
        f"[bold blue]QuickBridge API[/bold blue]\n"
        f"URL: http://localhost:{bind_port}\n"
        f"Frontend: {cfg.server.frontend_url or 'Not configured'}\n"
        f"Environment: {cfg.quickbooks.environment}",
        subtitle=f"v{__version__}",
    ))

    uvicorn.run(
        "quickbridge.api.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=cfg.server.log_level.lower(),
    )


@app.command("auth-url")
def auth_url(
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Print a QuickBooks authorization URL.

    The state embedded here is not registered with a running server, so the
    server's callback will reject it. Use it to check the app credentials and
    redirect URI registered with Intuit.
    """
    from quickbridge.auth.oauth2 import AuthStateRegistry, IntuitOAuthClient
    from quickbridge.config import BridgeConfig

    cfg = BridgeConfig.load(config)
    if not cfg.quickbooks.client_id:
        console.print("[red]Error: CLIENT_ID is not configured[/red]")
        raise typer.Exit(1)

    client = IntuitOAuthClient(
        client_id=cfg.quickbooks.client_id,
        client_secret=cfg.quickbooks.client_secret,
        redirect_uri=cfg.quickbooks.redirect_uri,
    )
    url = client.build_authorize_url(cfg.quickbooks.scopes, AuthStateRegistry().issue())
    console.print(url, soft_wrap=True)


@app.command("config")
def show_config(
    config: str = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
) -> None:
    """Show the effective configuration (secrets masked)."""
    from quickbridge.config import BridgeConfig

    cfg = BridgeConfig.load(config)

    table = Table(title="QuickBridge Configuration", show_lines=True)
    table.add_column("Setting", style="bold cyan")
    table.add_column("Value")

    for key, value in _flatten(cfg.redacted()):
        table.add_row(key, "" if value is None else str(value))

    console.print(table)


def _flatten(data: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    rows: list[tuple[str, Any]] = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, f"{name}."))
        else:
            rows.append((name, value))
    return rows


if __name__ == "__main__":
    app()
