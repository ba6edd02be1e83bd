"""
Defines the command-line interface for the acquisition server using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from aiohttp import web
from rich.console import Console
from rich.logging import RichHandler

from qobuz_server import __version__
from qobuz_server.api.client import QobuzCatalogClient
from qobuz_server.exceptions import QobuzServerError
from qobuz_server.storage.config_manager import ConfigManager
from qobuz_server.web.app import create_app

from .formatters import print_token_table, print_validation_table

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("qobuz_server")

app = typer.Typer(
    name="qobuz-server",
    help=(
        "Server-side Qobuz acquisition: queue albums and tracks over HTTP and "
        "store them as tagged FLAC. Use 'qobuz-server <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_OPTION_HELP = "Optional INI file; environment variables override it."


def _load_config(config_file: Optional[Path], **cli_options):
    return ConfigManager(config_file).load_config(cli_options)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Qobuz acquisition server"""
    if version:
        console.print(f"[bold]qobuz-server[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("qobuz_server").setLevel("DEBUG" if verbose else "INFO")

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on."),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
):
    """Run the HTTP server with its download queue."""
    config = _load_config(config_file, host=host, port=port)
    console.print(
        f"[bold cyan]🎵 Serving on http://{config.host}:{config.port} "
        f"with {len(config.auth_tokens)} token(s)[/bold cyan]"
    )
    console.print(f"[dim]Downloads go to {Path(config.download_path).resolve()}[/dim]")
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)


@app.command()
def validate(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
):
    """Validate the merged configuration."""
    try:
        config = _load_config(config_file)
    except QobuzServerError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_validation_table(config)


@app.command(name="check-tokens")
def check_tokens(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
):
    """Probe every token in the pool and report which ones are entitled."""
    config = _load_config(config_file)

    async def _probe_async():
        api_client = QobuzCatalogClient(
            config.app_id,
            config.app_secret,
            config.auth_tokens,
            api_base=config.api_base,
            probe_timeout=config.probe_timeout,
        )
        try:
            return await api_client.credentials.probe_all()
        finally:
            await api_client.close()

    console.print("[cyan]Probing token pool...[/cyan]")
    results = asyncio.run(_probe_async())
    print_token_table(results)
    if not any(valid for _, valid in results):
        raise typer.Exit(code=1)
