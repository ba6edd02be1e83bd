"""
Functions for formatting and displaying data in the console using Rich.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from qobuz_server.models.config import ServerConfig

SUGGESTIONS = {
    "ConfigurationError": [
        "• Set QOBUZ_APP_ID, QOBUZ_SECRET and QOBUZ_AUTH_TOKENS in the environment.",
        "• Or pass an INI file with --config.",
        "• Run `qobuz-server validate` to check the merged settings.",
    ],
    "NoValidCredentialError": [
        "• Every token in the pool failed validation.",
        "• Run `qobuz-server check-tokens` to see which tokens are rejected.",
        "• Tokens need an active subscription with lossless streaming.",
    ],
    "EntitlementExhaustedError": [
        "• The account only receives preview clips for this track.",
        "• Add a token from an account with a full subscription.",
    ],
    "InvalidAppSecretError": [
        "• The app secret does not match the app id.",
        "• Check QOBUZ_SECRET in the deployment settings.",
    ],
    "TranscodeError": [
        "• Make sure ffmpeg is installed and on the PATH.",
        "• Or point FFMPEG_PATH at the ffmpeg binary.",
    ],
    "ClientResponseError": [
        "• A network connection issue occurred.",
        "• The Qobuz API might be temporarily unavailable.",
    ],
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    suggestions = SUGGESTIONS.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(str(error))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_validation_table(config: ServerConfig):
    """Displays a summary of the merged settings, hiding secrets."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("App ID:", config.app_id)
    table.add_row("App Secret:", "[dim][hidden][/dim]")
    table.add_row("Token Pool:", f"[green]{len(config.auth_tokens)} token(s)[/green]")
    table.add_row("API Base:", config.api_base)
    table.add_row("Token Window:", f"{config.token_validation_window:g}s")
    table.add_row("Download Path:", f"[dim]{config.download_path}[/dim]")
    table.add_row("ffmpeg:", config.ffmpeg_path)
    table.add_row(
        "Verify Output:", "✓ Enabled" if config.verify_output else "✗ Disabled"
    )
    table.add_row("Listen On:", f"{config.host}:{config.port}")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_token_table(results: list[tuple[str, bool]]):
    """Displays the outcome of probing every token in the pool."""
    console = Console()
    table = Table(title="Token Pool")
    table.add_column("#", style="dim")
    table.add_column("Token", style="cyan")
    table.add_column("Status")
    for i, (masked, valid) in enumerate(results, 1):
        status = "[green]✓ Entitled[/green]" if valid else "[red]✗ Rejected[/red]"
        table.add_row(str(i), masked, status)
    console.print(table)

    valid_count = sum(1 for _, valid in results if valid)
    colour = "green" if valid_count else "red"
    console.print(
        f"\n[bold {colour}]{valid_count}/{len(results)} token(s) usable."
        f"[/bold {colour}]"
    )
