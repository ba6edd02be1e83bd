"""
Main entry point for the qobuz-server application.
This module handles top-level exception handling and CLI invocation.
"""

import logging
import sys

import typer
from rich.console import Console

from qobuz_server.cli.app import app
from qobuz_server.cli.formatters import format_error_with_suggestions
from qobuz_server.exceptions import QobuzServerError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("qobuz_server")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Server stopped by user.[/yellow]")
        sys.exit(0)
    except QobuzServerError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
