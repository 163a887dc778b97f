"""
Console entry point for ``lifter``.

Runs the Typer app and turns anything that escapes a command into a rendered
error panel and an exit status.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from lifter_cli.cli.app import app
from lifter_cli.cli.formatters import format_error_with_suggestions
from lifter_cli.exceptions import ConfigurationError, LifterError

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _force_utf8_console() -> None:
    # Windows consoles default to a legacy code page; rich output needs UTF-8.
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def main() -> None:
    if os.name == "nt":
        _force_utf8_console()

    console = Console(stderr=True)
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print(
            "\n[yellow]⚠️  Run interrupted.[/yellow] "
            "Items that were not recorded yet will be retried next time."
        )
        sys.exit(EXIT_INTERRUPTED)
    except ConfigurationError as e:
        console.print(format_error_with_suggestions(e, {"type": "Configuration"}))
        sys.exit(EXIT_FAILURE)
    except LifterError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        logging.getLogger("lifter_cli").debug("Full traceback:", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
