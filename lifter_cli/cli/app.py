"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from lifter_cli import __version__
from lifter_cli.core.run_manager import RunManager, resolve_items
from lifter_cli.exceptions import ConfigurationError
from lifter_cli.models.settings import RunSettings
from lifter_cli.storage.config_manager import ConfigStore
from lifter_cli.utils.config_validator import export_schema
from lifter_cli.web.client import HttpClient

from .formatters import (
    print_check_table,
    print_config,
    print_items_table,
    print_outcomes_table,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

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
log = logging.getLogger("lifter_cli")

app = typer.Typer(
    name="lifter",
    help=(
        "Keeps a directory of executables in step with their latest upstream"
        " releases. Use 'lifter <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "lifter"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "lifter.ini"


def _config_file(ctx: typer.Context) -> Path:
    obj = ctx.obj or {}
    return obj.get("config_file") or CONFIG_FILE


def _cli_options(output_dir: Path | None, workers: int | None) -> dict:
    return {
        key: value
        for key, value in {"output_dir": output_dir, "max_workers": workers}.items()
        if value is not None
    }


def _make_client(settings: RunSettings) -> HttpClient:
    token = os.environ.get(settings.token_env) or None
    if token:
        log.debug(f"Using bearer token from ${settings.token_env}")
    return HttpClient(
        max_workers=settings.max_workers, timeout=settings.timeout, token=token
    )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the configuration file (default: {CONFIG_FILE}).",
        envvar="LIFTER_CONFIG",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """lifter release tracker"""
    if version:
        console.print(f"[bold]lifter[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("lifter_cli").setLevel(log_level)

    config_file = config.expanduser() if config else CONFIG_FILE
    ctx.obj = {"config_file": config_file, "verbose": verbose}

    if show_config:
        if not config_file.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]lifter init[/cyan] first."
            )
            raise typer.Exit(code=1)
        with ConfigStore(config_file) as store:
            print_config(config_file, store.settings_as_dict(), store.templates)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Directory executables are installed into."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Create a starter configuration file with common templates."""
    config_file = _config_file(ctx)
    if (
        config_file.exists()
        and not force
        and not typer.confirm(
            f"Configuration file '{config_file}' already exists. Overwrite it?"
        )
    ):
        raise typer.Abort()

    settings = {}
    if output_dir:
        settings["output_dir"] = output_dir.expanduser()
    ConfigStore(config_file).save_new_config(settings)

    console.print(f"\n[bold green]✓ Configuration saved to '{config_file}'[/bold green]")
    console.print(
        "Add an item section, for example:\n\n"
        "[dim]\\[ripgrep]\n"
        "template = github_api_latest\n"
        "project = BurntSushi/ripgrep\n"
        "anchor_text = ripgrep-.*-x86_64-unknown-linux-musl\\.tar\\.gz\n"
        "target_filename_to_extract_from_archive = rg[/dim]\n\n"
        "Then try: [cyan]lifter run[/cyan]"
    )


@app.command(name="list")
def list_command(ctx: typer.Context):
    """List tracked items and their recorded versions."""
    with ConfigStore(_config_file(ctx)) as store:
        print_items_table(store.declarations(), store.templates)


@app.command()
def validate(
    ctx: typer.Context,
    export_schema_path: Path | None = typer.Option(
        None,
        "--export-schema",
        help="Write the item section JSON schema to this path and exit.",
    ),
):
    """Validate the settings and resolve every item without fetching anything."""
    if export_schema_path:
        export_schema(export_schema_path)
        console.print(f"[green]✓ Schema written to '{export_schema_path}'[/green]")
        raise typer.Exit()

    try:
        with ConfigStore(_config_file(ctx)) as store:
            settings = store.load_settings()
            invalid = print_validation_table(settings, resolve_items(store))
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration is invalid: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    if invalid:
        console.print(f"[red]✗ {invalid} item(s) failed to resolve.[/red]")
        raise typer.Exit(code=1)


@app.command()
def check(
    ctx: typer.Context,
    names: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Items to check (default: all)."
    ),
):
    """Show which items have a newer release, without downloading."""

    async def _check_async():
        with ConfigStore(_config_file(ctx)) as store:
            settings = store.load_settings()
            async with _make_client(settings) as client:
                manager = RunManager(store, settings, client)
                return await manager.check(names)

    results = asyncio.run(_check_async())
    print_check_table(results)


@app.command(name="run")
def run_command(
    ctx: typer.Context,
    names: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Items to update (default: all)."
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Install into this directory."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of items processed concurrently."
    ),
    progress: bool = typer.Option(
        True, "--progress/--no-progress", help="Show the live progress display."
    ),
):
    """Fetch, compare and install the latest release of every item."""
    cli_options = _cli_options(output_dir, workers)

    async def _run_async():
        with ConfigStore(_config_file(ctx)) as store:
            settings = store.load_settings(cli_options)
            live = progress and console.is_terminal
            async with (
                ProgressManager(console=console, live=live) as progress_manager,
                _make_client(settings) as client,
            ):
                manager = RunManager(store, settings, client, progress_manager)
                console.print("[bold cyan]⬆ Checking releases...[/bold cyan]")
                outcomes = await manager.run(names)
                return manager, outcomes, progress_manager.get_statistics()

    manager, outcomes, progress_stats = asyncio.run(_run_async())

    print_outcomes_table(outcomes)
    print_summary_panel(manager.stats, progress_stats)
    manager.save_run_history()

    if manager.stats.items_failed:
        raise typer.Exit(code=1)
