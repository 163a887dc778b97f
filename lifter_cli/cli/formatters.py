"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from lifter_cli.models.item import ItemDeclaration, ResolvedItem, Template
from lifter_cli.models.outcome import Failed, Installed, Outcome, Skipped, VersionCheck
from lifter_cli.models.settings import RunSettings
from lifter_cli.models.stats import RunStats
from lifter_cli.utils.formatting import format_duration, format_size, format_version


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `lifter init` to create a starter configuration file.",
            "• Pass `--config` to point at an existing file.",
            "• Run `lifter validate` to see which section is at fault.",
        ],
        "InvalidConfiguration": [
            "• Every {placeholder} must be declared in the item's own section.",
            "• Check `page_url`, `anchor_tag` and `version_tag` after template merge.",
            "• Run `lifter validate` to list resolved values.",
        ],
        "RateLimited": [
            "• The release API quota is exhausted for now.",
            "• Export a token in the variable named by `token_env` (GITHUB_TOKEN).",
            "• Run again later; recorded versions are untouched.",
        ],
        "FetchFailed": [
            "• Check the page URL in a browser.",
            "• The release host might be temporarily unavailable.",
        ],
        "NoMatchFound": [
            "• The page layout may have changed; review `anchor_tag`/`version_tag`.",
            "• Loosen the `anchor_text` pattern; it must match the whole link text.",
        ],
        "AmbiguousMatch": [
            "• Several assets passed the `anchor_text` filter.",
            "• Narrow the pattern so exactly one asset name matches.",
        ],
        "UnsupportedArchiveFormat": [
            "• Pick a .tar.gz, .tar.xz, .zip or plain binary asset with `anchor_text`.",
        ],
        "ExtractionMissingEntry": [
            "• Set `target_filename_to_extract_from_archive` to the file's basename.",
            "• Run with -vv to list the archive's entries.",
        ],
        "CorruptArchive": [
            "• The download may have been truncated. Run again.",
            "• The asset may not be the format its name suggests.",
        ],
        "FileSystemError": [
            "• Check that the output directory exists and is writable.",
            "• Use `--output-dir` to install somewhere else.",
        ],
        "ConfigWriteError": [
            "• Check that the configuration file and its directory are writable.",
            "• The executable is installed; the next run will record its version.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Raise `timeout` in the [lifter] section or reduce `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

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


def print_config(
    config_path: Path, settings: dict[str, Any], templates: dict[str, Template]
):
    """Displays the settings section and the available templates."""
    console = Console()
    content = ""
    for key, value in settings.items():
        content += f"{key} = {escape(str(value))}\n"
    if templates:
        content += "\n[bold]Templates:[/bold] " + ", ".join(
            escape(name) for name in sorted(templates)
        )

    console.print(
        Panel(
            content.strip() or "[dim]No settings; defaults apply.[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_items_table(
    declarations: list[ItemDeclaration], templates: dict[str, Template]
):
    """Lists the tracked items with their template and recorded version."""
    console = Console()
    if not declarations:
        console.print("[dim]No items configured yet.[/dim]")
        return

    table = Table(box=box.ROUNDED)
    table.add_column("Item", style="bold cyan")
    table.add_column("Template")
    table.add_column("Method")
    table.add_column("Recorded Version", style="green")

    for declaration in declarations:
        template = templates.get(declaration.template_ref or "")
        method = declaration.fields.get("method") or (
            template.fields.get("method") if template else None
        )
        table.add_row(
            escape(declaration.name),
            escape(declaration.template_ref or "-"),
            method or "html_scrape",
            escape(format_version(declaration.recorded_version)),
        )
    console.print(table)


def print_validation_table(
    settings: RunSettings, entries: list[ResolvedItem | Failed]
) -> int:
    """Displays validated settings and the resolution result of each item."""
    console = Console()

    settings_table = Table(show_header=False, box=None, padding=(0, 2))
    settings_table.add_column(style="bold cyan")
    settings_table.add_column()
    settings_table.add_row("Output Directory:", f"[dim]{settings.output_dir}[/dim]")
    settings_table.add_row("Max Workers:", str(settings.max_workers))
    settings_table.add_row("Timeout:", f"{settings.timeout:g}s")
    settings_table.add_row("Download Retries:", str(settings.retries))
    settings_table.add_row("Token Variable:", f"${settings.token_env}")
    settings_table.add_row("On Rate Limit:", settings.on_rate_limit.value)
    settings_table.add_row(
        "Run History:", "✓ Enabled" if settings.history else "✗ Disabled"
    )
    console.print(
        Panel(
            settings_table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )

    items_table = Table(box=box.ROUNDED)
    items_table.add_column("Item", style="bold cyan")
    items_table.add_column("Method")
    items_table.add_column("Page URL", overflow="fold")
    items_table.add_column("Installs As")
    items_table.add_column("Status")

    invalid = 0
    for entry in entries:
        if isinstance(entry, Failed):
            invalid += 1
            items_table.add_row(
                escape(entry.name), "", "", "", f"[red]✗ {escape(str(entry.error))}[/red]"
            )
        else:
            items_table.add_row(
                escape(entry.name),
                entry.method.value,
                f"[dim]{escape(entry.page_url)}[/dim]",
                escape(entry.desired_filename),
                "[green]✓ valid[/green]",
            )
    if entries:
        console.print(items_table)
    return invalid


def print_outcomes_table(outcomes: list[Outcome]):
    """Displays one row per processed item."""
    if not outcomes:
        return
    console = Console()
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("Item", style="bold cyan")
    table.add_column("Result")
    table.add_column("Version")
    table.add_column("Details", overflow="fold")

    for outcome in outcomes:
        if isinstance(outcome, Installed):
            previous = format_version(outcome.previous_version)
            table.add_row(
                escape(outcome.name),
                "[green]✓ installed[/green]",
                f"{escape(previous)} → [green]{escape(outcome.version)}[/green]",
                f"[dim]{escape(str(outcome.path))}[/dim]",
            )
        elif isinstance(outcome, Skipped):
            table.add_row(
                escape(outcome.name),
                "[yellow]○ skipped[/yellow]",
                escape(outcome.version),
                f"[dim]{outcome.reason}[/dim]",
            )
        elif isinstance(outcome, Failed):
            table.add_row(
                escape(outcome.name),
                f"[red]✗ {outcome.error_type}[/red]",
                "",
                escape(outcome.reason),
            )
    console.print(table)


def print_check_table(results: list[VersionCheck | Failed]):
    """Displays the recorded versus the latest published version of each item."""
    console = Console()
    table = Table(box=box.ROUNDED)
    table.add_column("Item", style="bold cyan")
    table.add_column("Recorded")
    table.add_column("Latest")
    table.add_column("Status")

    for result in results:
        if isinstance(result, Failed):
            table.add_row(
                escape(result.name),
                "",
                "",
                f"[red]✗ {escape(result.reason)}[/red]",
            )
            continue
        status = (
            "[yellow]⬆ update available[/yellow]"
            if result.update_available
            else "[green]✓ up to date[/green]"
        )
        table.add_row(
            escape(result.name),
            escape(format_version(result.recorded)),
            escape(result.latest),
            status,
        )
    console.print(table)


def print_summary_panel(stats: RunStats, progress_stats: dict | None = None):
    """Displays the final summary of a run."""
    console = Console()
    duration_s = stats.elapsed

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Items:", str(stats.items_total))
    stats_table.add_row(
        "✓ Installed:", f"[bold green]{stats.items_installed}[/bold green]"
    )
    if stats.items_skipped > 0:
        stats_table.add_row("○ Up to date:", f"[yellow]{stats.items_skipped}[/yellow]")
    if stats.items_failed > 0:
        failed = f"[bold red]{stats.items_failed}[/bold red]"
        if stats.items_rate_limited:
            failed += f" [dim]({stats.items_rate_limited} rate limited)[/dim]"
        stats_table.add_row("✗ Failed:", failed)

    stats_table.add_row("", "")
    stats_table.add_row(
        "Downloaded:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if progress_stats and progress_stats.get("peak_concurrent"):
        stats_table.add_row(
            "Peak Concurrent:",
            f"[green]{progress_stats['peak_concurrent']}[/green]",
        )

    if stats.items_failed:
        title = "⚠ [bold]Run Finished With Failures[/bold]"
        border_color = "yellow"
    else:
        title = "⬆ [bold]Run Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
