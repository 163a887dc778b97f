"""
Manages a Rich Live display for a run: overall item progress, active asset
downloads and a small statistics panel.
"""

import asyncio
import logging
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table
from rich.text import Text

from lifter_cli.models.outcome import Failed, Installed, Outcome, Skipped

log = logging.getLogger("lifter_cli")


class ProgressManager:
    """
    Tracks item progress for the live display.

    With ``live=False`` nothing is drawn and every method only updates counters,
    which is what non-interactive runs and tests use.
    """

    def __init__(self, console: Console, live: bool = True):
        self.console = console
        self.live = live

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=20),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )

        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=console,
        )

        self._live: Live | None = None
        self._layout: Layout | None = None
        self._overall_task_id: TaskID | None = None
        self._active_tasks: dict[TaskID, str] = {}
        self._in_flight: set[str] = set()

        self._stats = {
            "total_items": 0,
            "installed": 0,
            "skipped": 0,
            "failed": 0,
            "active_downloads": 0,
            "peak_concurrent": 0,
            "start_time": None,
        }

    def initialize_session(self, total_items: int) -> None:
        self._stats["total_items"] = total_items
        self._stats["start_time"] = datetime.now()
        if self.live:
            self._overall_task_id = self.overall_progress.add_task(
                "Items", total=total_items, start=True
            )

    def item_started(self, name: str) -> None:
        self._in_flight.add(name)
        self._update_display()

    def item_finished(self, outcome: Outcome) -> None:
        self._in_flight.discard(outcome.name)
        if isinstance(outcome, Installed):
            self._stats["installed"] += 1
        elif isinstance(outcome, Skipped):
            self._stats["skipped"] += 1
        elif isinstance(outcome, Failed):
            self._stats["failed"] += 1

        if self._overall_task_id is not None:
            self.overall_progress.update(
                self._overall_task_id, completed=self.finished_count
            )
        self._update_display()

    @property
    def finished_count(self) -> int:
        return self._stats["installed"] + self._stats["skipped"] + self._stats["failed"]

    def add_download_task(self, name: str, asset_name: str) -> TaskID | None:
        if not self.live:
            return None
        description = f"[cyan]{name}[/cyan] {asset_name}"
        if len(description) > 60:
            description = description[:57] + "..."
        task_id = self.progress.add_task(description, total=None, start=True)
        self._active_tasks[task_id] = name
        self._stats["active_downloads"] = len(self._active_tasks)
        self._stats["peak_concurrent"] = max(
            self._stats["peak_concurrent"], self._stats["active_downloads"]
        )
        self._update_display()
        return task_id

    def update_task_progress(
        self, task_id: TaskID | None, completed: int, total: int = 0
    ) -> None:
        if task_id is None or not self.live:
            return
        self.progress.update(task_id, completed=completed, total=total or None)
        self._update_display()

    def remove_task(self, task_id: TaskID | None, success: bool = True) -> None:
        if task_id is None or not self.live:
            return
        try:
            self.progress.remove_task(task_id)
        except KeyError:
            log.debug(f"Progress task {task_id} was already removed")
        self._active_tasks.pop(task_id, None)
        self._stats["active_downloads"] = len(self._active_tasks)
        self._update_display()

    def get_statistics(self) -> dict:
        return self._stats.copy()

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="stats", size=7),
            Layout(name="progress", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        elapsed_str = "00:00:00"
        if self._stats["start_time"]:
            elapsed = (datetime.now() - self._stats["start_time"]).total_seconds()
            elapsed_str = (
                f"{int(elapsed // 3600):02d}:"
                f"{int((elapsed % 3600) // 60):02d}:{int(elapsed % 60):02d}"
            )
        header_text = Text()
        header_text.append("⬆ lifter ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Run: {elapsed_str}", style="yellow")
        if self._in_flight:
            header_text.append(" │ ", style="dim")
            header_text.append(", ".join(sorted(self._in_flight))[:60], style="dim")
        return Panel(header_text, border_style="cyan")

    def _generate_stats_panel(self) -> Panel:
        stats_table = Table.grid(padding=(0, 2))
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        stats_table.add_row(
            "Installed:",
            f"[green]{self._stats['installed']}[/green]",
            "Failed:",
            f"[red]{self._stats['failed']}[/red]",
        )
        stats_table.add_row(
            "Up to date:",
            f"[yellow]{self._stats['skipped']}[/yellow]",
            "Remaining:",
            f"[cyan]{self._stats['total_items'] - self.finished_count}[/cyan]",
        )
        combined = Table.grid()
        combined.add_row(stats_table)
        if self._overall_task_id is not None:
            combined.add_row(self.overall_progress)
        return Panel(combined, title="[bold]📊 Run Statistics[/bold]", border_style="blue")

    def _generate_progress_panel(self) -> Panel:
        if not self._active_tasks:
            return Panel(
                Text("No downloads in progress...", style="dim italic", justify="center"),
                title="[bold]📥 Active Downloads[/bold]",
                border_style="green",
            )
        return Panel(
            self.progress,
            title=f"[bold]📥 Active Downloads ({len(self._active_tasks)})[/bold]",
            border_style="green",
        )

    def _update_display(self) -> None:
        if not self.live or not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["stats"].update(self._generate_stats_panel())
        self._layout["progress"].update(self._generate_progress_panel())

    async def __aenter__(self):
        if not self.live:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=12,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live:
            await asyncio.sleep(0.2)
            self._live.stop()
            self._live = None
