"""Console rendering and progress helpers for the pwrite-up CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.console import Console
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

from .models import ByteRange, UploadConfig, UploadResult

console = Console()

_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


def format_bytes(count: int) -> str:
    """Binary-unit size, exact for small counts: 512 B, 4.00 MiB."""
    value = float(max(count, 0))
    for unit in _UNITS[:-1]:
        if value < 1024:
            break
        value /= 1024
    else:
        unit = _UNITS[-1]
    return f"{int(value)} {unit}" if unit == "B" else f"{value:.2f} {unit}"


def render_configuration_summary(
    source: Path,
    target: str,
    base_url: str,
    username: str,
    config: UploadConfig,
    env_file: Optional[Path] = None,
    log_mode: str = "silent",
) -> None:
    """Show what is about to be uploaded and how the file will be split."""
    size = source.stat().st_size
    chunk, remainder = divmod(size, config.stream_count)

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    table.add_row("Source", f"{source} ({format_bytes(size)})")
    table.add_row("Target", target)
    table.add_row("API", f"{username} @ {base_url}")
    table.add_row(
        "Streams",
        f"{config.stream_count} x {format_bytes(chunk)}"
        + (f" (+{format_bytes(remainder)} on the last)" if remainder else ""),
    )
    table.add_row("Frame", format_bytes(config.buffer_size))
    table.add_row("Retries", str(config.frame_retries) if config.frame_retries else "off")
    table.add_row("Env file", str(env_file) if env_file else "-")
    table.add_row("Logging", log_mode)

    console.print(
        Panel(
            table,
            title="[bold green]pwrite-up[/bold green]",
            subtitle="[dim]parallel write upload[/dim]",
            border_style="blue",
        )
    )


class StreamProgressDisplay:
    """One progress bar per planned range plus a total bar."""

    def __init__(self, file_path: Path, ranges: Sequence[ByteRange], enabled: bool = True):
        self.file_path = Path(file_path)
        self._ranges: List[ByteRange] = list(ranges)
        self.file_size = sum(r.length for r in self._ranges)
        self._enabled = enabled
        self._tasks: Dict[int, TaskID] = {}
        self._total_task: Optional[TaskID] = None
        self._sent: Dict[int, int] = {}
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    def __enter__(self):
        if self._enabled:
            self._total_task = self._progress.add_task(
                "total", label=self.file_path.name[:40], total=self.file_size
            )
            # empty ranges never report, so every bar exists up front
            for byte_range in self._ranges:
                self._tasks[byte_range.stream_index] = self._progress.add_task(
                    "stream",
                    label=f"  stream {byte_range.stream_index}",
                    total=byte_range.length,
                    completed=0,
                )
            self._progress.start()
        return self

    def __exit__(self, *args):
        if self._enabled:
            self._progress.stop()

    def update(self, stream_index: int, sent: int, length: int) -> None:
        if not self._enabled:
            return
        task_id = self._tasks.get(stream_index)
        if task_id is None:
            return
        self._progress.update(task_id, completed=sent, total=length)
        self._sent[stream_index] = sent
        self._progress.update(self._total_task, completed=sum(self._sent.values()))

    def get_callback(self):
        def callback(stream_index: int, sent: int, length: int) -> None:
            self.update(stream_index, sent, length)

        return callback


def render_result(result: UploadResult) -> None:
    """Print the final outcome, naming every failed stream."""
    size = format_bytes(result.bytes_sent)
    if result.success:
        console.print(
            f"[green]Uploaded:[/green] {result.local_path.name} -> {result.target_path} "
            f"({size} in {result.elapsed:.3f} s)"
        )
    else:
        console.print(f"[red]Failed:[/red] {result.local_path.name} ({size} sent)")
        for index, error in sorted(result.failures.items()):
            console.print(f"  [red]stream {index}[/red]: {error}")
        if result.close_error is not None:
            console.print(f"  [red]session close[/red]: {result.close_error}")

    for index in result.short_streams:
        console.print(f"  [yellow]stream {index}[/yellow]: source ended before its range")
