"""Console rendering and progress helpers for publisher CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import PackageSize
from .orchestrator.models import PublishResult, RunStatus
from .utils.events import ProgressChannel, ProgressEvent


PROGRESS_PERCENT_STEP = 5

console = Console()


def _echo(message: str) -> None:
    console.print(message)


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]mp-publish[/bold green]",
        subtitle="[dim]publisher CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_package_sizes(package_info: Sequence[PackageSize]) -> None:
    """Render the package size breakdown reported by the platform."""
    if not package_info:
        return
    table = Table(title="Package size")
    table.add_column("Package", style="bold cyan")
    table.add_column("Size (KB)", justify="right")
    table.add_column("Size (MB)", justify="right")
    for pkg in package_info:
        table.add_row(pkg.label, f"{pkg.size_kb:.2f} KB", f"{pkg.size_mb:.2f} MB")
    console.print(table)


def render_result(result: PublishResult) -> None:
    """Render the terminal status of a run."""
    if result.version or result.description:
        _echo(f"[dim]version:[/dim] {result.version or '-'}  [dim]description:[/dim] {result.description or '-'}")

    if result.status == RunStatus.SUCCESS:
        _echo(f"[green]Done:[/green] {result.action} succeeded in {result.duration:.1f}s")
    elif result.status == RunStatus.DEGRADED:
        _echo(
            f"[yellow]Done with warnings:[/yellow] {result.action} succeeded in {result.duration:.1f}s, "
            f"QR code kept locally at {result.local_qrcode_path}"
        )
        for warning in result.warnings:
            _echo(f"  [yellow]-[/yellow] {warning}")
    else:
        _echo(f"[red]Failed:[/red] {result.action} ({result.error_type}) - {result.error}")

    render_package_sizes(result.package_info)


class ProgressDisplay:
    """Prints progress lines from a ProgressChannel, thinned to 5% steps."""

    def __init__(self, step: int = PROGRESS_PERCENT_STEP):
        self._step = step
        self._last_percent: Dict[str, float] = {}
        self._last_message: Dict[str, str] = {}

    def should_print(self, event: ProgressEvent) -> bool:
        last = self._last_percent.get(event.kind)
        if last is None:
            return True
        return (
            event.percent >= 100
            or event.percent - last >= self._step
            or event.message != self._last_message.get(event.kind)
        )

    def show(self, event: ProgressEvent) -> None:
        if not self.should_print(event):
            return
        self._last_percent[event.kind] = event.percent
        self._last_message[event.kind] = event.message
        stamp = time.strftime("%H:%M:%S")
        _echo(
            f"[dim]{stamp}[/dim] [cyan]{event.kind:<7}[/cyan] "
            f"{event.message} ({event.percent:.1f}%)"
        )

    async def consume(self, channel: ProgressChannel) -> None:
        async for event in channel:
            self.show(event)


def print_cdn_url(url: Optional[str]) -> None:
    """Print the CDN URL alone on stdout so scripts can capture it."""
    if url:
        print(url)
