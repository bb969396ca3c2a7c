"""Rich terminal output for vpnspeed."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.status import Status
from rich.table import Table
from rich.text import Text

from vpnspeed.models import MeasurementSample, Mode, RunSummary

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route log records through the shared console."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


# ── Per-sample output ─────────────────────────────────────────────────


def render_sample(sample: MeasurementSample) -> None:
    """Print one speed test result."""
    console.print()
    console.print(f"Location: {escape(sample.location_name)}")
    console.print(f"Server: {escape(sample.server_host)}")
    console.print(f"Ping Latency: {sample.ping_latency_ms:.2f} ms")
    console.print(f"Download Bandwidth: [green]{sample.download_mbps}Mbps[/green]")
    console.print(f"Upload Bandwidth: [blue]{sample.upload_mbps}Mbps[/blue]")


# ── Progress tracking ─────────────────────────────────────────────────


class BatchProgress:
    """Spinner for one batch; usable as the engine's progress callback."""

    def __init__(self, mode: Mode, through_vpn: bool):
        self.mode = Mode(mode)
        self.where = "through VPN" if through_vpn else "without VPN"
        self.completed = 0
        self.failed = 0
        self.status: Optional[Status] = None

    def _text(self, index: int, total: int) -> str:
        if self.mode is Mode.SERIES:
            return f"Running speed test #{index + 1} {self.where}..."
        return f"Running speed tests {self.where}... ({self.completed + self.failed}/{total})"

    def start(self) -> None:
        self.status = console.status(f"Running speed tests {self.where}...")
        self.status.start()

    def __call__(
        self,
        index: int,
        total: int,
        sample: Optional[MeasurementSample],
        error: Optional[str],
    ) -> None:
        if sample is None and error is None:
            if self.status:
                self.status.update(self._text(index, total))
            return

        if error is not None:
            self.failed += 1
            console.print(f"[red]✗ Speed test #{index + 1} failed[/red]")
        else:
            self.completed += 1
            render_sample(sample)
            console.print(f"[green]✓ Speed test #{index + 1} completed[/green]")

        if self.status:
            self.status.update(self._text(index, total))

    def finish(self) -> None:
        if self.status:
            self.status.stop()
            self.status = None

    def __enter__(self) -> BatchProgress:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.finish()


# ── Summary ───────────────────────────────────────────────────────────


_STATUS_STYLES = {"ok": "green", "skipped": "yellow", "empty": "yellow", "failed": "red"}


def render_summary(summary: RunSummary, results_file: str) -> None:
    """Print the per-location results table."""
    if summary.baseline:
        console.print(f"\n[bold]Without VPN:[/bold] {summary.baseline}")

    if not summary.outcomes:
        console.print("[dim]No locations tested.[/dim]")
        return

    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        header_style="bold",
        title="[bold]VPN Speed Results[/bold]",
        title_style="",
    )
    table.add_column("Location", style="bold")
    table.add_column("Region")
    table.add_column("Connect", justify="right")
    table.add_column("Download", justify="right")
    table.add_column("Upload", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Server")
    table.add_column("Status")

    for outcome in summary.outcomes:
        stat = outcome.stat
        style = _STATUS_STYLES.get(outcome.status, "")
        status_text = Text(outcome.status, style=style)
        if outcome.error:
            status_text.append(f" ({outcome.error})", style="dim")
        table.add_row(
            str(outcome.location),
            outcome.region or "\u2014",
            outcome.connect_time or "\u2014",
            stat.download_speed if stat else "\u2014",
            stat.upload_speed if stat else "\u2014",
            stat.latency if stat else "\u2014",
            stat.server if stat else "\u2014",
            status_text,
        )

    console.print()
    console.print(table)
    if summary.persisted:
        console.print(f"\n[dim]Results written to {escape(results_file)}[/dim]")


def render_status(message: str) -> None:
    console.print(message)


def render_warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}")


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
