from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from wstelem.stream.decoder import TelemetrySample
    from wstelem.stream.log_sink import LogLine

_LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

_LABELS = {
    "roll": "Roll",
    "pitch": "Pitch",
    "yaw": "Yaw",
    "custom1": "C1",
    "custom2": "C2",
}


def format_value(value: float | None) -> str:
    """Render a telemetry value with three decimals, or a dash when unset."""
    return "—" if value is None else f"{value:.3f}"


class RichOutput:
    """Rich-based terminal output helpers for *wstelem*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def log_line(self, line: LogLine) -> None:
        """Print a timestamped log line, coloured by level."""
        style = _LEVEL_STYLES.get(line.level)
        stamp = f"[grey50]{line.timestamp:%H:%M:%S}[/grey50]"
        text = escape(line.text)
        if style:
            text = f"[{style}]{text}[/{style}]"
        self._con.print(f"{stamp} {text}", highlight=False)

    def sample_line(self, sample: TelemetrySample) -> None:
        """Print a compact one-line rendering of *sample*."""
        parts = [
            f"{_LABELS[name]}=[cyan]{format_value(value)}[/cyan]"
            for name, value in sample.values().items()
        ]
        stamp = f"[grey50]{sample.captured_at.astimezone():%H:%M:%S}[/grey50]"
        self._con.print(f"{stamp} [magenta]T[/magenta] " + " ".join(parts), highlight=False)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def sample_table(self, sample: TelemetrySample | None) -> None:
        """Print a table of the latest telemetry values."""
        table = Table(title="Latest Telemetry")
        table.add_column("Field", style="bold")
        table.add_column("Value", justify="right")

        values = sample.values() if sample is not None else dict.fromkeys(_LABELS)
        for name, value in values.items():
            table.add_row(_LABELS[name], format_value(value))

        self._con.print(table)

    def client_summary(self, *, sessions: int, frames: int, samples: int) -> None:
        """Print connection counters after the listener stops."""
        self._con.print(
            f"[dim]Sessions: {sessions}  Frames: {frames}  Samples: {samples}[/dim]"
        )

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {message}")
