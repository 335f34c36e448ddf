"""CLI commands that connect to a telemetry stream: ``listen`` and ``dashboard``."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import click

from wstelem._internal.async_utils import run_async, sigterm_calls
from wstelem.cli._options import connection_options, global_options

if TYPE_CHECKING:
    from wstelem.cli.main import AppContext
    from wstelem.models.config import ClientSettings
    from wstelem.stream.decoder import TelemetrySample
    from wstelem.stream.log_sink import LogLine

logger = logging.getLogger(__name__)


@click.command("listen")
@click.option(
    "--duration",
    type=float,
    default=None,
    help="Stop after this many seconds (default: run until interrupted)",
)
@click.option(
    "--samples/--no-samples",
    "show_samples",
    default=True,
    help="Print every decoded telemetry sample (default: on)",
)
@connection_options
@global_options
def listen_cmd(
    app_ctx: AppContext,
    settings: ClientSettings,
    duration: float | None,
    show_samples: bool,
) -> None:
    """Stream log lines and telemetry samples from URL to the console.

    Reconnects with exponential backoff until Ctrl+C, SIGTERM or
    --duration elapses.  Piped output is newline-delimited JSON.

    \b
    Examples:
      wstelem listen ws://192.168.1.88/ws
      wstelem listen https://hub.example.com/telemetry --transport hub
      wstelem listen ws://robot.local/ws --format json | jq .data
    """
    if duration is not None and duration <= 0:
        raise click.UsageError("--duration must be positive.")
    run_async(_cmd_listen(app_ctx, settings, duration=duration, show_samples=show_samples))


async def _cmd_listen(
    app_ctx: AppContext,
    settings: ClientSettings,
    *,
    duration: float | None,
    show_samples: bool,
) -> None:
    from wstelem.stream.client import TelemetryClient

    formatter = app_ctx.formatter
    client = TelemetryClient(settings)

    async def _on_log(line: LogLine) -> None:
        formatter.log_line(line)

    async def _on_sample(sample: TelemetrySample) -> None:
        formatter.sample(sample)

    client.on_log(_on_log)
    if show_samples:
        client.on_sample(_on_sample)

    timer: asyncio.TimerHandle | None = None
    if duration is not None:
        timer = asyncio.get_running_loop().call_later(duration, client.stop)

    try:
        with sigterm_calls(client.stop):
            await client.run()
    finally:
        if timer is not None:
            timer.cancel()

    if formatter.format == "rich":
        formatter.rich.sample_table(client.telemetry.get_latest())
        formatter.rich.client_summary(
            sessions=client.session_count,
            frames=client.frame_count,
            samples=client.telemetry.update_count,
        )


@click.command("dashboard")
@click.option(
    "--refresh",
    type=float,
    default=0.1,
    show_default=True,
    help="Dashboard refresh interval in seconds",
)
@connection_options
@global_options
def dashboard_cmd(app_ctx: AppContext, settings: ClientSettings, refresh: float) -> None:
    """Show a full-screen dashboard for the telemetry stream at URL.

    \b
    Keys:
      up/down          scroll the log one line
      pageup/pagedown  scroll the log one page
      home/end         jump to the oldest/newest line
      a                toggle auto-scroll
      q                quit
    """
    from wstelem.stream.client import TelemetryClient
    from wstelem.tui import TelemetryDashboard

    if refresh <= 0:
        raise click.UsageError("--refresh must be positive.")

    client = TelemetryClient(settings)
    TelemetryDashboard(client, refresh_interval=refresh).run()

    formatter = app_ctx.formatter
    if formatter.format == "rich":
        formatter.rich.client_summary(
            sessions=client.session_count,
            frames=client.frame_count,
            samples=client.telemetry.update_count,
        )
