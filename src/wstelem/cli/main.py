"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses
import logging

import click

from wstelem.errors import ConfigError
from wstelem.output.formatter import OutputFormatter

_current_app_ctx: AppContext | None = None

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    output_format: str | None
    quiet: bool
    verbose: bool
    command: str = "wstelem"
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            force = "quiet" if self.quiet else self.output_format
            self._formatter = OutputFormatter(force_format=force)
        return self._formatter

    def enable_verbose(self) -> None:
        """Turn on DEBUG logging to stderr."""
        self.verbose = True
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s  %(levelname)-5s  [%(name)s]  %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("wstelem").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "json", "quiet"]),
    default=None,
    help="Output format (default: auto-detect)",
)
@click.option("--quiet", is_flag=True, default=False, help="Suppress normal output")
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.version_option(package_name="wstelem")
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Listen to a WebSocket telemetry stream, reconnecting until stopped."""
    global _current_app_ctx
    ctx.ensure_object(dict)
    app_ctx = AppContext(output_format=output_format, quiet=quiet, verbose=False)
    if ctx.invoked_subcommand:
        app_ctx.command = f"wstelem.{ctx.invoked_subcommand}"
    if verbose:
        app_ctx.enable_verbose()
    ctx.obj = app_ctx
    _current_app_ctx = app_ctx


# ---------------------------------------------------------------------------
# Register subcommands (lazy imports keep startup fast)
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    """Import and attach all subcommands to the root CLI."""
    from wstelem.cli.stream import dashboard_cmd, listen_cmd

    cli.add_command(listen_cmd)
    cli.add_command(dashboard_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler."""
    global _current_app_ctx
    _current_app_ctx = None
    try:
        cli(args=argv, standalone_mode=False)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except click.exceptions.ClickException as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except Exception as exc:
        app_ctx = _extract_app_ctx()
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        cmd_name = _get_command_name()
        if isinstance(exc, ConfigError):
            formatter.output_error(code="config_error", message=str(exc), command=cmd_name)
            raise SystemExit(1) from exc
        formatter.output_error(
            code=type(exc).__name__,
            message=str(exc),
            command=cmd_name,
        )
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helpers for error handling
# ---------------------------------------------------------------------------


def _extract_app_ctx() -> AppContext | None:
    """Return the AppContext of the last invocation.

    The Click context is already torn down when an exception reaches
    :func:`main`, so the root callback records it here.
    """
    return _current_app_ctx


def _get_command_name() -> str:
    app_ctx = _extract_app_ctx()
    return app_ctx.command if app_ctx is not None else "wstelem"
