"""Shared CLI decorators: global output options and connection options."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

import click
from pydantic import ValidationError

from wstelem.errors import ConfigError
from wstelem.models.config import ClientSettings

if TYPE_CHECKING:
    from wstelem.cli.main import AppContext


def global_options(f: Any) -> Any:
    """Add global CLI options to a leaf command.

    Allows ``--format``, ``--quiet`` and ``--verbose`` to be specified
    **after** the subcommand name (e.g. ``wstelem listen URL --format json``).
    Command-level values override the root-group values stored in
    :class:`AppContext`.
    """

    @click.option(
        "--verbose",
        "local_verbose",
        is_flag=True,
        default=False,
        help="Enable verbose logging",
    )
    @click.option(
        "--quiet",
        "local_quiet",
        is_flag=True,
        default=False,
        help="Suppress normal output",
    )
    @click.option(
        "--format",
        "local_output_format",
        type=click.Choice(["rich", "json", "quiet"]),
        default=None,
        help="Output format (default: auto-detect)",
    )
    @click.pass_obj
    def wrapper(app_ctx: AppContext, /, **kwargs: Any) -> Any:
        local_output_format: str | None = kwargs.pop("local_output_format", None)
        local_quiet: bool = kwargs.pop("local_quiet", False)
        local_verbose: bool = kwargs.pop("local_verbose", False)

        # Merge overrides into AppContext (command-level wins)
        if local_output_format is not None:
            app_ctx.output_format = local_output_format
            app_ctx._formatter = None  # reset cached formatter
        if local_quiet:
            app_ctx.quiet = True
            app_ctx._formatter = None
        if local_verbose:
            app_ctx.enable_verbose()

        return f(app_ctx, **kwargs)

    functools.update_wrapper(wrapper, f)
    return wrapper


def build_settings(**overrides: Any) -> ClientSettings:
    """Load settings from the environment and apply CLI overrides.

    Raises :class:`ConfigError` when a value fails validation.
    """
    try:
        return ClientSettings().merge_overrides(**overrides)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid settings: {problems}") from exc


def connection_options(f: Any) -> Any:
    """Add the endpoint argument and connection options to a leaf command.

    The wrapped command receives a single ``settings`` keyword argument
    (:class:`ClientSettings`) built from ``WSTELEM_*`` environment
    variables, the ``.env`` file and these options, in increasing priority.
    """

    @click.argument("url", required=False, default=None)
    @click.option(
        "--transport",
        type=click.Choice(["raw", "hub"]),
        default=None,
        help="Wire framing: raw WebSocket messages or JSON hub records (default: raw)",
    )
    @click.option(
        "--connect-timeout",
        type=float,
        default=None,
        help="Seconds allowed for each connect attempt (default: 30)",
    )
    @click.option(
        "--keepalive",
        "keepalive_interval",
        type=float,
        default=None,
        help="Ping interval in seconds, 0 disables (default: 0)",
    )
    @click.option(
        "--min-delay", "min_delay_ms", type=int, default=None, help="Initial reconnect delay in ms"
    )
    @click.option(
        "--max-delay", "max_delay_ms", type=int, default=None, help="Reconnect delay ceiling in ms"
    )
    @click.option(
        "--factor", "backoff_factor", type=float, default=None, help="Reconnect delay multiplier"
    )
    @click.option(
        "--base64/--no-base64",
        "binary_base64",
        default=None,
        help="Also log a base64 preview of binary messages",
    )
    @click.option("--view-height", type=int, default=None, help="Log viewport height in lines")
    @click.option("--max-log-lines", type=int, default=None, help="Log lines kept in scrollback")
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        overrides = {
            key: kwargs.pop(key)
            for key in (
                "url",
                "transport",
                "connect_timeout",
                "keepalive_interval",
                "min_delay_ms",
                "max_delay_ms",
                "backoff_factor",
                "binary_base64",
                "view_height",
                "max_log_lines",
            )
        }
        return f(*args, settings=build_settings(**overrides), **kwargs)

    # Keep the options of an inner decorator (e.g. @global_options) alongside ours.
    own_params = list(getattr(wrapper, "__click_params__", []))
    functools.update_wrapper(wrapper, f)
    inner_params = list(getattr(f, "__click_params__", []))
    wrapper.__click_params__ = inner_params + own_params  # type: ignore[attr-defined]
    return wrapper
