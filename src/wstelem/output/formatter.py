from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

from rich.console import Console

from wstelem.output.json_output import format_json_error, format_json_event
from wstelem.output.rich_output import RichOutput

if TYPE_CHECKING:
    from io import TextIOBase

    from wstelem.stream.decoder import TelemetrySample
    from wstelem.stream.log_sink import LogLine


class OutputFormatter:
    """Unified output formatter that auto-detects JSON vs Rich output.

    Selection logic:

    * If *force_format* is provided, use it unconditionally.
    * Otherwise, if *stream* (default ``sys.stdout``) is a TTY, use ``"rich"``.
    * If the stream is **not** a TTY (piped / redirected), use ``"json"``.

    When the format is ``"quiet"``, a :class:`rich.console.Console` writing to
    *stderr* is used and streamed events are suppressed, so stdout stays
    empty.
    """

    def __init__(
        self,
        *,
        stream: TextIOBase | Any | None = None,
        force_format: str | None = None,
    ) -> None:
        self._stream = stream or sys.stdout
        if force_format is not None:
            self._format = force_format
        elif hasattr(self._stream, "isatty") and self._stream.isatty():
            self._format = "rich"
        else:
            self._format = "json"

        # Build the Rich console; quiet mode writes to stderr.
        if self._format == "quiet":
            self._console = Console(stderr=True)
        else:
            self._console = Console(file=stream) if stream is not None else Console()

        self._rich = RichOutput(self._console)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    @property
    def format(self) -> str:  # noqa: A003
        """Return the active output format (``"rich"``, ``"json"``, or ``"quiet"``)."""
        return self._format

    @property
    def rich(self) -> RichOutput:
        """Return the underlying :class:`RichOutput` instance."""
        return self._rich

    def _print(self, text: str) -> None:
        print(text, file=self._stream, flush=True)  # noqa: T201

    def log_line(self, line: LogLine) -> None:
        """Emit one log line produced by the connection loop."""
        if self._format == "json":
            self._print(format_json_event(event="log", data=line))
        elif self._format == "rich":
            self._rich.log_line(line)

    def sample(self, sample: TelemetrySample) -> None:
        """Emit one decoded telemetry sample."""
        if self._format == "json":
            self._print(format_json_event(event="sample", data=sample))
        elif self._format == "rich":
            self._rich.sample_line(sample)

    def output_error(self, *, code: str, message: str, command: str) -> None:
        """Emit an error using the current format.

        * **json**: prints :func:`format_json_error` to the stream.
        * **rich** / **quiet**: prints via :meth:`RichOutput.error`.
        """
        if self._format == "json":
            self._print(format_json_error(code=code, message=message, command=command))
        else:
            self._rich.error(message)
