"""Full-screen Textual dashboard for a telemetry stream.

Five value boxes show the latest sample; a scrollable log panel below
shows the connection loop's log lines.  The client loop runs as a Textual
worker on the app's event loop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header, Static

from wstelem.output.rich_output import format_value

if TYPE_CHECKING:
    from wstelem.stream.client import TelemetryClient
    from wstelem.stream.log_sink import LogLine

logger = logging.getLogger(__name__)

VALUE_BOXES: tuple[tuple[str, str], ...] = (
    ("roll", "Roll"),
    ("pitch", "Pitch"),
    ("yaw", "Yaw"),
    ("custom1", "C1"),
    ("custom2", "C2"),
)

_LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
}


def _render_line(line: LogLine) -> Text:
    return Text(line.format(), style=_LEVEL_STYLES.get(line.level, ""), no_wrap=True)


class TelemetryDashboard(App[None]):
    """Dashboard over a :class:`TelemetryClient`.

    A periodic timer (100 ms by default) polls the client's telemetry state
    and log sink; nothing is pushed into the widgets from the loop itself.
    """

    TITLE = "wstelem"

    CSS = """
    #values {
        height: 5;
    }
    .value-box {
        width: 1fr;
        height: 5;
        border: solid $primary;
        content-align: center middle;
        text-style: bold;
    }
    #status-bar {
        height: 1;
        background: $panel;
        padding: 0 1;
    }
    #log-panel {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
    }
    #log-view {
        height: 1fr;
    }
    """

    BINDINGS: ClassVar[list[Binding]] = [  # type: ignore[assignment]
        Binding("q", "quit", "Quit"),
        Binding("a", "toggle_autoscroll", "Auto-scroll"),
        Binding("up", "log_up", "Up", show=False),
        Binding("down", "log_down", "Down", show=False),
        Binding("pageup", "log_page_up", "PgUp"),
        Binding("pagedown", "log_page_down", "PgDn"),
        Binding("home", "log_top", "Top"),
        Binding("end", "log_bottom", "Bottom"),
    ]

    def __init__(
        self,
        client: TelemetryClient,
        *,
        refresh_interval: float = 0.1,
        run_client: bool = True,
    ) -> None:
        super().__init__()
        self._client = client
        self._refresh_interval = refresh_interval
        self._run_client = run_client
        self._saved_root_handlers: list[logging.Handler] = []
        self._handlers_detached = False
        self._shown: dict[str, str] = {}

    @property
    def client(self) -> TelemetryClient:
        return self._client

    # -- Compose layout -------------------------------------------------------

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal(id="values"):
            for name, _label in VALUE_BOXES:
                yield Static(format_value(None), id=f"{name}-box", classes="value-box")
        yield Static(id="status-bar")
        with Vertical(id="log-panel"):
            yield Static(id="log-view")
        yield Footer()

    def on_mount(self) -> None:
        for name, label in VALUE_BOXES:
            self.query_one(f"#{name}-box", Static).border_title = label

        self._detach_console_handlers()
        self.sub_title = str(self._client.endpoint)
        self.set_interval(self._refresh_interval, self._refresh)
        self._refresh()

        if self._run_client:
            self.run_worker(self._client.run(), exclusive=True, group="client")

    def on_unmount(self) -> None:
        self._client.stop()
        self._restore_console_handlers()

    # -- Logging --------------------------------------------------------------

    def _detach_console_handlers(self) -> None:
        """Remove root stream handlers so nothing writes over the TUI."""
        self._saved_root_handlers = logging.root.handlers[:]
        logging.root.handlers = [
            h
            for h in logging.root.handlers
            if not isinstance(h, logging.StreamHandler) or isinstance(h, logging.FileHandler)
        ]
        self._handlers_detached = True

    def _restore_console_handlers(self) -> None:
        if not self._handlers_detached:
            return
        logging.root.handlers = self._saved_root_handlers
        self._saved_root_handlers = []
        self._handlers_detached = False

    # -- Refresh --------------------------------------------------------------

    def _refresh(self) -> None:
        self._update_values()
        self._update_status()
        self._update_log()

    def _update_values(self) -> None:
        sample = self._client.telemetry.get_latest()
        values = sample.values() if sample is not None else {}
        for name, _label in VALUE_BOXES:
            text = format_value(values.get(name))
            if self._shown.get(name) != text:
                self._shown[name] = text
                self.query_one(f"#{name}-box", Static).update(text)

    def _update_status(self) -> None:
        client = self._client
        age = client.telemetry.age_seconds()
        age_text = "no data" if age is None else f"last sample {age:.1f}s ago"
        self.query_one("#status-bar", Static).update(
            Text(
                f"{client.state.value}  |  sessions {client.session_count}  |  "
                f"frames {client.frame_count}  |  backoff {client.current_delay_ms}ms  |  "
                f"{age_text}"
            )
        )

    def _update_log(self) -> None:
        sink = self._client.log_sink
        view = self.query_one("#log-view", Static)
        height = view.size.height
        if height > 0 and height != sink.view_height:
            sink.resize(height)

        mode = "autoscroll" if sink.auto_scroll else "manual"
        self.query_one("#log-panel", Vertical).border_title = f"Logs ({sink.total} total) [{mode}]"
        view.update(Text("\n").join(_render_line(line) for line in sink.snapshot()))

    # -- Actions --------------------------------------------------------------

    def action_log_up(self) -> None:
        self._client.log_sink.scroll_up(1)
        self._update_log()

    def action_log_down(self) -> None:
        self._client.log_sink.scroll_down(1)
        self._update_log()

    def action_log_page_up(self) -> None:
        self._client.log_sink.page_up()
        self._update_log()

    def action_log_page_down(self) -> None:
        self._client.log_sink.page_down()
        self._update_log()

    def action_log_top(self) -> None:
        self._client.log_sink.jump_to_top()
        self._update_log()

    def action_log_bottom(self) -> None:
        self._client.log_sink.jump_to_bottom()
        self._update_log()

    def action_toggle_autoscroll(self) -> None:
        self._client.log_sink.toggle_auto_scroll()
        self._update_log()

    async def action_quit(self) -> None:
        """Stop the client loop and exit."""
        self._client.stop()
        self._restore_console_handlers()
        self.exit()
