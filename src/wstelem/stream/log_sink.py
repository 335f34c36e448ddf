"""Bounded scrollback log with a scrollable viewport.

The sink stores at most ``max_lines`` entries and evicts the oldest first.
A viewport of ``view_height`` lines starts at ``offset``; the offset is
kept within ``[0, max(0, total - view_height)]`` after every operation.

With auto-scroll on, every append pins the viewport to the bottom.  Manual
scrolling turns auto-scroll off; :meth:`LogSink.jump_to_bottom` and
:meth:`LogSink.toggle_auto_scroll` turn it back on.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime

MAX_STORED_LINES = 10_000
DEFAULT_VIEW_HEIGHT = 10


@dataclass(frozen=True, slots=True)
class LogLine:
    """A timestamped log line produced by the connection loop."""

    text: str
    timestamp: datetime = field(default_factory=datetime.now)
    level: int = logging.INFO

    def format(self) -> str:
        return f"{self.timestamp:%H:%M:%S}: {self.text}"


class LogSink:
    """Thread-safe ring buffer of :class:`LogLine` with a viewport cursor."""

    def __init__(
        self,
        max_lines: int = MAX_STORED_LINES,
        view_height: int = DEFAULT_VIEW_HEIGHT,
    ) -> None:
        if max_lines < 1:
            raise ValueError(f"max_lines must be >= 1, got {max_lines}")
        self._lock = threading.Lock()
        self._lines: list[LogLine] = []
        self._max_lines = max_lines
        self._view_height = max(1, view_height)
        self._offset = 0
        self._auto_scroll = True

    # -- Properties -----------------------------------------------------------

    @property
    def total(self) -> int:
        with self._lock:
            return len(self._lines)

    @property
    def offset(self) -> int:
        with self._lock:
            return self._offset

    @property
    def auto_scroll(self) -> bool:
        with self._lock:
            return self._auto_scroll

    @property
    def view_height(self) -> int:
        return self._view_height

    @property
    def max_lines(self) -> int:
        return self._max_lines

    # -- Mutation -------------------------------------------------------------

    def append(self, line: LogLine | str) -> LogLine:
        """Store *line* (trailing whitespace stripped) and return it."""
        if isinstance(line, str):
            line = LogLine(text=line.rstrip())
        elif line.text != line.text.rstrip():
            line = LogLine(text=line.text.rstrip(), timestamp=line.timestamp, level=line.level)

        with self._lock:
            self._lines.append(line)
            overflow = len(self._lines) - self._max_lines
            if overflow > 0:
                del self._lines[:overflow]
                self._offset = max(0, self._offset - overflow)

            if self._auto_scroll:
                self._offset = self._bottom()
            else:
                self._offset = min(self._offset, self._bottom())
        return line

    def resize(self, view_height: int) -> None:
        """Change the viewport height, keeping the offset in range."""
        with self._lock:
            self._view_height = max(1, view_height)
            bottom = self._bottom()
            self._offset = bottom if self._auto_scroll else min(self._offset, bottom)

    # -- Scrolling ------------------------------------------------------------

    def scroll_up(self, lines: int = 1) -> None:
        with self._lock:
            self._auto_scroll = False
            self._offset = max(0, self._offset - max(1, lines))

    def scroll_down(self, lines: int = 1) -> None:
        with self._lock:
            self._auto_scroll = False
            self._offset = min(self._bottom(), self._offset + max(1, lines))

    def page_up(self) -> None:
        self.scroll_up(self._view_height)

    def page_down(self) -> None:
        self.scroll_down(self._view_height)

    def jump_to_top(self) -> None:
        with self._lock:
            self._auto_scroll = False
            self._offset = 0

    def jump_to_bottom(self) -> None:
        with self._lock:
            self._auto_scroll = True
            self._offset = self._bottom()

    def toggle_auto_scroll(self) -> bool:
        """Flip auto-scroll and return the new setting."""
        with self._lock:
            self._auto_scroll = not self._auto_scroll
            if self._auto_scroll:
                self._offset = self._bottom()
            return self._auto_scroll

    # -- Reading --------------------------------------------------------------

    def snapshot(self) -> list[LogLine]:
        """Return the visible lines, at most ``view_height`` of them."""
        with self._lock:
            return self._lines[self._offset : self._offset + self._view_height]

    def _bottom(self) -> int:
        # Caller holds the lock.
        return max(0, len(self._lines) - self._view_height)
