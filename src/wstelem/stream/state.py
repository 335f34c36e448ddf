"""Latest-value store for decoded telemetry samples.

Written only by the connection loop; read by any number of presentation
refresh ticks, possibly from other threads.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wstelem.stream.decoder import TelemetrySample


class TelemetryState:
    """Thread-safe holder of the most recent :class:`TelemetrySample`.

    Last value wins; no history is kept.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: TelemetrySample | None = None
        self._update_count = 0

    def update(self, sample: TelemetrySample) -> None:
        """Replace the stored sample with *sample*."""
        if sample is None:
            raise TypeError("sample must not be None")
        with self._lock:
            self._latest = sample
            self._update_count += 1

    def get_latest(self) -> TelemetrySample | None:
        """Return the latest sample, or ``None`` before the first update."""
        with self._lock:
            return self._latest

    @property
    def update_count(self) -> int:
        """Number of samples stored since creation."""
        with self._lock:
            return self._update_count

    def age_seconds(self) -> float | None:
        """Return seconds since the latest sample was captured, or ``None``."""
        latest = self.get_latest()
        if latest is None:
            return None
        return time.time() - latest.captured_at.timestamp()
