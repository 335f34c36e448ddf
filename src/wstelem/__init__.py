"""wstelem: resilient WebSocket telemetry client."""

from __future__ import annotations

__version__ = "0.1.0"
