"""WebSocket telemetry streaming: connection loop, decoder and scrollback."""

from __future__ import annotations

from wstelem.stream.backoff import BackoffPolicy
from wstelem.stream.client import ConnectionState, Session, TelemetryClient, describe_error
from wstelem.stream.decoder import (
    INVALID_UTF8,
    BinaryPreview,
    DecodedEvent,
    Frame,
    FrameDecoder,
    FrameKind,
    KeyValueSet,
    RawText,
    TelemetrySample,
)
from wstelem.stream.endpoint import Endpoint, Transport
from wstelem.stream.fanout import Fanout
from wstelem.stream.log_sink import LogLine, LogSink
from wstelem.stream.state import TelemetryState

__all__ = [
    "INVALID_UTF8",
    "BackoffPolicy",
    "BinaryPreview",
    "ConnectionState",
    "DecodedEvent",
    "Endpoint",
    "Fanout",
    "Frame",
    "FrameDecoder",
    "FrameKind",
    "KeyValueSet",
    "LogLine",
    "LogSink",
    "RawText",
    "Session",
    "TelemetryClient",
    "TelemetrySample",
    "TelemetryState",
    "Transport",
    "describe_error",
]
