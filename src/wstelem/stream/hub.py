"""JSON hub protocol framing (SignalR-style) over a plain WebSocket.

Every record is a JSON object terminated by the ASCII record separator
``0x1E``.  One WebSocket message may carry several records.

Handshake::

    client → {"protocol":"json","version":1}\\x1e
    server → {}\\x1e                      (or {"error":"..."}\\x1e)

Records the client understands after the handshake:

  - ``type 1`` invocation: ``{"type":1,"target":"Message","arguments":[...]}``
  - ``type 6`` ping: keep-alive, ignored
  - ``type 7`` close: ``{"type":7,"error":"...","allowReconnect":true}``

Invocation arguments are unwrapped into :class:`Frame` objects so the
decoder sees exactly what a raw WebSocket peer would have sent.  Byte-array
arguments arrive base64-encoded; the ``RawBinary`` target carries them.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from wstelem.errors import HubHandshakeError
from wstelem.stream.decoder import Frame, FrameKind

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\x1e"
PROTOCOL_NAME = "json"
PROTOCOL_VERSION = 1

BINARY_TARGET = "RawBinary"

INVOCATION = 1
STREAM_ITEM = 2
COMPLETION = 3
PING = 6
CLOSE = 7


@dataclass(frozen=True, slots=True)
class HubClose:
    """A close record sent by the hub."""

    reason: str = ""
    allow_reconnect: bool = True


@dataclass(slots=True)
class HubBatch:
    """Frames unwrapped from one WebSocket message, plus any close record."""

    frames: list[Frame] = field(default_factory=list)
    close: HubClose | None = None


def handshake_request() -> str:
    payload = json.dumps(
        {"protocol": PROTOCOL_NAME, "version": PROTOCOL_VERSION},
        separators=(",", ":"),
    )
    return payload + RECORD_SEPARATOR


def _as_text(message: str | bytes) -> str:
    if isinstance(message, bytes):
        return message.decode("utf-8", errors="replace")
    return message


def split_records(message: str | bytes) -> list[str]:
    """Split *message* into records, dropping empty trailing pieces."""
    return [record for record in _as_text(message).split(RECORD_SEPARATOR) if record.strip()]


def parse_handshake_response(message: str | bytes) -> str:
    """Validate the hub's handshake response.

    Returns any text that followed the handshake record in the same message
    (servers may pipeline the first records).  Raises
    :class:`HubHandshakeError` if the response is malformed or carries an
    error.
    """
    text = _as_text(message)
    head, sep, rest = text.partition(RECORD_SEPARATOR)
    if not sep:
        raise HubHandshakeError(f"Incomplete handshake response: {text[:80]!r}")
    try:
        response = json.loads(head)
    except json.JSONDecodeError as exc:
        raise HubHandshakeError(f"Malformed handshake response: {head[:80]!r}") from exc
    if not isinstance(response, dict):
        raise HubHandshakeError(f"Malformed handshake response: {head[:80]!r}")
    if response.get("error"):
        raise HubHandshakeError(f"Hub rejected handshake: {response['error']}")
    return rest


def _argument_frame(target: str, argument: Any) -> Frame:
    if isinstance(argument, str):
        if target == BINARY_TARGET:
            try:
                return Frame(FrameKind.BINARY, base64.b64decode(argument, validate=True))
            except (binascii.Error, ValueError):
                logger.debug("RawBinary argument is not base64; treating as text")
        return Frame.from_message(argument)
    return Frame.from_message(json.dumps(argument, separators=(",", ":")))


def unwrap(message: str | bytes) -> HubBatch:
    """Turn one WebSocket message into frames for the decoder.

    Unparsable records degrade to a text frame of the record itself.
    """
    batch = HubBatch()
    for record in split_records(message):
        try:
            parsed = json.loads(record)
        except json.JSONDecodeError:
            batch.frames.append(Frame.from_message(record))
            continue
        if not isinstance(parsed, dict):
            batch.frames.append(Frame.from_message(record))
            continue

        kind = parsed.get("type")
        if kind == INVOCATION:
            target = str(parsed.get("target", ""))
            arguments = parsed.get("arguments") or []
            if not isinstance(arguments, list):
                arguments = [arguments]
            batch.frames.extend(_argument_frame(target, arg) for arg in arguments)
        elif kind == PING:
            continue
        elif kind == CLOSE:
            batch.close = HubClose(
                reason=str(parsed.get("error") or ""),
                allow_reconnect=bool(parsed.get("allowReconnect", True)),
            )
            # Records after a close are not delivered.
            break
        elif kind in (STREAM_ITEM, COMPLETION):
            logger.debug("Ignoring hub record type %s", kind)
        else:
            batch.frames.append(Frame.from_message(record))
    return batch
