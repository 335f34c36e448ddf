"""Decode WebSocket messages into telemetry events.

Text messages carry one of two line formats:

Telemetry CSV (fixed schema, up to five invariant-culture floats)::

    T:-0.01,0.36,6.02,2.00,2.00
      roll  pitch yaw  c1   c2

Generic key/value tokens::

    angle=1.25 speed=-0.4 pwm=37

Anything else is kept as raw text.  Binary messages become a hex/base64
preview.  Decoding never raises: bad UTF-8 becomes a sentinel string,
unparsable numbers become ``None`` and unrecognised text stays raw.
"""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

INVALID_UTF8 = "<invalid-utf8>"
TELEMETRY_PREFIX = "T:"
TELEMETRY_FIELDS = ("roll", "pitch", "yaw", "custom1", "custom2")

# Fewer comma-separated parts than this and the line is not telemetry.
_MIN_TELEMETRY_PARTS = 3

HEX_PREVIEW_BYTES = 128
BASE64_PREVIEW_CHARS = 256

_KV_PATTERN = re.compile(r"(?P<k>[A-Za-z0-9_]+)\s*=\s*(?P<v>\S+)")

# Invariant-culture number: optional sign, digits with '.' decimal point,
# optional exponent, or the NaN / Infinity symbols (any case).  No thousands
# separators, no underscores, no "inf" shorthand.
_FLOAT_PATTERN = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?|infinity|nan)", re.ASCII | re.IGNORECASE
)


class FrameKind(StrEnum):
    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True, slots=True)
class Frame:
    """One complete WebSocket message (fragments already reassembled)."""

    kind: FrameKind
    payload: bytes

    @classmethod
    def from_message(cls, message: str | bytes) -> Frame:
        """Wrap a message as returned by ``websockets`` ``recv()``."""
        if isinstance(message, str):
            return cls(FrameKind.TEXT, message.encode("utf-8", errors="surrogatepass"))
        return cls(FrameKind.BINARY, bytes(message))


# -- Decoded events -----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawText:
    """A text line that is neither telemetry nor key/value data."""

    text: str


@dataclass(frozen=True, slots=True)
class TelemetrySample:
    """One decoded ``T:`` line.  ``None`` means the field had no value."""

    captured_at: datetime
    raw_line: str
    roll: float | None = None
    pitch: float | None = None
    yaw: float | None = None
    custom1: float | None = None
    custom2: float | None = None

    def values(self) -> dict[str, float | None]:
        """Return the five numeric fields keyed by name, in wire order."""
        return {name: getattr(self, name) for name in TELEMETRY_FIELDS}


@dataclass(frozen=True)
class KeyValueSet:
    """Case-insensitive ``name=value`` pairs parsed from one text line.

    Keys keep the spelling of their first occurrence; lookups ignore case.
    Repeated names accumulate comma-separated values.
    """

    raw_line: str
    pairs: dict[str, str] = field(default_factory=dict)
    _index: dict[str, str] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for key in self.pairs:
            self._index[key.lower()] = key

    def __getitem__(self, key: str) -> str:
        return self.pairs[self._index[key.lower()]]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def get(self, key: str, default: str | None = None) -> str | None:
        original = self._index.get(key.lower())
        return default if original is None else self.pairs[original]

    def items(self) -> list[tuple[str, str]]:
        return list(self.pairs.items())


@dataclass(frozen=True, slots=True)
class BinaryPreview:
    """Printable preview of a binary message."""

    length: int
    hex_preview: str
    base64_preview: str


DecodedEvent = RawText | KeyValueSet | TelemetrySample | BinaryPreview


# -- Parsing helpers ------------------------------------------------------------


def safe_utf8(payload: bytes) -> str:
    """Decode *payload* as strict UTF-8, or return :data:`INVALID_UTF8`."""
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return INVALID_UTF8


def parse_float(text: str) -> float | None:
    """Parse an invariant-culture float, returning ``None`` on failure."""
    candidate = text.strip()
    if not _FLOAT_PATTERN.fullmatch(candidate):
        return None
    return float(candidate)


def parse_telemetry(line: str, *, now: datetime | None = None) -> TelemetrySample | None:
    """Parse a ``T:`` telemetry line.

    Returns ``None`` when the line lacks the prefix or has fewer than three
    comma-separated parts, so the caller can fall back to key/value parsing.
    """
    body = line.strip()
    if body[: len(TELEMETRY_PREFIX)].upper() != TELEMETRY_PREFIX:
        return None
    body = body[len(TELEMETRY_PREFIX) :].lstrip()

    parts = [part.strip() for part in body.split(",")]
    if len(parts) < _MIN_TELEMETRY_PARTS:
        return None

    values = [parse_float(parts[i]) if i < len(parts) else None for i in range(5)]
    roll, pitch, yaw, custom1, custom2 = values
    return TelemetrySample(
        captured_at=now or datetime.now(UTC),
        raw_line=line,
        roll=roll,
        pitch=pitch,
        yaw=yaw,
        custom1=custom1,
        custom2=custom2,
    )


def parse_key_values(line: str) -> KeyValueSet:
    """Collect ``name=value`` tokens; repeated names join values with ``,``."""
    pairs: dict[str, str] = {}
    index: dict[str, str] = {}
    for match in _KV_PATTERN.finditer(line):
        key, value = match.group("k"), match.group("v")
        folded = key.lower()
        if folded in index:
            original = index[folded]
            pairs[original] = f"{pairs[original]},{value}"
        else:
            index[folded] = key
            pairs[key] = value
    return KeyValueSet(raw_line=line, pairs=pairs)


def binary_preview(payload: bytes) -> BinaryPreview:
    head = payload[:HEX_PREVIEW_BYTES].hex().upper()
    if len(payload) > HEX_PREVIEW_BYTES:
        head += "..."
    b64 = base64.b64encode(payload).decode("ascii")
    return BinaryPreview(
        length=len(payload),
        hex_preview=head,
        base64_preview=b64[:BASE64_PREVIEW_CHARS],
    )


class FrameDecoder:
    """Turns :class:`Frame` objects into :data:`DecodedEvent` values."""

    def decode(self, frame: Frame) -> DecodedEvent:
        """Decode *frame*.  Never raises."""
        if frame.kind is FrameKind.BINARY:
            return binary_preview(frame.payload)

        text = safe_utf8(frame.payload)
        sample = parse_telemetry(text)
        if sample is not None:
            return sample

        kv = parse_key_values(text)
        if kv:
            return kv
        return RawText(text)
