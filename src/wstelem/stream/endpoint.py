"""Endpoint URI validation.

The raw transport only speaks ``ws``/``wss``.  The hub transport also
accepts ``http``/``https`` URLs (the form hub servers usually advertise)
and connects to the matching WebSocket scheme directly, without the HTTP
negotiate round-trip.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import urlsplit, urlunsplit

from wstelem.errors import ConfigError


class Transport(StrEnum):
    """Wire framing spoken over the WebSocket."""

    RAW = "raw"
    HUB = "hub"


_SCHEMES: dict[Transport, frozenset[str]] = {
    Transport.RAW: frozenset({"ws", "wss"}),
    Transport.HUB: frozenset({"ws", "wss", "http", "https"}),
}

_WS_SCHEME = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


@dataclass(frozen=True, slots=True)
class Endpoint:
    """A validated, absolute endpoint URI."""

    uri: str
    transport: Transport = Transport.RAW

    @classmethod
    def parse(cls, url: str, transport: Transport | str = Transport.RAW) -> Endpoint:
        """Validate *url* for *transport*.

        Raises :class:`ConfigError` for relative URIs, missing hosts, or a
        scheme the transport cannot use.
        """
        try:
            transport = Transport(transport)
        except ValueError as exc:
            raise ConfigError(f"Unknown transport: {transport!r}") from exc

        try:
            parts = urlsplit(url.strip())
        except ValueError as exc:
            raise ConfigError(f"Invalid websocket URI: {url!r} ({exc})") from exc
        scheme = parts.scheme.lower()
        if not scheme or not parts.netloc:
            raise ConfigError(f"Invalid websocket URI: {url!r} (must be absolute)")
        if scheme not in _SCHEMES[transport]:
            allowed = "/".join(sorted(_SCHEMES[transport]))
            raise ConfigError(
                f"Invalid websocket URI: {url!r} "
                f"(scheme {scheme!r} not allowed for {transport.value} transport; use {allowed})"
            )
        if parts.hostname is None:
            raise ConfigError(f"Invalid websocket URI: {url!r} (missing host)")

        return cls(uri=urlunsplit(parts._replace(scheme=scheme)), transport=transport)

    @property
    def scheme(self) -> str:
        return urlsplit(self.uri).scheme

    @property
    def websocket_uri(self) -> str:
        """The URI actually dialled (``http``→``ws``, ``https``→``wss``)."""
        parts = urlsplit(self.uri)
        return urlunsplit(parts._replace(scheme=_WS_SCHEME[parts.scheme]))

    def __str__(self) -> str:
        return self.uri
