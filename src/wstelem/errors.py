"""Exception hierarchy for wstelem.

Only configuration problems escape to callers. Connect and transport
failures are handled inside the connection loop and never raised past it.
"""

from __future__ import annotations


class WstelemError(Exception):
    """Base class for all wstelem errors."""


class ConfigError(WstelemError):
    """Invalid configuration (endpoint URI, scheme, backoff parameters).

    Raised at construction time and never retried.
    """


class HubHandshakeError(WstelemError):
    """The hub rejected the protocol handshake.

    Treated by the connection loop like any other connect failure.
    """
