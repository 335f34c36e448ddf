from __future__ import annotations

from wstelem.models.config import DEFAULT_URL, ClientSettings

__all__ = [
    "DEFAULT_URL",
    "ClientSettings",
]
