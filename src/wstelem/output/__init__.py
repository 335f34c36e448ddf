"""Console output: Rich for terminals, newline-delimited JSON for pipes."""

from __future__ import annotations

from wstelem.output.formatter import OutputFormatter
from wstelem.output.rich_output import RichOutput

__all__ = ["OutputFormatter", "RichOutput"]
