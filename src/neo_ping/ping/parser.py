"""Parsing of native ping tool output.

Handles the Windows (``time=12ms``, ``time<1ms``) and Unix
(``time=12.3 ms``) reply formats plus the timeout messages printed by the
various platform tools.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator

from .events import Reply, Timeout

_TIME_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)

_TIMEOUT_PHRASES = (
    "request timed out",  # Windows
    "request timeout",  # macOS
    "no answer yet",  # iputils with -O
)


def parse_latency(line: str) -> float | None:
    """Return the latency in milliseconds reported by ``line``, if any."""
    match = _TIME_RE.search(line)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def is_timeout_line(line: str) -> bool:
    lower = line.lower()
    if any(phrase in lower for phrase in _TIMEOUT_PHRASES):
        return True
    return "icmp_seq" in lower and "timeout" in lower


def parse_line(line: str) -> Reply | Timeout | None:
    """Classify a single line of ping output.

    A latency marker always wins over a timeout phrase. Banner and
    statistics lines return ``None``.
    """
    latency = parse_latency(line)
    if latency is not None:
        return Reply(latency_ms=latency)
    if is_timeout_line(line):
        return Timeout()
    return None


def parse_lines(lines: Iterable[str]) -> Iterator[Reply | Timeout]:
    for line in lines:
        parsed = parse_line(line)
        if parsed is not None:
            yield parsed


class LineBuffer:
    """Split a stream of text chunks into complete lines.

    A trailing fragment without a newline is held back until a later chunk
    completes it, or until :meth:`flush` is called at end of stream.
    """

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, chunk: str) -> list[str]:
        if not chunk:
            return []
        data = self._pending + chunk
        parts = data.split("\n")
        self._pending = parts.pop()
        return [part.rstrip("\r") for part in parts]

    def flush(self) -> list[str]:
        remainder, self._pending = self._pending, ""
        remainder = remainder.rstrip("\r")
        return [remainder] if remainder else []

    @property
    def pending(self) -> str:
        return self._pending


__all__ = [
    "LineBuffer",
    "is_timeout_line",
    "parse_latency",
    "parse_line",
    "parse_lines",
]
