"""Ping monitoring: subprocess driver, output parser and severity mapping."""

from .events import Error, PingEvent, Reply, Timeout
from .monitor import PingMonitor, build_ping_command, start_monitor
from .parser import LineBuffer, parse_line, parse_lines
from .severity import Oklch, SeverityTier, classify, color_for_event, tier_for_event

__all__ = [
    "Error",
    "LineBuffer",
    "Oklch",
    "PingEvent",
    "PingMonitor",
    "Reply",
    "SeverityTier",
    "Timeout",
    "build_ping_command",
    "classify",
    "color_for_event",
    "parse_line",
    "parse_lines",
    "start_monitor",
    "tier_for_event",
]
