"""Replay command: classify previously captured ping output."""

from __future__ import annotations

import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import BinaryIO

from neo_ping.commands.listen import make_renderer
from neo_ping.config import DEFAULT_TARGET
from neo_ping.ping.events import PingEvent
from neo_ping.ping.monitor import STDERR, STDOUT, PingMonitor

LOG = logging.getLogger(__name__)

_CHUNK_SIZE = 4096


def run_replay(args: Namespace) -> int:
    """Feed captured stdout/stderr through the monitor without running ping."""
    target = getattr(args, "target", None) or DEFAULT_TARGET
    render = make_renderer(args, target)
    delivered: list[int] = []

    def on_event(event: PingEvent) -> None:
        delivered.append(event.sequence)
        render(event)

    try:
        monitor = PingMonitor(
            target, on_event, encoding=getattr(args, "encoding", None) or "utf-8"
        )
    except (LookupError, ValueError) as exc:
        LOG.error("Cannot replay: %s", exc)
        return 1

    sources = [(STDOUT, getattr(args, "input", "-"))]
    if getattr(args, "stderr", None):
        sources.append((STDERR, args.stderr))

    for stream, source in sources:
        try:
            if source == "-":
                _feed(monitor, stream, sys.stdin.buffer)
            else:
                with Path(source).open("rb") as handle:
                    _feed(monitor, stream, handle)
        except OSError as exc:
            LOG.error("Failed to read %s: %s", source, exc)
            return 1

    LOG.debug("Replayed %d events", len(delivered))
    return 0


def _feed(monitor: PingMonitor, stream: str, handle: BinaryIO) -> None:
    while True:
        chunk = handle.read(_CHUNK_SIZE)
        if not chunk:
            break
        monitor.feed(stream, chunk)
    monitor.flush(stream)
