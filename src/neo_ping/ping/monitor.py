"""Continuous latency monitoring through the native ping tool.

The monitor launches ``ping`` in continuous mode, drains its stdout and
stderr on background threads, and delivers one sequence-numbered
:class:`~neo_ping.ping.events.PingEvent` per recognised line to a single
observer callback.
"""

from __future__ import annotations

import codecs
import locale
import logging
import os
import shutil
import subprocess
import sys
import threading
import time
from queue import Queue
from typing import IO, Callable, Optional, Sequence

from .events import Error, Outcome, PingEvent
from .parser import LineBuffer, parse_line

LOG = logging.getLogger(__name__)

EventCallback = Callable[[PingEvent], None]

STDOUT = "stdout"
STDERR = "stderr"
_STREAMS = (STDOUT, STDERR)
_CHUNK_SIZE = 4096


def build_ping_command(
    target: str,
    *,
    platform: str | None = None,
    executable: str = "ping",
    report_outstanding: bool = False,
    extra_args: Sequence[str] | None = None,
) -> list[str]:
    """Return the argv that runs ``ping`` against ``target`` until killed.

    Windows needs ``-t`` to keep pinging; macOS and Linux ping forever by
    default. ``report_outstanding`` adds ``-O`` on Linux so iputils prints
    "no answer yet" for lost probes.
    """
    _validate_target(target)
    target = target.strip()
    platform = platform or sys.platform
    cmd = [executable]
    if platform.startswith("win"):
        cmd.append("-t")
    elif report_outstanding and platform.startswith("linux"):
        cmd.append("-O")
    if extra_args:
        cmd.extend(str(arg) for arg in extra_args)
    cmd.append(target)
    return cmd


def _validate_target(target: str) -> None:
    if not isinstance(target, str) or not target.strip():
        raise ValueError("ping target must be a non-empty hostname or IP address")
    if target.strip().startswith("-"):
        raise ValueError(f"Invalid ping target: {target!r}")


class PingMonitor:
    """Own a continuous ping subprocess and turn its output into events.

    ``on_event`` runs on the monitor's dispatch thread and must return
    quickly; it is never invoked concurrently with itself. Once
    :meth:`stop` has returned no further events are delivered, even for
    output that was already read from the pipes.
    """

    def __init__(
        self,
        target: str,
        on_event: EventCallback,
        *,
        executable: str = "ping",
        report_outstanding: bool = False,
        extra_args: Sequence[str] | None = None,
        stop_timeout: float = 2.0,
        encoding: str | None = None,
        platform: str | None = None,
    ) -> None:
        self._platform = platform or sys.platform
        self._command = build_ping_command(
            target,
            platform=self._platform,
            executable=executable,
            report_outstanding=report_outstanding,
            extra_args=extra_args,
        )
        self.target = target.strip()
        self._on_event = on_event
        self._stop_timeout = stop_timeout
        self._encoding = encoding or locale.getpreferredencoding(False) or "utf-8"

        # Guards the sequence counter, the stopped flag and every delivery.
        # Re-entrant so the callback itself may call stop().
        self._lock = threading.RLock()
        self._sequence = 0
        self._stopped = False
        self._started = False
        self._process: subprocess.Popen[bytes] | None = None
        self._queue: "Queue[tuple[str, bytes | None]]" = Queue()
        self._buffers = {name: LineBuffer() for name in _STREAMS}
        self._decoders = {
            name: codecs.getincrementaldecoder(self._encoding)(errors="replace")
            for name in _STREAMS
        }
        self._pumps: list[threading.Thread] = []
        self._dispatcher: Optional[threading.Thread] = None

    @property
    def command(self) -> list[str]:
        """Return the argv used to launch the ping tool."""
        return list(self._command)

    @property
    def sequence(self) -> int:
        """Return the sequence number of the most recently delivered event."""
        with self._lock:
            return self._sequence

    @property
    def stopped(self) -> bool:
        with self._lock:
            return self._stopped

    @property
    def launched(self) -> bool:
        """Return True once the ping tool has been spawned successfully."""
        return self._process is not None

    @property
    def returncode(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    def start(self) -> "PingMonitor":
        """Launch the ping tool and start draining its output.

        Never raises for launch problems: a missing executable or a failed
        spawn is delivered as a single error event with sequence 0.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("ping monitor already started")
            self._started = True
            if self._stopped:
                return self

        executable = self._command[0]
        if shutil.which(executable) is None:
            self._report_launch_failure(f"{executable} command not found in PATH")
            return self

        LOG.info("Starting ping monitor: %s", " ".join(self._command))
        try:
            process = subprocess.Popen(
                self._command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                env=self._child_env(),
            )
        except OSError as exc:
            self._report_launch_failure(str(exc))
            return self

        with self._lock:
            self._process = process
            stopped = self._stopped
        if stopped:
            self._terminate(process)
            return self

        self._pumps = [
            threading.Thread(
                target=self._pump,
                args=(name, stream),
                name=f"neo-ping-{name}",
                daemon=True,
            )
            for name, stream in ((STDOUT, process.stdout), (STDERR, process.stderr))
        ]
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="neo-ping-dispatch", daemon=True
        )
        for thread in self._pumps:
            thread.start()
        self._dispatcher.start()
        return self

    def stop(self) -> None:
        """Stop delivering events and terminate the ping tool.

        Safe to call from any thread, including from inside the event
        callback. Calls after the first are no-ops.

        Blocks for at most about three times ``stop_timeout``: one wait
        after terminate, one after kill, and one deadline shared by all
        worker thread joins.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            process = self._process

        LOG.info("Stopping ping monitor for %s", self.target)
        if process is not None:
            self._terminate(process)

        current = threading.current_thread()
        deadline = time.monotonic() + self._stop_timeout
        for thread in [*self._pumps, self._dispatcher]:
            if thread is None or thread is current or not thread.is_alive():
                continue
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                LOG.warning("Ping monitor thread %s did not stop cleanly", thread.name)

        if process is not None:
            for stream in (process.stdout, process.stderr):
                if stream is None:
                    continue
                try:
                    stream.close()
                except OSError:
                    LOG.debug("Failed to close ping pipe", exc_info=True)

    def is_running(self) -> bool:
        """Return True while the ping tool output is being drained."""
        with self._lock:
            if self._stopped:
                return False
        return self._dispatcher is not None and self._dispatcher.is_alive()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the ping tool to finish; return True if it has."""
        if self._dispatcher is None:
            return True
        self._dispatcher.join(timeout=timeout)
        return not self._dispatcher.is_alive()

    def feed(self, stream: str, chunk: bytes | str) -> None:
        """Process a chunk of raw ping output as if read from ``stream``.

        Complete lines are classified and delivered immediately; a trailing
        fragment waits for the next chunk or for :meth:`flush`.
        """
        if stream not in _STREAMS:
            raise ValueError(f"Unknown stream: {stream!r}")
        if isinstance(chunk, bytes):
            text = self._decoders[stream].decode(chunk)
        else:
            text = chunk
        for line in self._buffers[stream].feed(text):
            self._handle_line(stream, line)

    def flush(self, stream: str) -> None:
        """Deliver whatever partial line is left on ``stream`` at end of output."""
        if stream not in _STREAMS:
            raise ValueError(f"Unknown stream: {stream!r}")
        tail = self._decoders[stream].decode(b"", final=True)
        buffer = self._buffers[stream]
        lines = buffer.feed(tail) + buffer.flush()
        for line in lines:
            self._handle_line(stream, line)

    def _handle_line(self, stream: str, line: str) -> None:
        outcome: Outcome | None
        if stream == STDERR:
            text = line.strip()
            if not text:
                return
            LOG.debug("ping stderr: %s", text)
            outcome = Error(message=text)
        else:
            outcome = parse_line(line)
            if outcome is None:
                return
        self._deliver(outcome)

    def _deliver(self, outcome: Outcome, *, advance: bool = True) -> None:
        with self._lock:
            if self._stopped:
                return
            if advance:
                self._sequence += 1
            event = PingEvent(sequence=self._sequence, outcome=outcome)
            try:
                self._on_event(event)
            except Exception:
                LOG.exception("Ping event callback failed for sequence %d", event.sequence)

    def _report_launch_failure(self, reason: str) -> None:
        message = f"Failed to start ping: {reason}"
        LOG.error(message)
        with self._lock:
            if self._stopped:
                return
            try:
                self._on_event(PingEvent(sequence=0, outcome=Error(message=message)))
            except Exception:
                LOG.exception("Ping event callback failed for launch failure")

    def _pump(self, stream: str, pipe: IO[bytes] | None) -> None:
        try:
            if pipe is None:
                return
            while True:
                chunk = pipe.read(_CHUNK_SIZE)
                if not chunk:
                    break
                self._queue.put((stream, chunk))
        except (OSError, ValueError) as exc:
            # Raised when stop() closes the pipe underneath us.
            LOG.debug("ping %s reader ended: %s", stream, exc)
        finally:
            self._queue.put((stream, None))

    def _dispatch_loop(self) -> None:
        open_streams = set(_STREAMS)
        while open_streams:
            stream, chunk = self._queue.get()
            if self.stopped:
                return
            if chunk is None:
                open_streams.discard(stream)
                self.flush(stream)
            else:
                self.feed(stream, chunk)
        self._handle_exit()

    def _handle_exit(self) -> None:
        process = self._process
        if process is None:
            return
        try:
            code = process.wait(timeout=self._stop_timeout)
        except subprocess.TimeoutExpired:
            LOG.warning("ping closed its output but is still running")
            return

        with self._lock:
            if self._stopped:
                return
            if code is not None and code > 0:
                LOG.error("ping for %s exited with code %d", self.target, code)
                self._deliver(Error(message=f"Ping exited with code {code}"), advance=False)
            elif code == 0:
                LOG.info("ping for %s exited cleanly", self.target)
            else:
                LOG.info("ping for %s terminated by signal %s", self.target, -(code or 0))

    def _terminate(self, process: subprocess.Popen[bytes]) -> None:
        if process.poll() is not None:
            return
        try:
            process.terminate()
            process.wait(timeout=self._stop_timeout)
        except subprocess.TimeoutExpired:
            LOG.warning("ping did not exit after terminate; killing it")
            process.kill()
            try:
                process.wait(timeout=self._stop_timeout)
            except subprocess.TimeoutExpired:
                LOG.warning("ping did not exit after kill")
        except OSError as exc:
            LOG.debug("ping already gone: %s", exc)

    def _child_env(self) -> dict[str, str] | None:
        if self._platform.startswith("win"):
            return None
        # Keep the tool's messages in English so the parser recognises them.
        return dict(os.environ, LC_ALL="C")

    def __enter__(self) -> "PingMonitor":
        if not self._started:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def start_monitor(target: str, on_event: EventCallback, **options) -> PingMonitor:
    """Start continuously pinging ``target``; return the monitor handle.

    ``options`` are passed to :class:`PingMonitor`.
    """
    return PingMonitor(target, on_event, **options).start()


__all__ = [
    "EventCallback",
    "PingMonitor",
    "STDERR",
    "STDOUT",
    "build_ping_command",
    "start_monitor",
]
