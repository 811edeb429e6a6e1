"""Tests for the listen command wiring."""

from __future__ import annotations

import json
import time
import types
from argparse import Namespace
from pathlib import Path

import pytest

import neo_ping.telemetry.mqtt_publisher as mp
from neo_ping.commands import listen
from neo_ping.ping.events import Error, PingEvent, Reply, Timeout

SCRIPT = [
    PingEvent(1, Reply(12.0)),
    PingEvent(2, Timeout()),
    PingEvent(3, Reply(420.0)),
]


class _FakeMonitor:
    """Stand-in for PingMonitor that replays a fixed list of events."""

    instances: list["_FakeMonitor"] = []

    def __init__(self, target, on_event, **options) -> None:
        self.target = target
        self.on_event = on_event
        self.options = options
        self.events = list(SCRIPT)
        self.launched = True
        self.returncode: int | None = 0
        self.running = False
        self.join_hook = None
        self.stop_calls = 0
        _FakeMonitor.instances.append(self)

    def start(self):
        for event in self.events:
            self.on_event(event)
        return self

    def is_running(self) -> bool:
        return self.running

    def join(self, timeout=None) -> bool:
        if self.join_hook is not None:
            self.join_hook()
        return not self.running

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False


@pytest.fixture
def fake_monitor(monkeypatch):
    _FakeMonitor.instances = []
    monkeypatch.setattr(listen, "PingMonitor", _FakeMonitor)
    monkeypatch.delenv("NEO_PING_MONITOR__TARGET", raising=False)
    return _FakeMonitor


def _args(tmp_path: Path, **overrides) -> Namespace:
    values = {
        "target": "1.1.1.1",
        "config": str(tmp_path / "config.toml"),
        "duration": None,
        "json": False,
        "no_color": True,
    }
    values.update(overrides)
    return Namespace(**values)


def test_listen_renders_events(fake_monitor, tmp_path, capsys) -> None:
    assert listen.run_listen(_args(tmp_path)) == 0

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "[GOOD   ] Reply from 1.1.1.1: seq=1 time=12ms",
        "[TIMEOUT] Request timed out.",
        "[POOR   ] Reply from 1.1.1.1: seq=3 time=420ms",
    ]
    monitor = fake_monitor.instances[0]
    assert monitor.target == "1.1.1.1"
    assert monitor.options["executable"] == "ping"
    assert monitor.stop_calls == 1


def test_listen_uses_config_target(fake_monitor, tmp_path) -> None:
    (tmp_path / "config.toml").write_text(
        '[monitor]\ntarget = "9.9.9.9"\nextra_args = ["-i", "2"]\n', encoding="utf-8"
    )

    listen.run_listen(_args(tmp_path, target=None))

    monitor = fake_monitor.instances[0]
    assert monitor.target == "9.9.9.9"
    assert monitor.options["extra_args"] == ["-i", "2"]


def test_listen_json_output(fake_monitor, tmp_path, capsys) -> None:
    listen.run_listen(_args(tmp_path, json=True))

    records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["tier"] for r in records] == ["good", "timeout", "poor"]
    assert records[0]["target"] == "1.1.1.1"


def test_listen_reports_launch_failure(fake_monitor, monkeypatch, tmp_path) -> None:
    def failed_start(self):
        self.launched = False
        self.returncode = None
        self.on_event(PingEvent(0, Error("Failed to start ping: ping command not found in PATH")))
        return self

    monkeypatch.setattr(_FakeMonitor, "start", failed_start)

    assert listen.run_listen(_args(tmp_path)) == 1


def test_listen_reports_nonzero_exit(fake_monitor, monkeypatch, tmp_path) -> None:
    original_start = _FakeMonitor.start

    def exiting_start(self):
        self.returncode = 2
        return original_start(self)

    monkeypatch.setattr(_FakeMonitor, "start", exiting_start)

    assert listen.run_listen(_args(tmp_path)) == 1


def test_listen_stops_on_keyboard_interrupt(fake_monitor, monkeypatch, tmp_path) -> None:
    def interrupt():
        raise KeyboardInterrupt

    original_start = _FakeMonitor.start

    def running_start(self):
        self.running = True
        self.join_hook = interrupt
        return original_start(self)

    monkeypatch.setattr(_FakeMonitor, "start", running_start)

    assert listen.run_listen(_args(tmp_path)) == 0
    assert fake_monitor.instances[0].stop_calls == 1


def test_listen_stops_after_duration(fake_monitor, monkeypatch, tmp_path) -> None:
    original_start = _FakeMonitor.start

    def running_start(self):
        self.running = True
        self.join_hook = lambda: time.sleep(0.01)
        return original_start(self)

    monkeypatch.setattr(_FakeMonitor, "start", running_start)

    assert listen.run_listen(_args(tmp_path, duration=0.05)) == 0
    assert fake_monitor.instances[0].stop_calls == 1


def test_listen_invalid_config_fails(fake_monitor, tmp_path) -> None:
    (tmp_path / "config.toml").write_text("version = 7\n", encoding="utf-8")

    assert listen.run_listen(_args(tmp_path)) == 1
    assert fake_monitor.instances == []


def test_listen_publishes_to_mqtt(fake_monitor, monkeypatch, tmp_path, capsys) -> None:
    published: list[tuple[str, str]] = []

    class _Client:
        def __init__(self) -> None:
            self.on_connect = None
            self.on_disconnect = None

        def loop_start(self):
            return None

        def loop_stop(self):
            return None

        def connect(self, host, port):
            self.on_connect(self, None, None, 0)

        def disconnect(self):
            return None

        def publish(self, topic, body):
            published.append((topic, body))

    monkeypatch.setattr(mp.time, "sleep", lambda _x: None)
    monkeypatch.setattr(mp, "mqtt", types.SimpleNamespace(Client=_Client))
    (tmp_path / "config.toml").write_text(
        '[mqtt]\nenabled = true\nhost = "broker"\n', encoding="utf-8"
    )

    assert listen.run_listen(_args(tmp_path)) == 0

    assert [topic for topic, _ in published] == ["neo_ping/1.1.1.1/events"] * 3
    assert json.loads(published[2][1])["latency_ms"] == 420.0
    assert len(capsys.readouterr().out.splitlines()) == 3


def test_listen_continues_without_paho(fake_monitor, monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.setattr(mp, "mqtt", None)
    (tmp_path / "config.toml").write_text("[mqtt]\nenabled = true\n", encoding="utf-8")

    assert listen.run_listen(_args(tmp_path)) == 0
    assert len(capsys.readouterr().out.splitlines()) == 3
