"""Listen command: run the ping monitor and render its events."""

from __future__ import annotations

import json
import logging
import time
from argparse import Namespace
from typing import Any, Callable

from neo_ping.config import MonitorConfig
from neo_ping.config_layering import load_layered_config
from neo_ping.ping.events import PingEvent
from neo_ping.ping.monitor import PingMonitor
from neo_ping.term import format_event, supports_color, supports_truecolor

LOG = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.5


def make_renderer(
    args: Namespace, target: str
) -> Callable[[PingEvent], None]:
    """Return an event callback that prints one line per event to stdout."""
    if getattr(args, "json", False):
        from neo_ping.telemetry.mqtt_publisher import event_payload

        def render_json(event: PingEvent) -> None:
            print(json.dumps(event_payload(event, target)), flush=True)

        return render_json

    color = supports_color() and not getattr(args, "no_color", False)
    truecolor = color and supports_truecolor()

    def render_text(event: PingEvent) -> None:
        print(format_event(event, target=target, color=color, truecolor=truecolor), flush=True)

    return render_text


def run_listen(args: Namespace) -> int:
    """Ping the configured target until interrupted or ``--duration`` elapses."""
    overrides: dict[str, Any] = {"monitor": {"target": getattr(args, "target", None)}}
    try:
        cfg = load_layered_config(getattr(args, "config", None), overrides)
    except ValueError as exc:
        LOG.error("Invalid configuration: %s", exc)
        return 1

    observers: list[Callable[[PingEvent], None]] = [make_renderer(args, cfg.target)]
    publisher = _make_publisher(cfg)
    if publisher is not None:
        from neo_ping.telemetry.mqtt_publisher import EventPublisher

        observers.append(EventPublisher(publisher, cfg.resolved_mqtt_topic, cfg.target))

    def on_event(event: PingEvent) -> None:
        for observer in observers:
            observer(event)

    monitor = PingMonitor(cfg.target, on_event, **cfg.monitor_options())
    duration = getattr(args, "duration", None)
    deadline = time.monotonic() + duration if duration else None
    stopped_by_user = False

    LOG.info("Pinging %s (Ctrl-C to stop)", cfg.target)
    monitor.start()
    try:
        while monitor.is_running():
            if deadline is not None and time.monotonic() >= deadline:
                stopped_by_user = True
                break
            monitor.join(timeout=_POLL_INTERVAL_S)
    except KeyboardInterrupt:
        LOG.info("Ping monitoring interrupted by user")
        stopped_by_user = True
    finally:
        monitor.stop()
        if publisher is not None:
            publisher.close()

    if not monitor.launched:
        return 1
    if stopped_by_user:
        return 0
    returncode = monitor.returncode
    return 1 if returncode is not None and returncode > 0 else 0


def _make_publisher(cfg: MonitorConfig) -> Any | None:
    if not cfg.mqtt_enabled:
        return None
    from neo_ping.telemetry.mqtt_publisher import MqttPublisher

    try:
        publisher = MqttPublisher(
            cfg.mqtt_host,
            cfg.mqtt_port,
            username=cfg.mqtt_username,
            password=cfg.mqtt_password,
        )
    except ImportError as exc:
        LOG.error("MQTT publishing disabled: %s", exc)
        return None
    publisher.topic = cfg.resolved_mqtt_topic
    try:
        publisher.connect()
    except Exception:
        LOG.exception("Failed to connect MQTT publisher; continuing without")
        publisher.close()
        return None
    LOG.info("Publishing ping events to MQTT topic %s", cfg.resolved_mqtt_topic)
    return publisher
