"""MQTT publisher implementation using paho-mqtt.

The import of ``paho.mqtt.client`` is optional; constructing a publisher
without it raises ImportError. This keeps the core monitor free of a hard
dependency unless MQTT is used.
"""

from __future__ import annotations

import json
import logging
import random
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from neo_ping.ping.events import PingEvent
from neo_ping.ping.severity import color_for_event, tier_for_event

try:
    import paho.mqtt.client as mqtt  # type: ignore[import]
except Exception:  # pragma: no cover - optional dependency
    mqtt = None  # type: ignore[assignment]


LOG = logging.getLogger(__name__)


class MqttPublisher:
    """Publish JSON payloads to an MQTT broker.

    Messages published while disconnected are kept in a bounded in-memory
    FIFO (oldest dropped first) and sent once the connection comes back.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 1883,
        *,
        username: str | None = None,
        password: str | None = None,
        max_buffer_size: int = 1000,
        max_retries: int = 5,
    ) -> None:
        if mqtt is None:
            raise ImportError("paho-mqtt is required for MqttPublisher")
        self._host = host
        self._port = port
        self._client = self._make_client()
        if username:
            self._client.username_pw_set(username, password)
        self._connected = False
        self.topic: Optional[str] = None  # Default topic for publishing
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

        self._max_retries = max_retries
        self._initial_backoff = 0.5  # seconds
        self._max_backoff = 30.0  # seconds

        self._buffer: deque[tuple[str, str]] = deque(maxlen=max_buffer_size)
        self._buffer_lock = threading.Lock()

    @staticmethod
    def _make_client() -> Any:
        api_version = getattr(mqtt, "CallbackAPIVersion", None)
        if api_version is not None:
            return mqtt.Client(api_version.VERSION2)
        return mqtt.Client()

    @property
    def connected(self) -> bool:
        return self._connected

    def buffered(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    def connect(self) -> None:
        LOG.debug("Connecting to MQTT broker %s:%s", self._host, self._port)
        # Start network loop first so on_connect can fire during connect
        try:
            self._client.loop_start()
        except Exception:
            LOG.exception("Failed to start MQTT network loop")
        self._attempt_connect()

    def publish(self, topic: str, payload: dict) -> None:
        body = json.dumps(payload, default=str)
        LOG.debug("Publishing to %s: %s", topic, body)
        if not self._connected:
            self._enqueue_message(topic, body)
            return
        try:
            self._client.publish(topic, body)
        except Exception:
            LOG.exception("Publish failed; buffering message")
            self._enqueue_message(topic, body)

    def close(self) -> None:
        try:
            try:
                self._client.loop_stop()
            except Exception:
                LOG.debug("MQTT loop_stop failed", exc_info=True)
            self._client.disconnect()
        except Exception:  # pragma: no cover - best-effort cleanup
            LOG.exception("Failed to disconnect MQTT client")

    def _on_connect(
        self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None
    ) -> None:
        if reason_code == 0:
            LOG.info("MQTT connected to %s:%s", self._host, self._port)
            self._connected = True
            self._drain_buffer()
        else:
            LOG.warning("MQTT connect returned rc=%s", reason_code)

    def _on_disconnect(self, client: Any, userdata: Any, *args: Any) -> None:
        # paho passes (rc) with the v1 callback API and
        # (flags, reason_code, properties) with v2.
        LOG.info("MQTT disconnected from %s:%s", self._host, self._port)
        self._connected = False

    def _attempt_connect(self) -> None:
        """Attempt to connect using exponential backoff. Raises on failure."""
        backoff = self._initial_backoff
        for attempt in range(1, self._max_retries + 1):
            try:
                self._client.connect(self._host, self._port)
                time.sleep(0.1)
                if self._connected:
                    return
                time.sleep(min(backoff, self._max_backoff))
                if self._connected:
                    return
                raise RuntimeError("Connect did not complete yet")
            except Exception as exc:
                LOG.warning("MQTT connect attempt %d failed: %s", attempt, exc)
                if attempt == self._max_retries:
                    LOG.error("MQTT connect failed after %d attempts", attempt)
                    raise
                jitter = random.uniform(0, backoff * 0.1)
                time.sleep(min(self._max_backoff, backoff + jitter))
                backoff = min(self._max_backoff, backoff * 2)

    def _enqueue_message(self, topic: str, body: str) -> None:
        with self._buffer_lock:
            if len(self._buffer) == self._buffer.maxlen:
                LOG.warning(
                    "MQTT buffer at capacity (%d messages); dropping oldest",
                    self._buffer.maxlen,
                )
            self._buffer.append((topic, body))

    def _drain_buffer(self) -> None:
        with self._buffer_lock:
            pending = list(self._buffer)
            self._buffer.clear()
        if not pending:
            return
        LOG.info("Draining %d buffered MQTT messages", len(pending))
        for index, (topic, body) in enumerate(pending):
            try:
                self._client.publish(topic, body)
            except Exception:
                LOG.exception("Failed to publish buffered message; keeping the rest")
                with self._buffer_lock:
                    self._buffer.extendleft(reversed(pending[index:]))
                return


def event_payload(event: PingEvent, target: str) -> dict[str, Any]:
    """Return the JSON record published for ``event``."""
    data = event.to_dict()
    data["tier"] = tier_for_event(event).value
    data["color"] = color_for_event(event).css()
    data["target"] = target
    data["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return data


class EventPublisher:
    """Ping event callback that republishes each event over MQTT."""

    def __init__(self, publisher: Any, topic: str, target: str) -> None:
        self._publisher = publisher
        self._topic = topic
        self._target = target

    def __call__(self, event: PingEvent) -> None:
        try:
            self._publisher.publish(self._topic, event_payload(event, self._target))
        except Exception:
            LOG.exception("Publisher failed to publish ping event; continuing")


__all__ = ["EventPublisher", "MqttPublisher", "event_payload"]
