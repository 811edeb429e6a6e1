"""Telemetry sinks for ping events (e.g., MQTT)."""

from neo_ping.telemetry.mqtt_publisher import EventPublisher, MqttPublisher

__all__ = [
    "EventPublisher",
    "MqttPublisher",
]
