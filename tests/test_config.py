"""Tests for configuration helpers and layering."""

from __future__ import annotations

import types
from pathlib import Path

import pytest

from neo_ping import config as config_module
from neo_ping.config import KEYRING_SENTINEL, MonitorConfig
from neo_ping.config_layering import (
    _deep_merge,
    _drop_unset,
    _extract_env_overrides,
    _parse_env_value,
    load_layered_config,
)


class _FakeKeyring:
    def __init__(self) -> None:
        self.store: dict[tuple[str, str], str] = {}

    def set_password(self, service: str, username: str, password: str) -> None:
        self.store[(service, username)] = password

    def get_password(self, service: str, username: str) -> str | None:
        return self.store.get((service, username))

    def delete_password(self, service: str, username: str) -> None:
        self.store.pop((service, username), None)


def test_save_and_load_roundtrip(tmp_path) -> None:
    cfg = MonitorConfig(
        target="1.1.1.1",
        report_outstanding=True,
        extra_args=["-i", "0.5"],
        stop_timeout_s=1.5,
        mqtt_enabled=True,
        mqtt_host="broker.local",
        mqtt_port=8883,
        mqtt_topic="home/ping",
        mqtt_username="monitor",
        mqtt_password="secret",
    )

    path = tmp_path / "config.toml"
    config_module.save_config(cfg, path=path)

    assert config_module.load_config(path) == cfg
    assert path.stat().st_mode & 0o077 == 0


def test_keyring_password_is_not_written_to_disk(monkeypatch, tmp_path) -> None:
    keyring = _FakeKeyring()
    monkeypatch.setattr(config_module, "_keyring", keyring)
    cfg = MonitorConfig(
        mqtt_enabled=True,
        mqtt_username="monitor",
        mqtt_password="secret",
        mqtt_password_in_keyring=True,
    )

    path = config_module.save_config(cfg, path=tmp_path / "config.toml")

    text = path.read_text(encoding="utf-8")
    assert "secret" not in text
    assert KEYRING_SENTINEL in text
    assert keyring.store[(config_module.KEYRING_SERVICE, "monitor")] == "secret"
    assert config_module.load_config(path) == cfg


def test_keyring_sentinel_without_backend_fails(monkeypatch) -> None:
    monkeypatch.setattr(config_module, "_keyring", None)
    data = {"mqtt": {"username": "monitor", "password": KEYRING_SENTINEL}}

    with pytest.raises(ValueError):
        MonitorConfig.from_dict(data)


def test_delete_password_from_keyring(monkeypatch) -> None:
    keyring = _FakeKeyring()
    keyring.set_password(config_module.KEYRING_SERVICE, "monitor", "secret")
    monkeypatch.setattr(config_module, "_keyring", keyring)

    config_module.delete_password_from_keyring("monitor")

    assert keyring.store == {}


@pytest.mark.parametrize(
    "data",
    [
        {"version": 99},
        {"monitor": {"target": ""}},
        {"monitor": {"target": "-f"}},
        {"monitor": {"extra_args": 5}},
        {"monitor": "1.1.1.1"},
    ],
)
def test_from_dict_rejects_invalid_values(data: dict) -> None:
    with pytest.raises(ValueError):
        MonitorConfig.from_dict(data)


def test_from_dict_accepts_string_extra_args() -> None:
    cfg = MonitorConfig.from_dict({"monitor": {"extra_args": "-i 0.2"}})
    assert cfg.extra_args == ["-i", "0.2"]


def test_resolved_topic_and_monitor_options() -> None:
    cfg = MonitorConfig(target="9.9.9.9", extra_args=["-4"], stop_timeout_s=3.0)

    assert cfg.resolved_mqtt_topic == "neo_ping/9.9.9.9/events"
    assert cfg.monitor_options() == {
        "executable": "ping",
        "report_outstanding": False,
        "extra_args": ["-4"],
        "stop_timeout": 3.0,
    }


def test_resolve_config_path_env_override(monkeypatch, tmp_path) -> None:
    path = tmp_path / "custom.toml"
    monkeypatch.setenv(config_module.CONFIG_ENV_VAR, str(path))

    assert config_module.resolve_config_path() == path
    assert config_module.resolve_config_path(tmp_path / "explicit.toml") == tmp_path / "explicit.toml"


def test_data_dir_prefers_override(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv(config_module.DATA_DIR_ENV_VAR, raising=False)
    assert config_module.get_data_dir() == tmp_path / "xdg" / "neo-ping"

    monkeypatch.setenv(config_module.DATA_DIR_ENV_VAR, str(tmp_path / "data"))
    assert config_module.get_logs_dir() == tmp_path / "data" / "logs"


def test_config_summary_mentions_target_and_mqtt() -> None:
    summary = config_module.config_summary(
        MonitorConfig(target="1.1.1.1", mqtt_enabled=True, mqtt_host="broker")
    )
    assert "1.1.1.1" in summary
    assert "broker:1883 -> neo_ping/1.1.1.1/events" in summary


def test_load_layered_config_missing_file_uses_defaults(tmp_path: Path) -> None:
    cfg = load_layered_config(tmp_path / "absent.toml")
    assert cfg == MonitorConfig()


def test_load_layered_config_precedence(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        '[monitor]\ntarget = "file.example"\nstop_timeout_s = 4.0\n'
        '[mqtt]\nport = 1884\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("NEO_PING_MONITOR__TARGET", "env.example")
    monkeypatch.setenv("NEO_PING_MQTT__PORT", "8883")

    cfg = load_layered_config(path)
    assert cfg.target == "env.example"
    assert cfg.mqtt_port == 8883
    assert cfg.stop_timeout_s == 4.0

    cfg = load_layered_config(path, {"monitor": {"target": "cli.example"}})
    assert cfg.target == "cli.example"

    cfg = load_layered_config(path, {"monitor": {"target": None}})
    assert cfg.target == "env.example"


def test_load_layered_config_rejects_malformed_file(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[monitor\ntarget = ", encoding="utf-8")

    with pytest.raises(ValueError):
        load_layered_config(path)


def test_extract_env_overrides_ignores_process_settings(monkeypatch) -> None:
    monkeypatch.setenv("NEO_PING_LOG_LEVEL", "debug")
    monkeypatch.setenv("NEO_PING_MONITOR__REPORT_OUTSTANDING", "true")
    monkeypatch.setenv("OTHER_VAR", "value")

    assert _extract_env_overrides() == {"monitor": {"report_outstanding": True}}


def test_deep_merge_and_drop_unset() -> None:
    base = {"monitor": {"target": "a", "executable": "ping"}}
    override = _drop_unset({"monitor": {"target": "b", "executable": None}, "mqtt": {"host": None}})

    assert override == {"monitor": {"target": "b"}}
    assert _deep_merge(base, override) == {"monitor": {"target": "b", "executable": "ping"}}


def test_parse_env_value_types() -> None:
    assert _parse_env_value("TRUE") is True
    assert _parse_env_value("false") is False
    assert _parse_env_value("42") == 42
    assert _parse_env_value("2.5") == 2.5
    assert _parse_env_value("1.1.1.1") == "1.1.1.1"


def test_keyring_supported_reflects_backend(monkeypatch) -> None:
    monkeypatch.setattr(config_module, "_keyring", types.SimpleNamespace())
    assert config_module.keyring_supported() is True
    monkeypatch.setattr(config_module, "_keyring", None)
    assert config_module.keyring_supported() is False
