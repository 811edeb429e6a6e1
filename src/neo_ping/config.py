"""Configuration loading and persistence helpers."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # type: ignore[import]

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

try:  # Optional dependency for secure credential storage
    import keyring as _keyring  # type: ignore[import]
    from keyring.errors import KeyringError  # type: ignore[import]
except ImportError:  # pragma: no cover - keyring not installed
    _keyring = None
    KeyringError = Exception

CONFIG_VERSION = 1
CONFIG_ENV_VAR = "NEO_PING_CONFIG_PATH"
DATA_DIR_ENV_VAR = "NEO_PING_DATA_DIR"
CONFIG_DIR_NAME = "neo-ping"
CONFIG_FILENAME = "config.toml"
KEYRING_SERVICE = "neo-ping"
KEYRING_SENTINEL = "__KEYRING__"

DEFAULT_TARGET = "www.google.com"
DEFAULT_MQTT_TOPIC = "neo_ping/{target}/events"


def _xdg_path(env_var: str, default: Path) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser()
    return default


def get_config_dir() -> Path:
    """Return the directory containing configuration files."""
    default = Path.home() / ".config"
    return _xdg_path("XDG_CONFIG_HOME", default) / CONFIG_DIR_NAME


def get_data_dir() -> Path:
    """Return the directory for runtime data/log files."""
    override = os.environ.get(DATA_DIR_ENV_VAR)
    if override:
        return Path(override).expanduser()
    default = Path.home() / ".local" / "share"
    return _xdg_path("XDG_DATA_HOME", default) / CONFIG_DIR_NAME


def get_logs_dir() -> Path:
    return get_data_dir() / "logs"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Resolve the configuration file path, honouring overrides."""
    if path is not None:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / CONFIG_FILENAME


@dataclass(slots=True)
class MonitorConfig:
    """Ping target, ping tool options and the optional MQTT sink."""

    target: str = DEFAULT_TARGET
    executable: str = "ping"
    report_outstanding: bool = False
    extra_args: list[str] = field(default_factory=list)
    stop_timeout_s: float = 2.0
    mqtt_enabled: bool = False
    mqtt_host: str = "127.0.0.1"
    mqtt_port: int = 1883
    mqtt_topic: str | None = None
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_password_in_keyring: bool = False

    @property
    def resolved_mqtt_topic(self) -> str:
        if self.mqtt_topic:
            return self.mqtt_topic
        return DEFAULT_MQTT_TOPIC.format(target=self.target)

    def monitor_options(self) -> dict[str, Any]:
        """Keyword arguments for :class:`neo_ping.ping.PingMonitor`."""
        return {
            "executable": self.executable,
            "report_outstanding": self.report_outstanding,
            "extra_args": list(self.extra_args),
            "stop_timeout": self.stop_timeout_s,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert the configuration to a TOML-serialisable dictionary."""
        password = self.mqtt_password
        if self.mqtt_password_in_keyring and password is not None:
            password = KEYRING_SENTINEL
        return {
            "version": CONFIG_VERSION,
            "monitor": {
                "target": self.target,
                "executable": self.executable,
                "report_outstanding": self.report_outstanding,
                "extra_args": list(self.extra_args),
                "stop_timeout_s": self.stop_timeout_s,
            },
            "mqtt": _drop_none(
                {
                    "enabled": self.mqtt_enabled,
                    "host": self.mqtt_host,
                    "port": self.mqtt_port,
                    "topic": self.mqtt_topic,
                    "username": self.mqtt_username,
                    "password": password,
                }
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonitorConfig:
        """Construct from a dictionary (typically parsed from TOML)."""
        version = data.get("version", CONFIG_VERSION)
        if version != CONFIG_VERSION:
            raise ValueError(f"Unsupported config version: {version}")

        monitor = data.get("monitor", {})
        mqtt = data.get("mqtt", {})
        if not isinstance(monitor, dict) or not isinstance(mqtt, dict):
            raise ValueError("Configuration sections must be tables")

        target = str(monitor.get("target", DEFAULT_TARGET)).strip()
        if not target or target.startswith("-"):
            raise ValueError(f"Invalid ping target in configuration: {target!r}")

        extra_args = monitor.get("extra_args", [])
        if isinstance(extra_args, str):
            extra_args = extra_args.split()
        if not isinstance(extra_args, list):
            raise ValueError("monitor.extra_args must be a list of strings")

        username = mqtt.get("username")
        password = mqtt.get("password")
        password_in_keyring = False
        if isinstance(password, str) and password == KEYRING_SENTINEL:
            if not username:
                raise ValueError("mqtt.username is required for a keyring password")
            password = _retrieve_password_from_keyring(str(username))
            password_in_keyring = True

        return cls(
            target=target,
            executable=str(monitor.get("executable", "ping")),
            report_outstanding=_as_bool(monitor.get("report_outstanding", False)),
            extra_args=[str(arg) for arg in extra_args],
            stop_timeout_s=float(monitor.get("stop_timeout_s", 2.0)),
            mqtt_enabled=_as_bool(mqtt.get("enabled", False)),
            mqtt_host=str(mqtt.get("host", "127.0.0.1")),
            mqtt_port=int(mqtt.get("port", 1883)),
            mqtt_topic=mqtt.get("topic") or None,
            mqtt_username=str(username) if username else None,
            mqtt_password=str(password) if password is not None else None,
            mqtt_password_in_keyring=password_in_keyring,
        )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _drop_none(mapping: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


def read_config_file(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def load_config(path: str | Path | None = None) -> MonitorConfig:
    """Load persisted configuration."""
    config_path = resolve_config_path(path)
    return MonitorConfig.from_dict(read_config_file(config_path))


def save_config(config: MonitorConfig, path: str | Path | None = None) -> Path:
    """Persist configuration to disk and return the file path."""
    if config.mqtt_password_in_keyring:
        if not config.mqtt_username or config.mqtt_password is None:
            raise ValueError("Keyring storage needs both an MQTT username and password")
        _store_password_in_keyring(config.mqtt_username, config.mqtt_password)
    config_path = resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    toml_text = tomli_w.dumps(config.to_dict())
    config_path.write_text(toml_text, encoding="utf-8")
    try:
        os.chmod(config_path, stat.S_IRUSR | stat.S_IWUSR)
    except PermissionError:  # pragma: no cover - some FS disallow chmod
        pass
    return config_path


def config_summary(config: MonitorConfig) -> str:
    """Generate a human-readable summary of key settings."""
    mqtt = "disabled"
    if config.mqtt_enabled:
        mqtt = f"{config.mqtt_host}:{config.mqtt_port} -> {config.resolved_mqtt_topic}"
    args = " ".join(config.extra_args) or "-"
    return (
        f"  Target     : {config.target}\n"
        f"  Executable : {config.executable}\n"
        f"  Extra args : {args}\n"
        f"  MQTT       : {mqtt}"
    )


def keyring_supported() -> bool:
    """Return True if a keyring backend is available."""
    return _keyring is not None


def delete_password_from_keyring(username: str) -> None:
    """Remove the MQTT password from the system keyring if present."""
    if _keyring is None:
        return
    try:
        _keyring.delete_password(KEYRING_SERVICE, username)
    except KeyringError:  # pragma: no cover - backend quirks
        pass


def _store_password_in_keyring(username: str, password: str) -> None:
    if _keyring is None:
        raise ValueError("Keyring backend not available; install 'keyring' package")
    try:
        _keyring.set_password(KEYRING_SERVICE, username, password)
    except KeyringError as exc:  # pragma: no cover - backend dependent
        raise ValueError(f"Failed to store MQTT password in keyring: {exc}") from exc


def _retrieve_password_from_keyring(username: str) -> str:
    if _keyring is None:
        raise ValueError("Keyring backend not available for stored MQTT password")
    try:
        value = _keyring.get_password(KEYRING_SERVICE, username)
    except KeyringError as exc:  # pragma: no cover - backend dependent
        raise ValueError(f"Failed to read MQTT password from keyring: {exc}") from exc
    if not value:
        raise ValueError("No MQTT password stored in keyring; rerun setup")
    return value
