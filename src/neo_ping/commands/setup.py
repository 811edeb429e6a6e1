"""Setup command: create or validate the configuration file."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path

from neo_ping import config as config_module
from neo_ping.commands.setup_io import Prompt
from neo_ping.config import DEFAULT_TARGET, MonitorConfig

_MISSING_CONFIG_SENTINEL = "missing"


def run_setup(args: Namespace, prompt: Prompt | None = None) -> int:
    """Run the configuration workflow."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))

    if getattr(args, "reset", False):
        existing, _ = _load_existing(config_path)
        if existing and existing.mqtt_password_in_keyring and existing.mqtt_username:
            config_module.delete_password_from_keyring(existing.mqtt_username)
        removed = config_path.exists()
        config_path.unlink(missing_ok=True)
        if removed:
            print(f"Removed existing configuration at {config_path}")

    if getattr(args, "non_interactive", False):
        return _run_non_interactive(config_path)

    existing, load_error = _load_existing(config_path)
    if load_error not in (None, _MISSING_CONFIG_SENTINEL):
        print(f"Warning: existing configuration invalid ({load_error}); starting fresh")

    try:
        new_config = _interactive_prompt(existing, prompt or Prompt())
    except (KeyboardInterrupt, EOFError):
        print("\nSetup cancelled by user")
        return 1

    if getattr(args, "dry_run", False):
        print("Dry run: configuration not written")
        print(config_module.config_summary(new_config))
        return 0

    try:
        saved_path = config_module.save_config(new_config, path=config_path)
    except (OSError, ValueError) as exc:
        print(f"Failed to save configuration: {exc}")
        return 1
    print(f"Configuration saved to {saved_path}")
    print(config_module.config_summary(new_config))
    return 0


def _run_non_interactive(config_path: Path) -> int:
    """Validate an existing config file without prompting the user."""
    cfg, load_error = _load_existing(config_path)
    if cfg is None:
        if load_error == _MISSING_CONFIG_SENTINEL:
            print(f"Configuration not found at {config_path}; run interactive setup first")
        else:
            print(f"Configuration invalid: {load_error}")
        return 1

    print("Configuration OK:")
    print(config_module.config_summary(cfg))
    return 0


def _load_existing(config_path: Path) -> tuple[MonitorConfig | None, str | None]:
    if not config_path.exists():
        return None, _MISSING_CONFIG_SENTINEL
    try:
        return config_module.load_config(config_path), None
    except (OSError, ValueError) as exc:
        return None, str(exc)


def _validate_target(value: str) -> None:
    if value.startswith("-") or any(ch.isspace() for ch in value):
        raise ValueError("Enter a hostname or IP address like 1.1.1.1")


def _interactive_prompt(existing: MonitorConfig | None, prompt: Prompt) -> MonitorConfig:
    base = existing or MonitorConfig()

    target = prompt.string(
        "Ping target", default=base.target or DEFAULT_TARGET, validator=_validate_target
    )
    report_outstanding = prompt.yes_no(
        "Report unanswered probes as they happen (Linux only)?",
        default=base.report_outstanding,
    )

    cfg = MonitorConfig(
        target=target,
        executable=base.executable,
        report_outstanding=report_outstanding,
        extra_args=list(base.extra_args),
        stop_timeout_s=base.stop_timeout_s,
    )

    cfg.mqtt_enabled = prompt.yes_no("Publish ping events to MQTT?", default=base.mqtt_enabled)
    if not cfg.mqtt_enabled:
        return cfg

    cfg.mqtt_host = prompt.string("MQTT broker host", default=base.mqtt_host)
    cfg.mqtt_port = prompt.integer("MQTT broker port", default=base.mqtt_port, minimum=1, maximum=65535)
    cfg.mqtt_topic = prompt.optional_string(
        "MQTT topic", default=base.mqtt_topic or f"neo_ping/{target}/events"
    )
    cfg.mqtt_username = prompt.optional_string("MQTT username ('-' for none)", default=base.mqtt_username)
    if cfg.mqtt_username is None:
        return cfg

    password = prompt.secret("MQTT password", keep_existing=base.mqtt_password is not None)
    cfg.mqtt_password = password if password is not None else base.mqtt_password
    if cfg.mqtt_password is not None and config_module.keyring_supported():
        cfg.mqtt_password_in_keyring = prompt.yes_no(
            "Store MQTT password in system keyring?",
            default=base.mqtt_password_in_keyring,
        )
    return cfg
