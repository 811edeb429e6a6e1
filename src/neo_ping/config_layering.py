"""Configuration layering support.

Precedence (later overrides earlier): config.toml < environment variables
(``NEO_PING_<SECTION>__<KEY>``) < CLI overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from neo_ping import config as config_module
from neo_ping.config import MonitorConfig

LOG = logging.getLogger(__name__)

ENV_PREFIX = "NEO_PING_"


def load_layered_config(
    path: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> MonitorConfig:
    """Load the config file if present and merge env and CLI overrides.

    A missing config file is not an error; defaults are used instead.
    Malformed files and invalid values raise ``ValueError``.
    """
    config_path = config_module.resolve_config_path(path)
    result: dict[str, Any] = {}
    if config_path.exists():
        try:
            result = config_module.read_config_file(config_path)
        except (OSError, ValueError) as exc:
            raise ValueError(f"Failed to read {config_path}: {exc}") from exc
    else:
        LOG.debug("No config file at %s; using defaults", config_path)

    env_overrides = _extract_env_overrides()
    if env_overrides:
        result = _deep_merge(result, env_overrides)

    if cli_overrides:
        result = _deep_merge(result, _drop_unset(cli_overrides))

    return MonitorConfig.from_dict(result)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base, preferring override values."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _drop_unset(overrides: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in overrides.items():
        if isinstance(value, dict):
            nested = _drop_unset(value)
            if nested:
                cleaned[key] = nested
        elif value is not None:
            cleaned[key] = value
    return cleaned


def _extract_env_overrides() -> dict[str, Any]:
    """Extract ``NEO_PING_SECTION__KEY`` variables into a nested dict.

    Example:
        NEO_PING_MONITOR__TARGET=1.1.1.1 -> {"monitor": {"target": "1.1.1.1"}}

    Single-segment names such as ``NEO_PING_LOG_LEVEL`` are process
    settings rather than config keys and are ignored here.
    """
    overrides: dict[str, Any] = {}
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        parts = env_key[len(ENV_PREFIX) :].lower().split("__")
        if len(parts) != 2 or not all(parts):
            continue
        section, key = parts
        overrides.setdefault(section, {})[key] = _parse_env_value(env_value)
    return overrides


def _parse_env_value(raw: str) -> Any:
    """Parse environment variable string into appropriate Python type."""
    lower = raw.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        pass
    return raw
