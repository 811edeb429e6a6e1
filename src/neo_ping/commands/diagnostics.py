"""Diagnostics command implementation."""

from __future__ import annotations

import json
import logging
import shutil
import socket
import sys
import time
from argparse import Namespace
from dataclasses import dataclass
from importlib import metadata as importlib_metadata
from typing import Any, Iterable

from neo_ping import config as config_module
from neo_ping.config import MonitorConfig
from neo_ping.config_layering import load_layered_config
from neo_ping.ping.monitor import build_ping_command

SectionStatus = str

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _package_version() -> str:
    try:
        from neo_ping import __version__ as ver

        return ver
    except ImportError:
        return "0.0.0"


@dataclass(slots=True)
class Section:
    """Represents the status of a diagnostic check."""

    name: str
    status: SectionStatus
    message: str
    details: dict[str, Any]


@dataclass(slots=True)
class ConnectivityResult:
    """Outcome of a TCP connect probe."""

    success: bool
    latency_ms: float | None = None
    error: str | None = None


def probe_tcp_endpoint(host: str, port: int, timeout: float = 1.0) -> ConnectivityResult:
    start = time.perf_counter()
    try:
        with socket.create_connection((host, port), timeout=timeout):
            latency = round((time.perf_counter() - start) * 1000, 1)
        return ConnectivityResult(success=True, latency_ms=latency)
    except OSError as exc:
        return ConnectivityResult(success=False, error=str(exc))


def run_diagnostics(args: Namespace) -> int:
    """Run system diagnostics and emit results in the requested format."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))

    sections: list[Section] = [_check_environment()]
    config_section, monitor_config = _check_config(config_path)
    sections.append(config_section)
    sections.append(_check_ping_tool(monitor_config))
    sections.append(_check_target(monitor_config))
    sections.append(_check_mqtt(monitor_config))

    summary = _summarize_sections(sections)

    if getattr(args, "json", False):
        report = _sections_to_mapping(sections)
        report["meta"] = {
            "tool": "neo-ping",
            "version": _package_version(),
            "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        report["summary"] = summary
        indent = 2 if getattr(args, "verbose", False) else None
        print(json.dumps(report, indent=indent, default=str))
    else:
        _print_text_report(sections, verbose=getattr(args, "verbose", False))
        _log_summary(summary)

    return 1 if any(section.status == "error" for section in sections) else 0


def _check_environment() -> Section:
    packages: dict[str, str | None] = {}
    missing: list[str] = []
    for package in ("tomli-w", "paho-mqtt", "keyring"):
        try:
            packages[package] = importlib_metadata.version(package)
        except importlib_metadata.PackageNotFoundError:
            packages[package] = None
            missing.append(package)

    status: SectionStatus = "ok"
    message = f"Python {sys.version.split()[0]} on {sys.platform}"
    if missing:
        status = "warning"
        message += f"; Missing packages: {', '.join(missing)}"

    details = {
        "python_version": sys.version.split()[0],
        "platform": sys.platform,
        "packages": packages,
    }
    return Section("Environment", status, message, details)


def _check_config(config_path) -> tuple[Section, MonitorConfig | None]:
    try:
        cfg = load_layered_config(config_path)
    except ValueError as exc:
        return (
            Section(
                "Config",
                "error",
                f"Failed to load configuration: {exc}",
                {"path": str(config_path)},
            ),
            None,
        )

    details = {"path": str(config_path), "summary": config_module.config_summary(cfg)}
    if not config_path.exists():
        return (
            Section("Config", "warning", f"No config file found at {config_path}; using defaults", details),
            cfg,
        )
    return Section("Config", "ok", f"Loaded config targeting {cfg.target}", details), cfg


def _check_ping_tool(cfg: MonitorConfig | None) -> Section:
    if cfg is None:
        return Section("Ping", "warning", "Configuration unavailable; skipping ping tool check", {})

    command = build_ping_command(
        cfg.target,
        executable=cfg.executable,
        report_outstanding=cfg.report_outstanding,
        extra_args=cfg.extra_args,
    )
    path = shutil.which(cfg.executable)
    details = {"command": " ".join(command), "path": path}
    if path is None:
        return Section("Ping", "error", f"{cfg.executable} command not found in PATH", details)
    return Section("Ping", "ok", f"Found {cfg.executable} at {path}", details)


def _check_target(cfg: MonitorConfig | None) -> Section:
    if cfg is None:
        return Section("Target", "warning", "Configuration unavailable; skipping target resolution", {})

    try:
        infos = socket.getaddrinfo(cfg.target, None)
    except (socket.gaierror, UnicodeError) as exc:
        # idna encoding rejects empty or over-long labels before any lookup.
        return Section(
            "Target",
            "warning",
            f"Unable to resolve {cfg.target}",
            {"error": str(exc)},
        )
    addresses = sorted({info[4][0] for info in infos})
    return Section(
        "Target",
        "ok",
        f"{cfg.target} resolves to {len(addresses)} address(es)",
        {"addresses": addresses},
    )


def _check_mqtt(cfg: MonitorConfig | None) -> Section:
    if cfg is None or not cfg.mqtt_enabled:
        return Section("MQTT", "ok", "MQTT publishing disabled", {})

    host, port = cfg.mqtt_host, cfg.mqtt_port
    result = probe_tcp_endpoint(host, port, timeout=2.0)
    if result.success:
        return Section(
            "MQTT",
            "ok",
            f"Broker reachable at {host}:{port}",
            {"latency_ms": result.latency_ms, "topic": cfg.resolved_mqtt_topic},
        )
    return Section(
        "MQTT",
        "warning",
        f"Unable to reach MQTT broker at {host}:{port}",
        {"error": result.error},
    )


def _sections_to_mapping(sections: Iterable[Section]) -> dict[str, Any]:
    report: dict[str, Any] = {}
    for section in sections:
        report[section.name.lower()] = {
            "status": section.status,
            "message": section.message,
            "details": section.details,
        }
    return report


def _summarize_sections(sections: Iterable[Section]) -> dict[str, Any]:
    errors = [section.name for section in sections if section.status == "error"]
    warnings = [section.name for section in sections if section.status == "warning"]
    return {
        "errors": len(errors),
        "warnings": len(warnings),
        "error_sections": errors,
        "warning_sections": warnings,
    }


def _log_summary(summary: dict[str, Any]) -> None:
    level = logging.INFO
    if summary.get("errors", 0):
        level = logging.ERROR
    elif summary.get("warnings", 0):
        level = logging.WARNING

    logger.log(
        level,
        "Diagnostics summary: errors=%s warnings=%s error_sections=%s warning_sections=%s",
        summary.get("errors", 0),
        summary.get("warnings", 0),
        ", ".join(summary.get("error_sections", [])) or "-",
        ", ".join(summary.get("warning_sections", [])) or "-",
    )


def _print_text_report(sections: Iterable[Section], *, verbose: bool) -> None:
    for section in sections:
        logger.info(
            "[%s] %s: %s",
            section.status.upper().ljust(7),
            section.name,
            section.message,
        )
        if verbose and section.details:
            for key, value in section.details.items():
                logger.info("    %s: %s", key, _format_detail_value(value))


def _format_detail_value(value: Any) -> str:
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items()) or "{}"
    if isinstance(value, (list, tuple, set)):
        return ", ".join(map(str, value))
    return str(value)
