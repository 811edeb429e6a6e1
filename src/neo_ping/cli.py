"""Command-line interface entry points for Neo-Ping."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from argparse import Namespace
from typing import Callable

from neo_ping import __version__
from neo_ping import config as config_module
from neo_ping.commands import run_diagnostics, run_listen, run_replay, run_setup

CommandHandler = Callable[[Namespace], int]

LOG_LEVEL_ENV_VAR = "NEO_PING_LOG_LEVEL"

_LOG_LEVEL_ALIASES: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def _resolve_log_level(candidate: str | None) -> int:
    for value in (candidate, os.getenv(LOG_LEVEL_ENV_VAR)):
        if not value:
            continue
        stripped = value.strip()
        if not stripped:
            continue
        lower = stripped.lower()
        if lower in _LOG_LEVEL_ALIASES:
            return _LOG_LEVEL_ALIASES[lower]
        if stripped.isdigit():
            return int(stripped)
    return logging.INFO


def _configure_logging(level_name: str | None) -> None:
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers: list[logging.Handler] = [stream_handler]

    try:
        log_dir = config_module.get_logs_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "neo-ping.log", encoding="utf-8")
        file_formatter = logging.Formatter(
            "%(asctime)sZ %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%dT%H:%M:%S"
        )
        file_formatter.converter = time.gmtime
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)
    except OSError:
        # Continue with console logging only.
        pass

    logging.basicConfig(
        level=_resolve_log_level(level_name),
        handlers=handlers,
        force=True,
    )


def _positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="neo-ping",
        description="Continuous latency monitor driven by the system ping tool.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment overrides:\n"
            "  NEO_PING_LOG_LEVEL        Default logging level when --log-level is omitted.\n"
            "  NEO_PING_CONFIG_PATH      Path to config.toml.\n"
            "  NEO_PING_DATA_DIR         Base directory for logs.\n"
            "  NEO_PING_<SECTION>__<KEY> Override a config value, e.g. NEO_PING_MONITOR__TARGET."
        ),
    )
    parser.add_argument(
        "--log-level",
        help="Set log verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL or numeric)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"neo-ping {__version__}",
        help="Show package version and exit",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    listen_parser = subparsers.add_parser("listen", help="Ping the target continuously")
    listen_parser.add_argument("--target", help="Hostname or IP to ping (overrides config)")
    listen_parser.add_argument(
        "--config", help="Path to configuration file (overrides default location)"
    )
    listen_parser.add_argument(
        "--duration", type=_positive_float, help="Stop after this many seconds"
    )
    listen_parser.add_argument("--json", action="store_true", help="Emit events as JSON lines")
    listen_parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")

    replay_parser = subparsers.add_parser(
        "replay", help="Classify captured ping output from a file"
    )
    replay_parser.add_argument("input", help="File with captured ping stdout ('-' for stdin)")
    replay_parser.add_argument("--stderr", help="File with captured ping stderr")
    replay_parser.add_argument("--target", help="Target name shown in the output")
    replay_parser.add_argument("--encoding", default="utf-8", help="Text encoding of the capture")
    replay_parser.add_argument("--json", action="store_true", help="Emit events as JSON lines")
    replay_parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")

    diagnostics_parser = subparsers.add_parser(
        "diagnostics", help="Check the ping tool, configuration and MQTT broker"
    )
    diagnostics_parser.add_argument(
        "--config", help="Path to configuration file (overrides default location)"
    )
    diagnostics_parser.add_argument(
        "--json", action="store_true", help="Emit diagnostics in JSON format"
    )
    diagnostics_parser.add_argument(
        "--verbose", action="store_true", help="Show extended diagnostic information"
    )

    setup_parser = subparsers.add_parser("setup", help="Create or validate the configuration")
    setup_parser.add_argument("--config", help="Path to configuration file")
    setup_parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete existing configuration before starting",
    )
    setup_parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Validate the existing config file instead of prompting",
    )
    setup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the prompts without writing any files",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Process CLI arguments and dispatch to the requested command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(getattr(args, "log_level", None))

    handlers: dict[str, CommandHandler] = {
        "listen": run_listen,
        "replay": run_replay,
        "diagnostics": run_diagnostics,
        "setup": run_setup,
    }
    handler = handlers.get(args.command)
    if handler is None:  # pragma: no cover - argparse enforces choices
        parser.error(f"Unknown command: {args.command}")
    return handler(args)


if __name__ == "__main__":  # pragma: no cover - direct CLI execution path
    raise SystemExit(main())
