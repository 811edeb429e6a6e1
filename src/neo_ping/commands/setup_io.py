"""Interactive prompt helpers for the setup command."""

from __future__ import annotations

import builtins
from getpass import getpass as default_getpass
from typing import Callable

InputFunc = Callable[[str], str]
SecretFunc = Callable[[str], str]
EchoFunc = Callable[[str], None]


def _default_echo(message: str) -> None:
    print(message)


def _format_prompt(label: str, default: object | None) -> str:
    suffix = f" [{default}]" if default not in (None, "") else ""
    return f"{label}{suffix}: "


class Prompt:
    """Ask for validated values on stdin, with injectable I/O for tests."""

    def __init__(
        self,
        *,
        input_func: InputFunc | None = None,
        echo: EchoFunc | None = None,
        secret_func: SecretFunc | None = None,
    ) -> None:
        self._input = input_func or builtins.input
        self._echo = echo or _default_echo
        self._secret = secret_func or default_getpass

    def string(
        self,
        label: str,
        default: object | None = None,
        *,
        validator: Callable[[str], None] | None = None,
    ) -> str:
        while True:
            raw = self._input(_format_prompt(label, default)).strip()
            value = raw or ("" if default is None else str(default))
            if not value:
                self._echo("Value required")
                continue
            if validator is not None:
                try:
                    validator(value)
                except ValueError as exc:
                    self._echo(str(exc))
                    continue
            return value

    def optional_string(self, label: str, default: object | None = None) -> str | None:
        raw = self._input(_format_prompt(label, default)).strip()
        if not raw:
            return None if default in (None, "") else str(default)
        if raw == "-":
            return None
        return raw

    def integer(
        self,
        label: str,
        default: int | None = None,
        *,
        minimum: int | None = None,
        maximum: int | None = None,
    ) -> int:
        while True:
            raw = self._input(_format_prompt(label, default)).strip()
            try:
                value = int(raw) if raw else int(default)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                self._echo("Enter a valid integer")
                continue
            if minimum is not None and value < minimum:
                self._echo(f"Value must be >= {minimum}")
                continue
            if maximum is not None and value > maximum:
                self._echo(f"Value must be <= {maximum}")
                continue
            return value

    def yes_no(self, message: str, *, default: bool) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            response = self._input(f"{message} [{hint}]: ").strip().lower()
            if not response:
                return default
            if response in {"y", "yes"}:
                return True
            if response in {"n", "no"}:
                return False
            self._echo("Please answer 'y' or 'n'")

    def secret(self, label: str, *, keep_existing: bool = False) -> str | None:
        """Ask for a password; blank keeps the existing one when allowed."""
        while True:
            hint = " [leave blank to keep existing]" if keep_existing else ""
            value = self._secret(f"{label}{hint}: ")
            if not value:
                return None
            if value != self._secret("Confirm password: "):
                self._echo("Passwords do not match; try again")
                continue
            return value


__all__ = ["Prompt"]
