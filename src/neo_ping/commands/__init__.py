"""Command implementations (listen, replay, diagnostics, setup)."""

from .diagnostics import run_diagnostics
from .listen import run_listen
from .replay import run_replay
from .setup import run_setup

__all__ = [
    "run_diagnostics",
    "run_listen",
    "run_replay",
    "run_setup",
]
