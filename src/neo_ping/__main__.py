"""Allow ``python -m neo_ping``."""

from neo_ping.cli import main

if __name__ == "__main__":  # pragma: no cover - module execution path
    raise SystemExit(main())
