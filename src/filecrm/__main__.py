"""Module entrypoint for ``python -m filecrm``."""

from __future__ import annotations

from filecrm.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
