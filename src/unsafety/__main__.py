"""Module entrypoint for ``python -m unsafety``."""

from __future__ import annotations

from unsafety.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
