"""
unsafety — unsafe-region audit CLI wrapper

File: scripts/audit_unsafe.py

Purpose
- Provide a stable, no-install wrapper for ``unsafety audit`` so CI can gate
  on well-formed annotations straight from a checkout.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"


def _load_entrypoint():
    try:
        from unsafety.main import cli_entrypoint as loaded_entrypoint

        return loaded_entrypoint
    except ModuleNotFoundError as exc:
        if exc.name != "unsafety":
            raise
        if str(SRC_PATH) not in sys.path:
            sys.path.insert(0, str(SRC_PATH))
        from unsafety.main import cli_entrypoint as loaded_entrypoint

        return loaded_entrypoint


def main(argv: Sequence[str] | None = None) -> int:
    entrypoint = _load_entrypoint()
    arguments = list(sys.argv[1:] if argv is None else argv)
    return entrypoint(["audit", *arguments])


if __name__ == "__main__":
    raise SystemExit(main())
