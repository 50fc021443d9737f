"""Executable CLI entrypoint for ``unsafety``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    AUDIT_REJECTED = 1
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m unsafety`` and the console script."""

    try:
        from unsafety.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _report_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {int(code) for code in ExitCode}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        print(raw_code.strip(), file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    from unsafety.catalog import CatalogError
    from unsafety.config import ConfigLoadError

    user_errors = (
        ConfigLoadError,
        CatalogError,
        FileNotFoundError,
        NotADirectoryError,
        PermissionError,
    )
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, user_errors):
            return ExitCode.CONFIG_ERROR
        current = current.__cause__
    return ExitCode.INTERNAL_ERROR


def _report_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(exc, file=sys.stderr)
    else:
        print(f"unsafety: {str(exc).strip() or type(exc).__name__}", file=sys.stderr)


__all__ = ["ExitCode", "cli_entrypoint"]
