"""Unit tests for the no-install ``scripts/audit_unsafe.py`` wrapper."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest
import structlog

REPO_ROOT = Path(__file__).resolve().parents[3]
SCRIPT_PATH = REPO_ROOT / "scripts" / "audit_unsafe.py"


def _load_script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("audit_unsafe_script", SCRIPT_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_wrapper_runs_audit_subcommand(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "src" / "region.py"
    source.parent.mkdir(parents=True)
    source.write_text(
        "from unsafety import USES_FOREIGN_CODE, unsafe_because\n\n"
        "with unsafe_because(USES_FOREIGN_CODE.owner(42)):\n    pass\n",
        encoding="utf-8",
    )

    try:
        code = _load_script().main(["--repo-root", str(tmp_path)])
    finally:
        structlog.reset_defaults()

    assert code == 1
    assert "[non_constant_attribute]" in capsys.readouterr().out
