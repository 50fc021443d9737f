"""Stable constants shared across the annotation, audit, and CLI layers."""

from __future__ import annotations

from typing import Final

# Package identity used for import-alias tracking in the static audit.
PACKAGE_NAME: Final[str] = "unsafety"
WRAP_FUNCTION_NAME: Final[str] = "unsafe_because"
REASON_TYPE_NAME: Final[str] = "UnsafeReason"
REASON_ATTRIBUTE: Final[str] = "__unsafe_reasons__"

# Builder combinators accepted on a reason, with their positional arity.
COMBINATOR_ARITY: Final[dict[str, int]] = {
    "owner": 1,
    "bug": 1,
    "link": 1,
    "tag": 2,
    "message": 1,
}

# Schema versions for persisted/serialized payloads.
CATALOG_SCHEMA_VERSION: Final[int] = 1
AUDIT_REPORT_SCHEMA_VERSION: Final[int] = 1

# Audit defaults (relative to the repository root).
DEFAULT_ROOTS: Final[tuple[str, ...]] = ("src",)
DEFAULT_EXCLUDE: Final[tuple[str, ...]] = ()
IGNORED_DIRS: Final[frozenset[str]] = frozenset(
    {
        ".git",
        ".venv",
        "venv",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".hypothesis",
        ".tox",
        ".nox",
        "build",
        "dist",
    }
)

# Configuration.
PYPROJECT_FILE: Final[str] = "pyproject.toml"
CONFIG_TABLE: Final[tuple[str, ...]] = ("tool", "unsafety")
ENV_PREFIX: Final[str] = "UNSAFETY_"

__all__ = [
    "AUDIT_REPORT_SCHEMA_VERSION",
    "CATALOG_SCHEMA_VERSION",
    "COMBINATOR_ARITY",
    "CONFIG_TABLE",
    "DEFAULT_EXCLUDE",
    "DEFAULT_ROOTS",
    "ENV_PREFIX",
    "IGNORED_DIRS",
    "PACKAGE_NAME",
    "PYPROJECT_FILE",
    "REASON_ATTRIBUTE",
    "REASON_TYPE_NAME",
    "WRAP_FUNCTION_NAME",
]
