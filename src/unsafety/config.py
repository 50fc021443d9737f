"""
unsafety — audit configuration loader

File: src/unsafety/config.py

Purpose
- Load effective audit settings from defaults, ``[tool.unsafety]`` in
  ``pyproject.toml`` (or an explicit TOML file), ``UNSAFETY_`` environment
  variables, and CLI overrides.

Functional requirements
- Precedence: CLI > env > file > defaults.
- ``catalog_files`` are resolved relative to the config file location.
- Unknown keys and wrongly typed values are rejected with ``ConfigLoadError``.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Final, Literal

from unsafety.constants import (
    CONFIG_TABLE,
    DEFAULT_EXCLUDE,
    DEFAULT_ROOTS,
    ENV_PREFIX,
    PYPROJECT_FILE,
)

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_FORMATS: Final[frozenset[str]] = frozenset({"text", "json"})
_LOG_LEVELS: Final[frozenset[str]] = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)

_FIELD_TYPES: Final[dict[str, Literal["str", "bool", "list"]]] = {
    "roots": "list",
    "exclude": "list",
    "catalog_files": "list",
    "fail_on_warn": "bool",
    "format": "str",
    "log_level": "str",
    "log_json": "bool",
}


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


@dataclass(frozen=True, slots=True)
class AuditConfig:
    roots: tuple[str, ...] = DEFAULT_ROOTS
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    catalog_files: tuple[Path, ...] = ()
    fail_on_warn: bool = False
    format: str = "text"
    log_level: str = "WARNING"
    log_json: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "roots": list(self.roots),
            "exclude": list(self.exclude),
            "catalog_files": [path.as_posix() for path in self.catalog_files],
            "fail_on_warn": self.fail_on_warn,
            "format": self.format,
            "log_level": self.log_level,
            "log_json": self.log_json,
        }


def load_config(
    config_path: str | Path | None = None,
    *,
    repo_root: str | Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> AuditConfig:
    """Load effective config with deterministic precedence: CLI > env > file > defaults."""

    root = Path(repo_root) if repo_root is not None else Path.cwd()
    explicit = config_path is not None
    resolved_path = Path(config_path) if explicit else root / PYPROJECT_FILE
    env_map = dict(os.environ if environ is None else environ)

    file_payload = _load_toml_table(resolved_path, required=explicit)
    config = _apply(AuditConfig(), file_payload, source=str(resolved_path))
    config = replace(
        config,
        catalog_files=tuple(
            _resolve_relative(path, resolved_path.parent) for path in config.catalog_files
        ),
    )

    config = _apply(config, _collect_env_overrides(env_map), source="environment")

    cli_payload = {key: value for key, value in (cli_overrides or {}).items() if value is not None}
    config = _apply(config, cli_payload, source="command line")
    return replace(
        config,
        catalog_files=tuple(_resolve_relative(path, root) for path in config.catalog_files),
    )


def _load_toml_table(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"cannot read config file {path}: {exc}") from exc

    table: object = payload
    for key in CONFIG_TABLE:
        if not isinstance(table, Mapping) or key not in table:
            table = None
            break
        table = table[key]

    if table is None:
        # A bare config file may carry the keys at top level; pyproject.toml may not.
        if path.name == PYPROJECT_FILE:
            return {}
        table = payload
    if not isinstance(table, Mapping):
        raise ConfigLoadError(f"{path}: [{'.'.join(CONFIG_TABLE)}] must be a table")
    return dict(table)


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key in sorted(_FIELD_TYPES):
        env_name = f"{ENV_PREFIX}{key.upper()}"
        if env_name not in environ:
            continue
        raw = environ[env_name]
        value_type = _FIELD_TYPES[key]
        if value_type == "list":
            overrides[key] = [item.strip() for item in raw.split(",") if item.strip()]
        elif value_type == "bool":
            overrides[key] = _parse_bool(raw, env_name)
        else:
            overrides[key] = raw.strip()
    return overrides


def _apply(config: AuditConfig, payload: Mapping[str, object], *, source: str) -> AuditConfig:
    unknown = sorted(str(key) for key in payload if key not in _FIELD_TYPES)
    if unknown:
        raise ConfigLoadError(f"{source}: unknown config keys: {', '.join(unknown)}")

    updates: dict[str, object] = {}
    for key, value in payload.items():
        value_type = _FIELD_TYPES[key]
        if value_type == "list":
            items = _coerce_str_list(value, f"{source}: {key}")
            updates[key] = (
                tuple(Path(item) for item in items) if key == "catalog_files" else items
            )
        elif value_type == "bool":
            if not isinstance(value, bool):
                raise ConfigLoadError(f"{source}: {key} must be a boolean")
            updates[key] = value
        else:
            if not isinstance(value, str):
                raise ConfigLoadError(f"{source}: {key} must be a string")
            updates[key] = value

    if "format" in updates and updates["format"] not in _FORMATS:
        raise ConfigLoadError(
            f"{source}: format must be one of {', '.join(sorted(_FORMATS))}"
        )
    if "log_level" in updates:
        level = str(updates["log_level"]).upper()
        if level not in _LOG_LEVELS:
            raise ConfigLoadError(f"{source}: unsupported log_level {updates['log_level']!r}")
        updates["log_level"] = level

    return replace(config, **updates)  # type: ignore[arg-type]


def _coerce_str_list(value: object, path: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigLoadError(f"{path} must be a list of strings")
    items: list[str] = []
    for item in value:
        if isinstance(item, Path):
            item = item.as_posix()
        if not isinstance(item, str) or not item.strip():
            raise ConfigLoadError(f"{path} must contain only non-empty strings")
        items.append(item.strip())
    return tuple(items)


def _parse_bool(raw: str, env_name: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(f"{env_name} must be a boolean, got {raw!r}")


def _resolve_relative(path: Path, base_dir: Path) -> Path:
    return path if path.is_absolute() else (base_dir / path).resolve()


__all__ = ["AuditConfig", "ConfigLoadError", "load_config"]
