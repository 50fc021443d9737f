"""Command-line surface: ``unsafety audit`` and ``unsafety catalog``."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from unsafety.audit import format_json, format_text, run_unsafe_audit
from unsafety.catalog import ReasonCatalog, load_catalog_file
from unsafety.config import AuditConfig, load_config
from unsafety.main import ExitCode
from unsafety.observability import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence


def run_cli(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    repo_root = Path(args.repo_root).resolve()
    config = load_config(
        args.config,
        repo_root=repo_root,
        cli_overrides={
            "roots": getattr(args, "roots", None),
            "exclude": getattr(args, "exclude", None),
            "catalog_files": args.catalog_files,
            "fail_on_warn": True if getattr(args, "fail_on_warn", False) else None,
            "format": args.output_format,
            "log_level": args.log_level,
            "log_json": True if args.log_json else None,
        },
    )
    configure_logging(config.log_level, json_output=config.log_json)

    catalog = _load_catalog(config)
    if args.command == "catalog":
        return _run_catalog(catalog, config)
    return _run_audit(repo_root, catalog, config)


def _run_audit(repo_root: Path, catalog: ReasonCatalog, config: AuditConfig) -> int:
    result = run_unsafe_audit(
        repo_root=repo_root,
        roots=config.roots,
        exclude=config.exclude,
        catalog=catalog,
    )
    if config.format == "json":
        sys.stdout.write(format_json(result))
    else:
        sys.stdout.write(format_text(result))

    should_fail = result.error_count > 0 or (config.fail_on_warn and result.warning_count > 0)
    return int(ExitCode.AUDIT_REJECTED if should_fail else ExitCode.SUCCESS)


def _run_catalog(catalog: ReasonCatalog, config: AuditConfig) -> int:
    if config.format == "json":
        sys.stdout.write(
            json.dumps(catalog.to_dict(), sort_keys=True, indent=2, ensure_ascii=False) + "\n"
        )
        return int(ExitCode.SUCCESS)

    lines: list[str] = []
    for name in catalog:
        lines.append(name)
        description = catalog.describe(name)
        if description:
            lines.append(f"    {description}")
    sys.stdout.write("\n".join(lines) + "\n")
    return int(ExitCode.SUCCESS)


def _load_catalog(config: AuditConfig) -> ReasonCatalog:
    catalog = ReasonCatalog.standard()
    for path in config.catalog_files:
        catalog = load_catalog_file(path, base=catalog)
    return catalog


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Repository root (default: current working directory).",
    )
    common.add_argument(
        "--config",
        default=None,
        help="Explicit TOML config file (default: [tool.unsafety] in pyproject.toml).",
    )
    common.add_argument(
        "--catalog-file",
        dest="catalog_files",
        action="append",
        default=None,
        help="YAML file with project-specific reason kinds (repeatable).",
    )
    common.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default=None,
        help="Output format (default: text).",
    )
    common.add_argument("--log-level", default=None, help="Log level for diagnostics on stderr.")
    common.add_argument("--log-json", action="store_true", help="Emit diagnostics as JSON lines.")

    parser = argparse.ArgumentParser(
        prog="unsafety",
        description="Discover and check justifications attached to unsafe code regions.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    audit = subparsers.add_parser(
        "audit",
        parents=[common],
        help="List every unsafe_because site and reject malformed annotations.",
    )
    audit.add_argument("--roots", nargs="+", default=None, help="Root paths to scan.")
    audit.add_argument("--exclude", nargs="+", default=None, help="Relative paths to exclude.")
    audit.add_argument(
        "--fail-on-warn",
        action="store_true",
        help="Return non-zero when warnings (unresolved reasons) exist.",
    )

    subparsers.add_parser(
        "catalog",
        parents=[common],
        help="Print the standard and project-specific reason kinds.",
    )
    return parser


__all__ = ["run_cli"]
