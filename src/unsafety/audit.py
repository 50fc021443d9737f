"""
unsafety — static discovery and well-formedness audit of unsafe regions

File: src/unsafety/audit.py

Purpose
- Enumerate every ``unsafe_because`` site in a source tree without importing
  or executing it, and resolve the reasons each site carries.
- Reject malformed annotations before the code ships: empty reason lists,
  non-literal attribute values, unknown combinators, values that can never be
  a reason.

What should be included in this file
- Two-pass AST analysis: collect module-level constants and imports for every
  scanned module, then resolve reason expressions across modules.
- Deterministic site/finding ordering and stable serialization.
- Text/JSON formatters for CI logs and downstream tooling.

Non-functional requirements
- Offline only; scanned code is parsed, never imported.
- No policy decisions: which reason is allowed where is left to consumers of
  the JSON inventory.
"""

from __future__ import annotations

import ast
import fnmatch
import json
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Final

import structlog

from unsafety.catalog import STANDARD_REASONS, ReasonCatalog
from unsafety.constants import (
    AUDIT_REPORT_SCHEMA_VERSION,
    COMBINATOR_ARITY,
    DEFAULT_EXCLUDE,
    DEFAULT_ROOTS,
    IGNORED_DIRS,
    PACKAGE_NAME,
    REASON_TYPE_NAME,
    WRAP_FUNCTION_NAME,
)
from unsafety.reason import InvalidReasonError, UnsafeReason

_SEVERITY_ORDER: Final[dict[str, int]] = {"ERROR": 0, "WARNING": 1}
_KIND_SEVERITY: Final[dict[str, str]] = {
    "empty_reason_list": "ERROR",
    "missing_reason": "ERROR",
    "non_constant_attribute": "ERROR",
    "unknown_combinator": "ERROR",
    "invalid_reason_expression": "ERROR",
    "unresolved_reason": "WARNING",
    "syntax_error": "WARNING",
}
_REASON_SYMBOL: Final[str] = f"{PACKAGE_NAME}.{REASON_TYPE_NAME}"
_WRAP_SYMBOL: Final[str] = f"{PACKAGE_NAME}.{WRAP_FUNCTION_NAME}"
_PACKAGE_SUBMODULES: Final[frozenset[str]] = frozenset(
    {"catalog", "reason", "wrap", "registry", "audit"}
)
_NEVER_A_REASON: Final[tuple[type[ast.expr], ...]] = (
    ast.Constant,
    ast.Dict,
    ast.Set,
    ast.JoinedStr,
    ast.Lambda,
    ast.List,
    ast.Tuple,
    ast.ListComp,
    ast.SetComp,
    ast.DictComp,
    ast.GeneratorExp,
    ast.Compare,
)

# (module, name, line of the binding being evaluated; 0 for imports)
_Stack = tuple[tuple[str, str, int], ...]

_logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedReason:
    expression: str
    reason: UnsafeReason | None
    catalogued: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "expression": self.expression,
            "resolved": self.reason is not None,
            "catalogued": self.catalogued,
            "reason": None if self.reason is None else self.reason.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class UnsafeSite:
    """One ``unsafe_because`` occurrence and the reasons it carries."""

    path: str
    line: int
    col: int
    form: str
    scope: str
    reasons: tuple[ResolvedReason, ...]

    @property
    def reason_ids(self) -> tuple[str, ...]:
        return tuple(item.reason.id for item in self.reasons if item.reason is not None)

    def sort_key(self) -> tuple[str, int, int]:
        return (self.path, self.line, self.col)

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "line": self.line,
            "col": self.col,
            "form": self.form,
            "scope": self.scope,
            "reasons": [item.to_dict() for item in self.reasons],
        }


@dataclass(frozen=True, slots=True)
class Finding:
    severity: str
    kind: str
    path: str
    line: int
    col: int
    snippet: str
    detail: str

    def sort_key(self) -> tuple[int, str, int, int, str]:
        return (_SEVERITY_ORDER.get(self.severity, 99), self.path, self.line, self.col, self.kind)

    def to_dict(self) -> dict[str, object]:
        return {
            "severity": self.severity.lower(),
            "kind": self.kind,
            "path": self.path,
            "line": self.line,
            "col": self.col,
            "snippet": self.snippet,
            "detail": self.detail,
        }


@dataclass(frozen=True, slots=True)
class AuditResult:
    sites: tuple[UnsafeSite, ...]
    findings: tuple[Finding, ...]
    scanned_files: tuple[str, ...]
    roots: tuple[str, ...]
    exclude: tuple[str, ...]

    @property
    def error_count(self) -> int:
        return sum(1 for item in self.findings if item.severity == "ERROR")

    @property
    def warning_count(self) -> int:
        return sum(1 for item in self.findings if item.severity == "WARNING")

    def sites_for(self, reason_id: str) -> tuple[UnsafeSite, ...]:
        return tuple(site for site in self.sites if reason_id in site.reason_ids)

    def summary(self) -> dict[str, object]:
        return {
            "site_count": len(self.sites),
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "scanned_files": len(self.scanned_files),
            "roots": list(self.roots),
            "exclude": list(self.exclude),
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "schema_version": AUDIT_REPORT_SCHEMA_VERSION,
            "summary": self.summary(),
            "sites": [item.to_dict() for item in self.sites],
            "findings": [item.to_dict() for item in self.findings],
            "scanned_files": list(self.scanned_files),
        }


class _ResolutionFailure(Exception):
    def __init__(self, kind: str, detail: str, node: ast.AST) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.node = node


@dataclass(frozen=True, slots=True)
class _Value:
    reason: UnsafeReason | None = None
    module: str | None = None
    symbol: str | None = None


@dataclass(slots=True)
class _ModuleInfo:
    rel_path: str
    name: str
    is_package: bool
    tree: ast.Module
    lines: Sequence[str]
    constants: dict[str, list[tuple[int, ast.expr]]] = field(default_factory=dict)
    imports: dict[str, tuple[str, str | None]] = field(default_factory=dict)
    star_imports: list[str] = field(default_factory=list)


def run_unsafe_audit(
    *,
    repo_root: Path | None = None,
    roots: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
    catalog: ReasonCatalog | None = None,
) -> AuditResult:
    root = (repo_root or Path.cwd()).resolve()
    normalized_roots = _normalize_inputs(DEFAULT_ROOTS if roots is None else roots)
    normalized_exclude = _normalize_inputs(DEFAULT_EXCLUDE if exclude is None else exclude)
    effective_catalog = catalog if catalog is not None else ReasonCatalog.standard()

    _logger.info(
        "audit_started",
        repo_root=str(root),
        roots=list(normalized_roots),
        exclude=list(normalized_exclude),
    )

    findings: list[Finding] = []
    modules: dict[str, _ModuleInfo] = {}
    ordered: list[_ModuleInfo] = []
    scanned: list[str] = []

    for rel_path in _collect_files(root, roots=normalized_roots, exclude=normalized_exclude):
        text = (root / rel_path).read_text(encoding="utf-8", errors="replace")
        lines = text.splitlines()
        scanned.append(rel_path)
        try:
            tree = ast.parse(text, filename=rel_path)
        except SyntaxError as exc:
            _logger.warning("audit_file_unparseable", path=rel_path, error=str(exc.msg))
            line = exc.lineno or 1
            findings.append(
                Finding(
                    severity=_KIND_SEVERITY["syntax_error"],
                    kind="syntax_error",
                    path=rel_path,
                    line=line,
                    col=exc.offset or 1,
                    snippet=_line_text(lines, line),
                    detail=f"File does not parse: {exc.msg}",
                )
            )
            continue

        name, is_package = _module_name(rel_path, normalized_roots)
        info = _ModuleInfo(
            rel_path=rel_path, name=name, is_package=is_package, tree=tree, lines=lines
        )
        _index_module(info)
        modules.setdefault(name, info)
        ordered.append(info)

    resolver = _Resolver(modules=modules, catalog=effective_catalog)
    sites: list[UnsafeSite] = []
    for info in ordered:
        collector = _SiteCollector(info, resolver)
        collector.visit(info.tree)
        sites.extend(collector.sites)
        findings.extend(collector.findings)

    result = AuditResult(
        sites=tuple(sorted(sites, key=lambda item: item.sort_key())),
        findings=tuple(sorted(findings, key=lambda item: item.sort_key())),
        scanned_files=tuple(sorted(scanned)),
        roots=normalized_roots,
        exclude=normalized_exclude,
    )
    _logger.info(
        "audit_completed",
        sites=len(result.sites),
        errors=result.error_count,
        warnings=result.warning_count,
        scanned_files=len(result.scanned_files),
    )
    return result


def format_text(result: AuditResult) -> str:
    errors = [item for item in result.findings if item.severity == "ERROR"]
    warnings = [item for item in result.findings if item.severity == "WARNING"]

    output_lines: list[str] = []
    output_lines.extend(_format_section("ERRORS (fail build)", errors))
    output_lines.append("")
    output_lines.extend(_format_section("WARNINGS (review)", warnings))
    output_lines.append("")
    output_lines.append(f"UNSAFE SITES ({len(result.sites)})")
    if not result.sites:
        output_lines.append("  (none)")
    for site in result.sites:
        output_lines.append(f"- {site.path}:{site.line}:{site.col} [{site.form}] {site.scope}")
        for item in site.reasons:
            output_lines.append(f"    {_format_reason(item)}")
    output_lines.append("")
    summary = result.summary()
    output_lines.append(
        "Summary: "
        f"sites={summary['site_count']} "
        f"errors={summary['error_count']} "
        f"warnings={summary['warning_count']} "
        f"scanned_files={summary['scanned_files']}"
    )
    return "\n".join(output_lines).rstrip() + "\n"


def format_json(result: AuditResult) -> str:
    return json.dumps(result.to_dict(), sort_keys=True, indent=2, ensure_ascii=False) + "\n"


class _Resolver:
    """Evaluates reason expressions statically, following imports between modules."""

    def __init__(self, *, modules: dict[str, _ModuleInfo], catalog: ReasonCatalog) -> None:
        self._modules = modules
        self.catalog = catalog

    def evaluate(
        self,
        info: _ModuleInfo,
        node: ast.expr,
        stack: _Stack = (),
    ) -> _Value:
        if isinstance(node, ast.Name):
            return self.resolve_name(info, node.id, node, stack)

        if isinstance(node, ast.Attribute):
            base = self.evaluate(info, node.value, stack)
            if base.module is not None:
                return self.resolve_qualified(base.module, node.attr, node, stack)
            raise _ResolutionFailure(
                "unresolved_reason",
                f"Cannot resolve attribute `{ast.unparse(node)}` statically.",
                node,
            )

        if isinstance(node, ast.Call):
            return self._evaluate_call(info, node, stack)

        if isinstance(node, _NEVER_A_REASON):
            raise _ResolutionFailure(
                "invalid_reason_expression",
                f"`{ast.unparse(node)}` can never be an {REASON_TYPE_NAME}.",
                node,
            )

        raise _ResolutionFailure(
            "unresolved_reason",
            f"Dynamic expression `{ast.unparse(node)}` cannot be audited statically.",
            node,
        )

    def resolve_name(
        self,
        info: _ModuleInfo,
        name: str,
        node: ast.AST,
        stack: _Stack,
    ) -> _Value:
        binding = _binding_for(info, name, stack)
        if binding is not None:
            line, value = binding
            key = (info.name, name, line)
            if key in stack:
                raise _ResolutionFailure(
                    "unresolved_reason", f"Circular definition of `{name}`.", node
                )
            return self.evaluate(info, value, (*stack, key))

        key = (info.name, name, 0)
        if key in stack:
            raise _ResolutionFailure(
                "unresolved_reason", f"Circular definition of `{name}`.", node
            )

        if name in info.imports:
            module, attr = info.imports[name]
            if attr is None:
                return _Value(module=module)
            return self.resolve_qualified(module, attr, node, (*stack, key))

        for module in info.star_imports:
            try:
                return self.resolve_qualified(module, name, node, (*stack, key))
            except _ResolutionFailure:
                continue

        if name in info.constants:
            raise _ResolutionFailure(
                "unresolved_reason", f"`{name}` is used before it is assigned.", node
            )
        raise _ResolutionFailure(
            "unresolved_reason",
            f"`{name}` is not a module-level constant or import of a scanned module.",
            node,
        )

    def resolve_qualified(
        self,
        module: str,
        attr: str,
        node: ast.AST,
        stack: _Stack,
    ) -> _Value:
        if _is_package_module(module):
            if attr in STANDARD_REASONS:
                return _Value(reason=STANDARD_REASONS[attr])
            if attr == REASON_TYPE_NAME:
                return _Value(symbol=_REASON_SYMBOL)
            if attr == WRAP_FUNCTION_NAME:
                return _Value(symbol=_WRAP_SYMBOL)
            if module == PACKAGE_NAME and attr in _PACKAGE_SUBMODULES:
                return _Value(module=f"{module}.{attr}")
            raise _ResolutionFailure(
                "unresolved_reason", f"`{module}.{attr}` is not a known reason.", node
            )

        target = self._modules.get(module)
        if target is not None and (attr in target.constants or attr in target.imports):
            return self.resolve_name(target, attr, node, stack)

        submodule = f"{module}.{attr}"
        if submodule in self._modules:
            return _Value(module=submodule)

        if target is not None and target.star_imports:
            return self.resolve_name(target, attr, node, stack)

        raise _ResolutionFailure(
            "unresolved_reason",
            f"`{submodule}` is not defined in any scanned module.",
            node,
        )

    def _evaluate_call(
        self,
        info: _ModuleInfo,
        node: ast.Call,
        stack: _Stack,
    ) -> _Value:
        func = node.func
        if isinstance(func, ast.Attribute):
            base = self.evaluate(info, func.value, stack)
            if base.reason is not None:
                return _Value(reason=self._apply_combinator(base.reason, func.attr, node))
            if base.module is None:
                raise _ResolutionFailure(
                    "unresolved_reason",
                    f"Cannot resolve call `{ast.unparse(node)}` statically.",
                    node,
                )
            callee = self.resolve_qualified(base.module, func.attr, func, stack)
        else:
            callee = self.evaluate(info, func, stack)

        if callee.symbol == _REASON_SYMBOL:
            return _Value(reason=self._construct_reason(node))

        raise _ResolutionFailure(
            "unresolved_reason",
            f"Call `{ast.unparse(node)}` does not produce a statically known reason.",
            node,
        )

    def _apply_combinator(self, reason: UnsafeReason, method: str, node: ast.Call) -> UnsafeReason:
        arity = COMBINATOR_ARITY.get(method)
        if arity is None:
            raise _ResolutionFailure(
                "unknown_combinator",
                f"`.{method}()` is not a reason combinator "
                f"(expected one of: {', '.join(sorted(COMBINATOR_ARITY))}).",
                node,
            )
        if node.keywords or len(node.args) != arity:
            raise _ResolutionFailure(
                "invalid_reason_expression",
                f"`.{method}()` takes exactly {arity} positional string argument(s).",
                node,
            )
        values = [_string_literal(arg, f".{method}()") for arg in node.args]
        return getattr(reason, method)(*values)

    def _construct_reason(self, node: ast.Call) -> UnsafeReason:
        arguments = list(node.args)
        for keyword in node.keywords:
            if keyword.arg != "id":
                raise _ResolutionFailure(
                    "unresolved_reason",
                    f"`{REASON_TYPE_NAME}(...)` built with `{keyword.arg}=` cannot be "
                    "audited statically; use the combinators instead.",
                    node,
                )
            arguments.append(keyword.value)
        if len(arguments) != 1:
            raise _ResolutionFailure(
                "invalid_reason_expression",
                f"`{REASON_TYPE_NAME}(...)` takes exactly one id argument.",
                node,
            )
        reason_id = _string_literal(arguments[0], f"{REASON_TYPE_NAME}()")
        try:
            return UnsafeReason(reason_id)
        except InvalidReasonError as exc:
            raise _ResolutionFailure("invalid_reason_expression", str(exc), node) from exc


class _SiteCollector(ast.NodeVisitor):
    def __init__(self, info: _ModuleInfo, resolver: _Resolver) -> None:
        self._info = info
        self._resolver = resolver
        self._scope: list[str] = []
        self._claimed: set[int] = set()
        self.sites: list[UnsafeSite] = []
        self.findings: list[Finding] = []

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_definition(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_definition(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._visit_definition(node)

    def visit_With(self, node: ast.With) -> None:
        self._visit_with(node)

    def visit_AsyncWith(self, node: ast.AsyncWith) -> None:
        self._visit_with(node)

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if (
            isinstance(func, ast.Attribute)
            and func.attr == "run"
            and isinstance(func.value, ast.Call)
            and self._is_wrap_call(func.value)
        ):
            self._claim(func.value, "expression")
        if id(node) not in self._claimed and self._is_wrap_call(node):
            self._claim(node, "bare")
        self.generic_visit(node)

    def _visit_definition(
        self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef
    ) -> None:
        self._scope.append(node.name)
        for decorator in node.decorator_list:
            if isinstance(decorator, ast.Call) and self._is_wrap_call(decorator):
                self._claim(decorator, "definition")
        self._scope.pop()
        for decorator in node.decorator_list:
            self.visit(decorator)

        self._scope.append(node.name)
        for child in ast.iter_child_nodes(node):
            if child in node.decorator_list:
                continue
            self.visit(child)
        self._scope.pop()

    def _visit_with(self, node: ast.With | ast.AsyncWith) -> None:
        for item in node.items:
            expression = item.context_expr
            if isinstance(expression, ast.Call) and self._is_wrap_call(expression):
                self._claim(expression, "block")
        self.generic_visit(node)

    def _is_wrap_call(self, node: ast.Call) -> bool:
        func = node.func
        try:
            callee = self._resolver.evaluate(self._info, func)
        except _ResolutionFailure:
            return isinstance(func, ast.Name) and func.id == WRAP_FUNCTION_NAME
        return callee.symbol == _WRAP_SYMBOL

    def _claim(self, node: ast.Call, form: str) -> None:
        if id(node) in self._claimed:
            return
        self._claimed.add(id(node))

        reasons: list[ResolvedReason] = []
        if node.keywords or len(node.args) != 1:
            self._add_finding(
                "missing_reason",
                node,
                f"`{WRAP_FUNCTION_NAME}` takes exactly one positional argument: "
                "a reason or a non-empty list of reasons.",
            )
        else:
            argument = node.args[0]
            if isinstance(argument, (ast.List, ast.Tuple)):
                if not argument.elts:
                    self._add_finding(
                        "empty_reason_list",
                        argument,
                        "A risky region needs at least one reason; the list is empty.",
                    )
                for element in argument.elts:
                    reasons.append(self._resolve_reason(element))
            else:
                reasons.append(self._resolve_reason(argument))

        self.sites.append(
            UnsafeSite(
                path=self._info.rel_path,
                line=node.lineno,
                col=node.col_offset + 1,
                form=form,
                scope=".".join(self._scope) or "<module>",
                reasons=tuple(reasons),
            )
        )

    def _resolve_reason(self, node: ast.expr) -> ResolvedReason:
        expression = ast.unparse(node)
        try:
            if isinstance(node, ast.Starred):
                raise _ResolutionFailure(
                    "unresolved_reason",
                    f"Unpacked reasons `{expression}` cannot be audited statically.",
                    node,
                )
            value = self._resolver.evaluate(self._info, node)
        except _ResolutionFailure as failure:
            self._add_finding(failure.kind, failure.node, failure.detail)
            return ResolvedReason(expression=expression, reason=None, catalogued=False)

        if value.reason is None:
            self._add_finding(
                "invalid_reason_expression",
                node,
                f"`{expression}` is not an {REASON_TYPE_NAME}.",
            )
            return ResolvedReason(expression=expression, reason=None, catalogued=False)

        return ResolvedReason(
            expression=expression,
            reason=value.reason,
            catalogued=value.reason.id in self._resolver.catalog,
        )

    def _add_finding(self, kind: str, node: ast.AST, detail: str) -> None:
        line = getattr(node, "lineno", 1)
        self.findings.append(
            Finding(
                severity=_KIND_SEVERITY[kind],
                kind=kind,
                path=self._info.rel_path,
                line=line,
                col=getattr(node, "col_offset", 0) + 1,
                snippet=_line_text(self._info.lines, line),
                detail=detail,
            )
        )


def _index_module(info: _ModuleInfo) -> None:
    package = info.name if info.is_package else info.name.rpartition(".")[0]
    for statement in info.tree.body:
        if isinstance(statement, ast.Assign):
            if len(statement.targets) == 1 and isinstance(statement.targets[0], ast.Name):
                info.constants.setdefault(statement.targets[0].id, []).append(
                    (statement.lineno, statement.value)
                )
        elif isinstance(statement, ast.AnnAssign):
            if isinstance(statement.target, ast.Name) and statement.value is not None:
                info.constants.setdefault(statement.target.id, []).append(
                    (statement.lineno, statement.value)
                )
        elif isinstance(statement, ast.Import):
            for alias in statement.names:
                if alias.asname is not None:
                    info.imports[alias.asname] = (alias.name, None)
                else:
                    head = alias.name.split(".")[0]
                    info.imports[head] = (head, None)
        elif isinstance(statement, ast.ImportFrom):
            module = _absolute_module(statement.module, statement.level, package)
            for alias in statement.names:
                if alias.name == "*":
                    info.star_imports.append(module)
                    continue
                info.imports[alias.asname or alias.name] = (module, alias.name)


def _binding_for(info: _ModuleInfo, name: str, stack: _Stack) -> tuple[int, ast.expr] | None:
    """Pick the assignment of ``name`` that a reference sees.

    Inside another constant of the same module the reference sees the latest
    assignment above that constant; everywhere else it sees the final one.
    """

    bindings = info.constants.get(name)
    if not bindings:
        return None
    if stack and stack[-1][0] == info.name and stack[-1][2] > 0:
        current_line = stack[-1][2]
        earlier = [binding for binding in bindings if binding[0] < current_line]
        return earlier[-1] if earlier else None
    return bindings[-1]


def _absolute_module(module: str | None, level: int, package: str) -> str:
    if level == 0:
        return module or ""
    parts = package.split(".") if package else []
    if level > 1:
        parts = parts[: len(parts) - (level - 1)]
    if module:
        parts.append(module)
    return ".".join(parts)


def _is_package_module(module: str) -> bool:
    return module == PACKAGE_NAME or module.startswith(f"{PACKAGE_NAME}.")


def _string_literal(node: ast.expr, context: str) -> str:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    raise _ResolutionFailure(
        "non_constant_attribute",
        f"{context} argument `{ast.unparse(node)}` must be a string literal.",
        node,
    )


def _module_name(rel_path: str, roots: Sequence[str]) -> tuple[str, bool]:
    path = PurePosixPath(rel_path)
    for root in sorted(roots, key=len, reverse=True):
        if root == ".":
            break
        root_path = PurePosixPath(root)
        if path == root_path:
            path = PurePosixPath(path.name)
            break
        if root_path in path.parents:
            path = path.relative_to(root_path)
            break

    parts = list(path.with_suffix("").parts)
    is_package = bool(parts) and parts[-1] == "__init__"
    if is_package:
        parts = parts[:-1]
    return ".".join(parts), is_package


def _collect_files(repo_root: Path, *, roots: Sequence[str], exclude: Sequence[str]) -> list[str]:
    collected: set[str] = set()
    for root in roots:
        candidate = (repo_root / root).resolve()
        if candidate.is_file():
            rel_path = _relative_posix(candidate, repo_root)
            if rel_path is not None and rel_path.endswith(".py") and not _is_excluded(
                rel_path, exclude
            ):
                collected.add(rel_path)
            continue
        if not candidate.is_dir():
            continue

        for current_dir, dirnames, filenames in os.walk(candidate):
            current = Path(current_dir)
            rel_dir = _relative_posix(current, repo_root) or "."
            prefix = "" if rel_dir == "." else f"{rel_dir}/"
            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in IGNORED_DIRS and not _is_excluded(f"{prefix}{name}", exclude)
            )
            for filename in sorted(filenames):
                if not filename.endswith(".py"):
                    continue
                rel_path = _relative_posix(current / filename, repo_root)
                if rel_path is None or _is_excluded(rel_path, exclude):
                    continue
                collected.add(rel_path)
    return sorted(collected)


def _is_excluded(rel_path: str, exclude: Sequence[str]) -> bool:
    for pattern in exclude:
        if rel_path == pattern or rel_path.startswith(f"{pattern}/"):
            return True
        if fnmatch.fnmatchcase(rel_path, pattern):
            return True
    return False


def _relative_posix(path: Path, repo_root: Path) -> str | None:
    try:
        relative = path.resolve().relative_to(repo_root)
    except ValueError:
        return None
    rendered = relative.as_posix()
    return "." if rendered == "" else rendered


def _normalize_inputs(values: Sequence[str]) -> tuple[str, ...]:
    normalized: list[str] = []
    for value in values:
        item = value.strip().replace("\\", "/").rstrip("/")
        if item.startswith("./") and len(item) > 2:
            item = item[2:]
        if item and item not in normalized:
            normalized.append(item)
    return tuple(normalized)


def _format_section(title: str, findings: Sequence[Finding]) -> list[str]:
    lines = [f"{title} ({len(findings)})"]
    if not findings:
        lines.append("  (none)")
        return lines
    for item in findings:
        lines.append(f"- {item.path}:{item.line}:{item.col} [{item.kind}] {item.detail}")
        if item.snippet:
            lines.append(f"    {item.snippet}")
    return lines


def _format_reason(item: ResolvedReason) -> str:
    if item.reason is None:
        return f"? {item.expression} (unresolved)"
    reason = item.reason
    details: list[str] = []
    if reason.owners:
        details.append("owners=" + ",".join(reason.owners))
    if reason.bugs:
        details.append("bugs=" + ",".join(reason.bugs))
    if reason.links:
        details.append("links=" + ",".join(reason.links))
    if reason.tags:
        details.append("tags=" + ",".join(f"{key}:{value}" for key, value in reason.tags))
    if reason.messages:
        details.append(f"messages={len(reason.messages)}")
    marker = "" if item.catalogued else " (not in catalog)"
    suffix = f" [{'; '.join(details)}]" if details else ""
    return f"{reason.id}{marker}{suffix}"


def _line_text(lines: Sequence[str], line: int) -> str:
    if 1 <= line <= len(lines):
        return lines[line - 1].strip()
    return ""


__all__ = [
    "AuditResult",
    "Finding",
    "ResolvedReason",
    "UnsafeSite",
    "format_json",
    "format_text",
    "run_unsafe_audit",
]
