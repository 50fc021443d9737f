"""
unsafety — unit tests for the static unsafe-region audit

File: tests/unit/audit/test_unsafe_audit.py

Purpose
- Verify site discovery for every wrap form, static reason resolution across
  modules, classification of malformed annotations, and stable output.

What this test file should cover
- Block, expression, definition, and bare forms, including import aliases.
- Combinator chains, module constants, relative and absolute imports.
- ERROR vs WARNING classification for malformed or dynamic reasons.
- Deterministic ordering and JSON payload shape.
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

from unsafety import PERFORMANCE, ReasonCatalog
from unsafety.audit import AuditResult, format_json, format_text, run_unsafe_audit


def _write(root: Path, rel_path: str, text: str) -> None:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")


def _scan(root: Path, **kwargs: object) -> AuditResult:
    kwargs.setdefault("roots", ("src",))
    kwargs.setdefault("exclude", ())
    return run_unsafe_audit(repo_root=root, **kwargs)  # type: ignore[arg-type]


def _kinds(result: AuditResult, severity: str) -> list[str]:
    return [item.kind for item in result.findings if item.severity == severity]


def test_discovers_every_wrap_form_with_scope(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/pkg/driver.py",
        """
        from unsafety import IMPLEMENTS_DEVICE_DRIVER, PERFORMANCE, unsafe_because

        FANCY = IMPLEMENTS_DEVICE_DRIVER.bug("NET-42").owner("foo").owner("bar")


        @unsafe_because(FANCY)
        def poke(mmio, offset, value):
            with unsafe_because([PERFORMANCE, FANCY]):
                mmio[offset] = value


        class Ring:
            def read(self, fn):
                return unsafe_because(PERFORMANCE).run(fn)
        """,
    )

    result = _scan(tmp_path)

    assert result.findings == ()
    assert [(site.form, site.scope, site.line) for site in result.sites] == [
        ("definition", "poke", 6),
        ("block", "poke", 8),
        ("expression", "Ring.read", 14),
    ]
    definition = result.sites[0].reasons[0].reason
    assert definition is not None
    assert definition.id == "IMPLEMENTS_DEVICE_DRIVER"
    assert definition.bugs == ("NET-42",)
    assert definition.owners == ("foo", "bar")
    assert result.sites[1].reason_ids == ("PERFORMANCE", "IMPLEMENTS_DEVICE_DRIVER")
    assert all(item.catalogued for site in result.sites for item in site.reasons)


def test_follows_module_and_alias_imports(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/tool.py",
        """
        import unsafety
        import unsafety as u
        from unsafety import unsafe_because as ub

        marker = ub(u.catalog.USES_FOREIGN_CODE.tag("abi", "cdecl"))

        with unsafety.unsafe_because(unsafety.USES_VECTOR_INTRINSICS):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert result.findings == ()
    assert [(site.form, site.reason_ids) for site in result.sites] == [
        ("bare", ("USES_FOREIGN_CODE",)),
        ("block", ("USES_VECTOR_INTRINSICS",)),
    ]
    reason = result.sites[0].reasons[0].reason
    assert reason is not None
    assert reason.tags == (("abi", "cdecl"),)


def test_star_import_resolves_wrap_and_catalog_names(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/star.py",
        """
        from unsafety import *

        with unsafe_because(IMPLEMENTS_MEMORY_MANAGER):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert result.findings == ()
    assert result.sites[0].reason_ids == ("IMPLEMENTS_MEMORY_MANAGER",)


def test_resolves_constants_across_modules(tmp_path: Path) -> None:
    _write(tmp_path, "src/pkg/__init__.py", "")
    _write(
        tmp_path,
        "src/pkg/reasons.py",
        """
        from unsafety import USES_FOREIGN_CODE, UnsafeReason

        CUSTOM = UnsafeReason("USES_GPU_DRIVER").owner("gpu-team")
        SHARED = USES_FOREIGN_CODE.link("https://docs.example/ffi")
        """,
    )
    _write(
        tmp_path,
        "src/pkg/use.py",
        """
        from unsafety import unsafe_because
        from .reasons import CUSTOM
        from pkg.reasons import SHARED

        with unsafe_because([CUSTOM, SHARED]):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert result.findings == ()
    (site,) = result.sites
    assert site.path == "src/pkg/use.py"
    assert site.scope == "<module>"
    assert site.reason_ids == ("USES_GPU_DRIVER", "USES_FOREIGN_CODE")
    custom, shared = site.reasons
    assert custom.reason is not None and custom.reason.owners == ("gpu-team",)
    assert shared.reason is not None and shared.reason.links == ("https://docs.example/ffi",)
    assert custom.catalogued is False
    assert shared.catalogued is True


def test_project_catalog_marks_custom_reason_as_catalogued(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/gpu.py",
        """
        from unsafety import UnsafeReason, unsafe_because

        with unsafe_because(UnsafeReason("USES_GPU_DRIVER")):
            pass
        """,
    )
    catalog = ReasonCatalog.standard().extend("USES_GPU_DRIVER")

    result = _scan(tmp_path, catalog=catalog)

    assert result.sites[0].reasons[0].catalogued is True


def test_malformed_annotations_are_classified(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/bad.py",
        """
        import unsafety as u
        from unsafety import PERFORMANCE, unsafe_because

        NAME = "alice"


        def region(dynamic):
            with unsafe_because([]):
                pass
            with unsafe_because(PERFORMANCE.owner(NAME)):
                pass
            with u.unsafe_because(PERFORMANCE.frobnicate("x")):
                pass
            with unsafe_because(42):
                pass
            with unsafe_because(dynamic):
                pass
            with unsafe_because():
                pass
            with unsafe_because(PERFORMANCE.tag("only-key")):
                pass
        """,
    )

    result = _scan(tmp_path)

    assert sorted(_kinds(result, "ERROR")) == [
        "empty_reason_list",
        "invalid_reason_expression",
        "invalid_reason_expression",
        "missing_reason",
        "non_constant_attribute",
        "unknown_combinator",
    ]
    assert _kinds(result, "WARNING") == ["unresolved_reason"]
    assert result.error_count == 6
    assert result.warning_count == 1
    assert len(result.sites) == 7
    assert [finding.line for finding in result.findings if finding.severity == "ERROR"] == [
        8,
        10,
        12,
        14,
        18,
        20,
    ]


def test_non_literal_reason_id_is_an_error(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/ids.py",
        """
        from unsafety import UnsafeReason, unsafe_because

        PREFIX = "USES"
        DYNAMIC = UnsafeReason(PREFIX + "_FOREIGN_CODE")
        EMPTY = UnsafeReason("")

        with unsafe_because(DYNAMIC):
            pass
        with unsafe_because(EMPTY):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert _kinds(result, "ERROR") == ["non_constant_attribute", "invalid_reason_expression"]


def test_constants_used_before_assignment_are_unresolved(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/loop.py",
        """
        from unsafety import unsafe_because

        A = B
        B = A

        with unsafe_because(A):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert _kinds(result, "WARNING") == ["unresolved_reason"]
    assert "used before it is assigned" in result.findings[0].detail
    assert result.sites[0].reasons[0].reason is None


def test_circular_imports_are_reported_as_unresolved(tmp_path: Path) -> None:
    _write(tmp_path, "src/left.py", "from right import RIGHT as LEFT\n")
    _write(tmp_path, "src/right.py", "from left import LEFT as RIGHT\n")
    _write(
        tmp_path,
        "src/use.py",
        """
        from unsafety import unsafe_because
        from left import LEFT

        with unsafe_because(LEFT):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert _kinds(result, "WARNING") == ["unresolved_reason"]
    assert "Circular definition" in result.findings[0].detail


def test_rebound_constant_resolves_to_its_previous_value(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/rebind.py",
        """
        from unsafety import PERFORMANCE, unsafe_because

        R = PERFORMANCE
        R = R.owner("alice")
        R = R.message("hot loop")
        EARLY = PERFORMANCE.bug("b/1")
        LATE = EARLY
        EARLY = EARLY.owner("bob")

        with unsafe_because([R, LATE]):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert result.findings == ()
    rebound, late = result.sites[0].reasons
    assert rebound.reason == PERFORMANCE.owner("alice").message("hot loop")
    assert late.reason == PERFORMANCE.bug("b/1")


def test_syntax_errors_are_warnings_and_do_not_stop_the_scan(tmp_path: Path) -> None:
    _write(tmp_path, "src/broken.py", "def broken(:\n    pass\n")
    _write(
        tmp_path,
        "src/fine.py",
        """
        from unsafety import PERFORMANCE, unsafe_because

        with unsafe_because(PERFORMANCE):
            pass
        """,
    )

    result = _scan(tmp_path)

    assert _kinds(result, "WARNING") == ["syntax_error"]
    assert result.scanned_files == ("src/broken.py", "src/fine.py")
    assert len(result.sites) == 1


def test_unrelated_calls_are_not_sites(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/plain.py",
        """
        import contextlib


        def unrelated():
            with contextlib.suppress(KeyError):
                print("hello")
            return sorted([3, 1])
        """,
    )

    result = _scan(tmp_path)

    assert result.sites == ()
    assert result.findings == ()


def test_exclusions_and_ignored_directories_are_skipped(tmp_path: Path) -> None:
    source = """
    from unsafety import PERFORMANCE, unsafe_because

    with unsafe_because(PERFORMANCE):
        pass
    """
    _write(tmp_path, "src/keep.py", source)
    _write(tmp_path, "src/skip/drop.py", source)
    _write(tmp_path, "src/__pycache__/cached.py", source)
    _write(tmp_path, "src/notes.txt", "unsafe_because([])\n")

    result = _scan(tmp_path, exclude=("src/skip",))

    assert result.scanned_files == ("src/keep.py",)
    assert [site.path for site in result.sites] == ["src/keep.py"]


def test_output_is_deterministic_and_serializable(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "src/a.py",
        """
        from unsafety import PERFORMANCE, unsafe_because

        with unsafe_because([]):
            pass
        with unsafe_because(PERFORMANCE.owner("alice").message("checked bounds")):
            pass
        """,
    )

    first = _scan(tmp_path)
    second = _scan(tmp_path)

    assert format_json(first) == format_json(second)
    payload = json.loads(format_json(first))
    assert payload["schema_version"] == 1
    assert payload["summary"]["site_count"] == 2
    assert payload["summary"]["error_count"] == 1
    assert payload["findings"][0]["severity"] == "error"
    assert payload["sites"][1]["reasons"][0]["reason"]["owners"] == ["alice"]

    rendered = format_text(first)
    assert "ERRORS (fail build) (1)" in rendered
    assert "[empty_reason_list]" in rendered
    assert "PERFORMANCE [owners=alice; messages=1]" in rendered
    assert rendered.rstrip().endswith("sites=2 errors=1 warnings=0 scanned_files=1")
