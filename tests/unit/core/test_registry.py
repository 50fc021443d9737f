"""Unit tests for the load-time registry of annotated definitions."""

from __future__ import annotations

import threading

from unsafety import PERFORMANCE, USES_FOREIGN_CODE, RegisteredSite, UnsafeRegistry


def _site(qualname: str, lineno: int, *reasons) -> RegisteredSite:
    return RegisteredSite(
        module="pkg.mod",
        qualname=qualname,
        filename="pkg/mod.py",
        lineno=lineno,
        reasons=tuple(reasons),
    )


def test_sites_are_returned_in_source_order() -> None:
    registry = UnsafeRegistry()
    registry.record(_site("late", 40, PERFORMANCE))
    registry.record(_site("early", 3, USES_FOREIGN_CODE))

    assert [site.qualname for site in registry.sites()] == ["early", "late"]
    assert len(registry) == 2


def test_for_reason_filters_by_id() -> None:
    registry = UnsafeRegistry()
    registry.record(_site("a", 1, PERFORMANCE))
    registry.record(_site("b", 2, USES_FOREIGN_CODE, PERFORMANCE.owner("x")))
    registry.record(_site("c", 3, USES_FOREIGN_CODE))

    assert [site.qualname for site in registry.for_reason("PERFORMANCE")] == ["a", "b"]


def test_clear_empties_registry() -> None:
    registry = UnsafeRegistry()
    registry.record(_site("a", 1, PERFORMANCE))
    registry.clear()

    assert registry.sites() == ()
    assert len(registry) == 0


def test_concurrent_records_are_all_kept() -> None:
    registry = UnsafeRegistry()

    def worker(offset: int) -> None:
        for index in range(50):
            registry.record(_site(f"f{offset}_{index}", offset * 100 + index, PERFORMANCE))

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 200


def test_site_to_dict_includes_reason_payloads() -> None:
    payload = _site("a", 1, PERFORMANCE.owner("alice")).to_dict()

    assert payload["qualname"] == "a"
    assert payload["reasons"] == [PERFORMANCE.owner("alice").to_dict()]


def test_recording_the_same_location_twice_keeps_one_entry() -> None:
    registry = UnsafeRegistry()

    assert registry.record(_site("a", 1, PERFORMANCE)) is True
    assert registry.record(_site("a", 1, PERFORMANCE)) is False
    assert registry.record(_site("a", 2, PERFORMANCE)) is True
    assert len(registry) == 2
