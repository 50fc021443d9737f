"""Canonical catalog of justification kinds and project-level extensions."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Final, TypeAlias, cast

import structlog
import yaml

from unsafety.constants import CATALOG_SCHEMA_VERSION
from unsafety.reason import UnsafeReason

PathLike: TypeAlias = str | os.PathLike[str]

_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Z][A-Z0-9_]*$")
_ALLOWED_ENTRY_FIELDS: Final[frozenset[str]] = frozenset({"id", "description"})

_logger = structlog.get_logger(__name__)


class CatalogError(ValueError):
    """Raised when a catalog entry or catalog file is invalid."""


USES_FOREIGN_CODE: Final[UnsafeReason] = UnsafeReason("USES_FOREIGN_CODE")
USED_BY_FOREIGN_CODE: Final[UnsafeReason] = UnsafeReason("USED_BY_FOREIGN_CODE")
PERFORMANCE: Final[UnsafeReason] = UnsafeReason("PERFORMANCE")
IMPLEMENTS_SAFE_TRANSMUTE: Final[UnsafeReason] = UnsafeReason("IMPLEMENTS_SAFE_TRANSMUTE")
IMPLEMENTS_CONTAINER: Final[UnsafeReason] = UnsafeReason("IMPLEMENTS_CONTAINER")
IMPLEMENTS_DEVICE_DRIVER: Final[UnsafeReason] = UnsafeReason("IMPLEMENTS_DEVICE_DRIVER")
IMPLEMENTS_MEMORY_MANAGER: Final[UnsafeReason] = UnsafeReason("IMPLEMENTS_MEMORY_MANAGER")
USES_VECTOR_INTRINSICS: Final[UnsafeReason] = UnsafeReason("USES_VECTOR_INTRINSICS")

STANDARD_REASONS: Final[Mapping[str, UnsafeReason]] = MappingProxyType(
    {
        reason.id: reason
        for reason in (
            USES_FOREIGN_CODE,
            USED_BY_FOREIGN_CODE,
            PERFORMANCE,
            IMPLEMENTS_SAFE_TRANSMUTE,
            IMPLEMENTS_CONTAINER,
            IMPLEMENTS_DEVICE_DRIVER,
            IMPLEMENTS_MEMORY_MANAGER,
            USES_VECTOR_INTRINSICS,
        )
    }
)

STANDARD_DESCRIPTIONS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "USES_FOREIGN_CODE": (
            "The region calls foreign code (a C library through ctypes or cffi, "
            "for example) whose memory handling the interpreter cannot verify."
        ),
        "USED_BY_FOREIGN_CODE": (
            "The region is invoked by foreign code, such as a C callback, and must "
            "exchange raw data and control flow with its caller correctly."
        ),
        "PERFORMANCE": (
            "The region implements a performance-critical algorithm and is itself "
            "responsible for the bounds and overflow checks it skips."
        ),
        "IMPLEMENTS_SAFE_TRANSMUTE": (
            "The region performs a legal reinterpretation of raw memory as another "
            "type that the type system cannot currently express."
        ),
        "IMPLEMENTS_CONTAINER": (
            "The region implements a low-level container or allocator primitive "
            "over raw buffers."
        ),
        "IMPLEMENTS_DEVICE_DRIVER": (
            "The region is part of a device driver and needs direct access to "
            "memory-mapped I/O registers."
        ),
        "IMPLEMENTS_MEMORY_MANAGER": (
            "The region is part of a memory manager such as a heap or page table. "
            "Containers use a memory manager but do not implement one, so they "
            "belong under IMPLEMENTS_CONTAINER instead."
        ),
        "USES_VECTOR_INTRINSICS": (
            "The region uses processor-specific intrinsics (SIMD and similar) that "
            "are not guaranteed to exist on every target processor."
        ),
    }
)


@dataclass(frozen=True, slots=True)
class ReasonCatalog:
    """Immutable name -> reason vocabulary; ``extend`` returns a new catalog."""

    entries: Mapping[str, UnsafeReason] = field(default_factory=dict)
    descriptions: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))
        object.__setattr__(self, "descriptions", MappingProxyType(dict(self.descriptions)))
        for name, reason in self.entries.items():
            if reason.id != name:
                raise CatalogError(f"catalog entry {name!r} has mismatched id {reason.id!r}")

    @classmethod
    def standard(cls) -> ReasonCatalog:
        return cls(entries=STANDARD_REASONS, descriptions=STANDARD_DESCRIPTIONS)

    def extend(self, name: str, description: str = "") -> ReasonCatalog:
        if not isinstance(name, str) or _NAME_PATTERN.fullmatch(name) is None:
            raise CatalogError(
                f"catalog entry name must be an upper-case identifier, got {name!r}"
            )
        if not isinstance(description, str):
            raise CatalogError(f"description for {name!r} must be a string")
        if name in self.entries:
            raise CatalogError(f"catalog entry {name!r} is already defined")
        return ReasonCatalog(
            entries={**self.entries, name: UnsafeReason(name)},
            descriptions={**self.descriptions, name: description},
        )

    def get(self, name: str) -> UnsafeReason | None:
        return self.entries.get(name)

    def describe(self, name: str) -> str:
        if name not in self.entries:
            raise KeyError(name)
        return self.descriptions.get(name, "")

    def to_dict(self) -> dict[str, object]:
        return {
            "schema_version": CATALOG_SCHEMA_VERSION,
            "reasons": [
                {"id": name, "description": self.descriptions.get(name, "")}
                for name in self
            ],
        }

    def __getitem__(self, name: str) -> UnsafeReason:
        return self.entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.entries))

    def __len__(self) -> int:
        return len(self.entries)


def load_catalog_file(path: PathLike, base: ReasonCatalog | None = None) -> ReasonCatalog:
    """Extend ``base`` (default: the standard catalog) with entries from a YAML file.

    Expected shape::

        schema_version: 1
        reasons:
          - id: USES_GPU_DRIVER
            description: Direct access to the GPU command ring.
    """

    resolved = Path(path)
    catalog = base if base is not None else ReasonCatalog.standard()
    try:
        with resolved.open("r", encoding="utf-8") as handle:
            loaded = cast("object", yaml.safe_load(handle))
    except OSError as exc:
        raise CatalogError(f"cannot read catalog file {resolved}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"invalid YAML in catalog file {resolved}: {exc}") from exc

    if loaded is None:
        return catalog
    if not isinstance(loaded, Mapping):
        raise CatalogError(f"{resolved}: top-level value must be a mapping")

    version = loaded.get("schema_version", CATALOG_SCHEMA_VERSION)
    if version != CATALOG_SCHEMA_VERSION:
        raise CatalogError(
            f"{resolved}: unsupported schema_version {version!r} "
            f"(expected {CATALOG_SCHEMA_VERSION})"
        )

    raw_entries = loaded.get("reasons", [])
    if not isinstance(raw_entries, list):
        raise CatalogError(f"{resolved}: 'reasons' must be a list")

    for index, raw in enumerate(raw_entries):
        location = f"{resolved}: reasons[{index}]"
        if not isinstance(raw, Mapping):
            raise CatalogError(f"{location} must be a mapping")
        unknown = sorted(str(key) for key in raw if key not in _ALLOWED_ENTRY_FIELDS)
        if unknown:
            raise CatalogError(f"{location} has unknown fields: {', '.join(unknown)}")
        if "id" not in raw:
            raise CatalogError(f"{location} is missing 'id'")
        try:
            catalog = catalog.extend(raw["id"], raw.get("description", ""))
        except CatalogError as exc:
            raise CatalogError(f"{location}: {exc}") from exc

    _logger.info("catalog_loaded", path=str(resolved), entries=len(catalog))
    return catalog


__all__ = [
    "IMPLEMENTS_CONTAINER",
    "IMPLEMENTS_DEVICE_DRIVER",
    "IMPLEMENTS_MEMORY_MANAGER",
    "IMPLEMENTS_SAFE_TRANSMUTE",
    "PERFORMANCE",
    "STANDARD_DESCRIPTIONS",
    "STANDARD_REASONS",
    "USED_BY_FOREIGN_CODE",
    "USES_FOREIGN_CODE",
    "USES_VECTOR_INTRINSICS",
    "CatalogError",
    "ReasonCatalog",
    "load_catalog_file",
]
