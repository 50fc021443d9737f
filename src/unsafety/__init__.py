"""
unsafety — auditable justifications for risky code regions

Python code that calls into C through ``ctypes``/``cffi``, reinterprets raw
buffers, or pokes memory-mapped registers steps outside the interpreter's
safety guarantees. This package lets such regions say *why* they do so,
without changing what they do::

    from unsafety import USES_FOREIGN_CODE, unsafe_because

    with unsafe_because(USES_FOREIGN_CODE.owner("storage-team")):
        handle = libfoo.foo_open(path)

Reasons are immutable values. Derive project constants from the standard
catalog and reuse them::

    FANCY_NETWORK_DRIVER = (
        IMPLEMENTS_DEVICE_DRIVER.bug("NET-42").owner("alice").link("https://wiki/net")
    )

A region with more than one independent reason takes a list::

    total = unsafe_because([PERFORMANCE, USES_VECTOR_INTRINSICS]).run(simd_sum, buffer)

``python -m unsafety audit`` discovers every annotated region statically and
rejects malformed annotations. Deciding which reasons are acceptable where is
left to the consumers of its JSON inventory.

Importing this package has no side effects beyond defining the catalog
constants.
"""

from unsafety.catalog import (
    IMPLEMENTS_CONTAINER,
    IMPLEMENTS_DEVICE_DRIVER,
    IMPLEMENTS_MEMORY_MANAGER,
    IMPLEMENTS_SAFE_TRANSMUTE,
    PERFORMANCE,
    STANDARD_DESCRIPTIONS,
    STANDARD_REASONS,
    USED_BY_FOREIGN_CODE,
    USES_FOREIGN_CODE,
    USES_VECTOR_INTRINSICS,
    CatalogError,
    ReasonCatalog,
    load_catalog_file,
)
from unsafety.reason import InvalidReasonError, UnsafeReason
from unsafety.registry import REGISTRY, RegisteredSite, UnsafeRegistry, registered_sites
from unsafety.wrap import (
    EmptyReasonListError,
    UnsafeBlock,
    reasons_of,
    unsafe_because,
    unsafe_reason,
)

__version__ = "0.1.0"

__all__ = [
    "IMPLEMENTS_CONTAINER",
    "IMPLEMENTS_DEVICE_DRIVER",
    "IMPLEMENTS_MEMORY_MANAGER",
    "IMPLEMENTS_SAFE_TRANSMUTE",
    "PERFORMANCE",
    "REGISTRY",
    "STANDARD_DESCRIPTIONS",
    "STANDARD_REASONS",
    "USED_BY_FOREIGN_CODE",
    "USES_FOREIGN_CODE",
    "USES_VECTOR_INTRINSICS",
    "CatalogError",
    "EmptyReasonListError",
    "InvalidReasonError",
    "ReasonCatalog",
    "RegisteredSite",
    "UnsafeBlock",
    "UnsafeReason",
    "UnsafeRegistry",
    "__version__",
    "load_catalog_file",
    "reasons_of",
    "registered_sites",
    "unsafe_because",
    "unsafe_reason",
]
