"""
unsafety — validator and wrap construct

File: src/unsafety/wrap.py

Purpose
- Associate one or more ``UnsafeReason`` values with a risky code region while
  leaving the region's behavior untouched.

Usage
- Block form::

      with unsafe_because(USES_FOREIGN_CODE):
          handle = libfoo.foo_open(path)

- Expression form (the result is exactly the callable's result)::

      value = unsafe_because([PERFORMANCE, USES_VECTOR_INTRINSICS]).run(dot, a, b)

- Definition form (the same object is returned, no wrapper frame)::

      @unsafe_because(IMPLEMENTS_DEVICE_DRIVER.owner("netdev"))
      def poke_register(mmio, offset, value): ...

Functional requirements
- Reasons are validated when the construct is evaluated, before the region runs.
- An empty reason list is rejected.
- No exception translation, retries, or added return values.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Literal, ParamSpec, TypeVar

from unsafety.constants import REASON_ATTRIBUTE
from unsafety.reason import InvalidReasonError, UnsafeReason
from unsafety.registry import REGISTRY, RegisteredSite, UnsafeRegistry

P = ParamSpec("P")
R = TypeVar("R")
T = TypeVar("T")

ReasonsInput = UnsafeReason | list[UnsafeReason] | tuple[UnsafeReason, ...]


class EmptyReasonListError(ValueError):
    """Raised when ``unsafe_because`` receives an empty list of reasons."""


def unsafe_reason(reason: UnsafeReason) -> None:
    """Accept a reason and do nothing with it.

    Exists only so the wrap construct has a call target whose signature makes a
    malformed reason expression fail before the region runs.
    """

    if not isinstance(reason, UnsafeReason):
        raise InvalidReasonError(
            f"expected an UnsafeReason, got {type(reason).__name__}: {reason!r}"
        )


@dataclass(frozen=True, slots=True)
class UnsafeBlock:
    """Validated reasons bound to a region; see module docstring for the forms."""

    reasons: tuple[UnsafeReason, ...]
    registry: UnsafeRegistry = REGISTRY

    def __post_init__(self) -> None:
        if not isinstance(self.reasons, (list, tuple)):
            raise InvalidReasonError(
                f"reasons must be a list or tuple, got {type(self.reasons).__name__}"
            )
        if not self.reasons:
            raise EmptyReasonListError("unsafe_because requires at least one reason")
        for reason in self.reasons:
            unsafe_reason(reason)
        object.__setattr__(self, "reasons", tuple(self.reasons))

    def __enter__(self) -> None:
        return None

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        return False

    def run(self, region: Callable[P, R], /, *args: P.args, **kwargs: P.kwargs) -> R:
        return region(*args, **kwargs)

    def __call__(self, definition: T) -> T:
        self.registry.record(_site_for(definition, self.reasons))
        try:
            setattr(definition, REASON_ATTRIBUTE, self.reasons)
        except (AttributeError, TypeError):
            # Builtins and slotted objects carry their reasons in the registry only.
            pass
        return definition


def unsafe_because(reasons: ReasonsInput, /) -> UnsafeBlock:
    """Validate ``reasons`` and return the construct that wraps the region."""

    if isinstance(reasons, (list, tuple)):
        return UnsafeBlock(reasons=tuple(reasons))
    return UnsafeBlock(reasons=(reasons,))


def reasons_of(definition: object) -> tuple[UnsafeReason, ...]:
    """Reasons attached to ``definition`` itself by the decorator form, or ``()``.

    Only the object's own namespace is consulted, so an undecorated subclass
    does not report the reasons of its decorated base.
    """

    namespace = getattr(definition, "__dict__", None)
    if namespace is None:
        return ()
    attached = namespace.get(REASON_ATTRIBUTE, ())
    return attached if isinstance(attached, tuple) else ()


def _site_for(definition: object, reasons: tuple[UnsafeReason, ...]) -> RegisteredSite:
    target = getattr(definition, "__func__", definition)
    module = getattr(target, "__module__", None) or "<unknown>"
    qualname = getattr(target, "__qualname__", None) or repr(target)

    code = getattr(target, "__code__", None)
    if code is not None:
        return RegisteredSite(
            module=module,
            qualname=qualname,
            filename=code.co_filename,
            lineno=code.co_firstlineno,
            reasons=reasons,
        )

    filename = "<unknown>"
    lineno = 0
    try:
        filename = inspect.getsourcefile(target) or filename  # type: ignore[arg-type]
        lineno = inspect.getsourcelines(target)[1]  # type: ignore[arg-type]
    except (OSError, TypeError):
        pass
    return RegisteredSite(
        module=module, qualname=qualname, filename=filename, lineno=lineno, reasons=reasons
    )


__all__ = [
    "EmptyReasonListError",
    "UnsafeBlock",
    "reasons_of",
    "unsafe_because",
    "unsafe_reason",
]
