"""
unsafety — justification record and builder combinators

File: src/unsafety/reason.py

Purpose
- Define ``UnsafeReason``, the immutable value that explains why a risky code
  region (ctypes/cffi calls, raw buffer reinterpretation, mmap register access)
  is acceptable.

Functional requirements
- Every combinator returns a new record; the receiver is never mutated.
- Attributes are append-only and keep application order.
- Repeated tag keys are all retained.
- Non-string attribute values are rejected where the expression is evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


class InvalidReasonError(TypeError):
    """Raised when a value cannot serve as (or inside) an ``UnsafeReason``."""


@dataclass(frozen=True, slots=True)
class UnsafeReason:
    """Annotation describing why a risky code region exists.

    ``UnsafeReason("ID")`` starts a record with no attributes. Derive
    specialised records from a shared base with the builder methods::

        FANCY_DRIVER = IMPLEMENTS_DEVICE_DRIVER.bug("NET-42").owner("netdev")
    """

    id: str
    owners: tuple[str, ...] = ()
    bugs: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    tags: tuple[tuple[str, str], ...] = ()
    messages: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _require_text(self.id, "id")
        if not self.id.strip():
            raise InvalidReasonError("reason id must be a non-empty string")
        for field_name in ("owners", "bugs", "links", "messages"):
            values = getattr(self, field_name)
            if not isinstance(values, tuple):
                raise InvalidReasonError(f"{field_name} must be a tuple of strings")
            for value in values:
                _require_text(value, field_name)
        if not isinstance(self.tags, tuple):
            raise InvalidReasonError("tags must be a tuple of (key, value) pairs")
        for pair in self.tags:
            if not isinstance(pair, tuple) or len(pair) != 2:
                raise InvalidReasonError("tags must be a tuple of (key, value) pairs")
            _require_text(pair[0], "tag key")
            _require_text(pair[1], "tag value")

    def owner(self, owner: str) -> UnsafeReason:
        """Name, user id or email address of an accountable owner."""

        _require_text(owner, "owner")
        return replace(self, owners=(*self.owners, owner))

    def bug(self, bug_id: str) -> UnsafeReason:
        """Bug-tracker reference, typically a URL or a ticket number."""

        _require_text(bug_id, "bug")
        return replace(self, bugs=(*self.bugs, bug_id))

    def link(self, url: str) -> UnsafeReason:
        """Link to a relevant document, such as a design doc."""

        _require_text(url, "link")
        return replace(self, links=(*self.links, url))

    def tag(self, key: str, value: str) -> UnsafeReason:
        """Arbitrary key-value pair. Repeating a key adds another entry."""

        _require_text(key, "tag key")
        _require_text(value, "tag value")
        return replace(self, tags=(*self.tags, (key, value)))

    def message(self, text: str) -> UnsafeReason:
        """Free-text note addressed to auditors rather than code readers."""

        _require_text(text, "message")
        return replace(self, messages=(*self.messages, text))

    def tag_values(self, key: str) -> tuple[str, ...]:
        return tuple(value for tag_key, value in self.tags if tag_key == key)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "owners": list(self.owners),
            "bugs": list(self.bugs),
            "links": list(self.links),
            "tags": [[key, value] for key, value in self.tags],
            "messages": list(self.messages),
        }


def _require_text(value: object, field_name: str) -> None:
    if not isinstance(value, str):
        raise InvalidReasonError(
            f"{field_name} must be a string literal, got {type(value).__name__}"
        )


__all__ = ["InvalidReasonError", "UnsafeReason"]
