"""Load-time registry of definitions annotated with ``@unsafe_because``."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from unsafety.reason import UnsafeReason


@dataclass(frozen=True, slots=True)
class RegisteredSite:
    module: str
    qualname: str
    filename: str
    lineno: int
    reasons: tuple[UnsafeReason, ...]

    @property
    def reason_ids(self) -> tuple[str, ...]:
        return tuple(reason.id for reason in self.reasons)

    def to_dict(self) -> dict[str, object]:
        return {
            "module": self.module,
            "qualname": self.qualname,
            "filename": self.filename,
            "lineno": self.lineno,
            "reasons": [reason.to_dict() for reason in self.reasons],
        }


class UnsafeRegistry:
    """Append-only record of annotated definitions.

    Entries are written once per definition site, when the decorated
    definition is first executed (normally at import), and only read afterwards.
    Re-executing the same ``def`` (a nested definition, a reload) is a no-op.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sites: dict[tuple[str, int, str], RegisteredSite] = {}

    def record(self, site: RegisteredSite) -> bool:
        """Store ``site``; return ``False`` when its location is already known."""

        key = (site.filename, site.lineno, site.qualname)
        with self._lock:
            if key in self._sites:
                return False
            self._sites[key] = site
            return True

    def sites(self) -> tuple[RegisteredSite, ...]:
        with self._lock:
            snapshot = list(self._sites.items())
        return tuple(site for _, site in sorted(snapshot, key=lambda item: item[0]))

    def for_reason(self, reason_id: str) -> tuple[RegisteredSite, ...]:
        return tuple(site for site in self.sites() if reason_id in site.reason_ids)

    def clear(self) -> None:
        with self._lock:
            self._sites.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sites)


REGISTRY = UnsafeRegistry()


def registered_sites() -> tuple[RegisteredSite, ...]:
    return REGISTRY.sites()


__all__ = ["REGISTRY", "RegisteredSite", "UnsafeRegistry", "registered_sites"]
