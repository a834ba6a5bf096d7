"""Tri-state markers for enrichable catalog fields.

Every enrichable field (product code, platform, support language) is in
exactly one of three states:

- ``UNKNOWN``: never attempted. Stored as ``null`` (or omitted) on disk.
- ``EMPTY``: attempted and confirmed absent. Stored as ``""`` on disk and
  never retried.
- ``PRESENT``: a real value.

A fetch may only move a field out of ``UNKNOWN``. ``Sentinel.advance`` is the
single place that transition is decided.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

__all__ = [
    'Sentinel',
    'SentinelState',
]


class SentinelState(Enum):
    """State of one enrichable field."""

    UNKNOWN = "unknown"
    EMPTY = "empty"
    PRESENT = "present"


@dataclass(frozen=True)
class Sentinel:
    """Immutable field value tagged with its sentinel state."""

    state: SentinelState
    value: Optional[str] = None

    @classmethod
    def unknown(cls) -> 'Sentinel':
        return cls(SentinelState.UNKNOWN)

    @classmethod
    def empty(cls) -> 'Sentinel':
        return cls(SentinelState.EMPTY)

    @classmethod
    def present(cls, value: str) -> 'Sentinel':
        text = str(value).strip()
        if not text:
            raise ValueError("present sentinel requires a non-blank value")
        return cls(SentinelState.PRESENT, text)

    @classmethod
    def from_stored(cls, raw: Any) -> 'Sentinel':
        """Decode a value read back from a master file.

        ``None`` means never attempted and ``""`` is the confirmed-absent
        marker written by an earlier run.
        """
        if raw is None:
            return cls.unknown()
        text = str(raw).strip()
        if not text:
            return cls.empty()
        return cls(SentinelState.PRESENT, text)

    @classmethod
    def from_fresh(cls, raw: Any) -> 'Sentinel':
        """Decode a value from a freshly gathered source file.

        Source adapters emit blanks for "not provided", which carries no
        information, so a blank is ``UNKNOWN`` rather than ``EMPTY``.
        """
        if raw is None:
            return cls.unknown()
        text = str(raw).strip()
        if not text:
            return cls.unknown()
        return cls(SentinelState.PRESENT, text)

    @property
    def is_unknown(self) -> bool:
        return self.state is SentinelState.UNKNOWN

    @property
    def is_empty(self) -> bool:
        return self.state is SentinelState.EMPTY

    @property
    def is_present(self) -> bool:
        return self.state is SentinelState.PRESENT

    def to_stored(self) -> Optional[str]:
        """Encode for a master file (inverse of ``from_stored``)."""
        if self.state is SentinelState.PRESENT:
            return self.value
        if self.state is SentinelState.EMPTY:
            return ""
        return None

    def overlay(self, fresh: 'Sentinel') -> 'Sentinel':
        """Non-destructive overlay of a fresh source value onto a known one.

        A real fresh value replaces the current one. Anything else leaves the
        current state untouched, so a blank listing can never downgrade an
        ``EMPTY`` marker or erase a ``PRESENT`` value.
        """
        if fresh.is_present:
            return fresh
        return self

    def advance(self, found: Optional[str]) -> 'Sentinel':
        """Apply the result of a completed lookup.

        Only an ``UNKNOWN`` field moves: to ``PRESENT`` when the lookup found
        a value, to ``EMPTY`` when it confirmed there is none.
        """
        if not self.is_unknown:
            return self
        if found is not None and str(found).strip():
            return Sentinel.present(found)
        return Sentinel.empty()

    def __str__(self) -> str:
        if self.state is SentinelState.PRESENT:
            return self.value
        return f"<{self.state.value}>"
