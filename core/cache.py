"""Time-bounded key/value cache used for price quotes and market lookups."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

_HEX_ID = re.compile(r"0x[0-9a-fA-F]+")


def _fold(part: str) -> str:
    # Base58 mints and other ids are case-sensitive.
    return part.lower() if _HEX_ID.fullmatch(part) else part


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float


class TTLCache(Generic[T]):
    """Keyed map whose entries are ignored once older than ``ttl_seconds``.

    Stale entries are never evicted; they are simply overwritten by the next
    fetch. Writers are not serialized, concurrent writes for the
    same key are last-write-wins.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    @staticmethod
    def key(source: str, *parts: Any) -> str:
        """Join key parts; only ``0x`` hex identifiers are case-folded."""

        return ":".join([source, *(_fold(str(p)) for p in parts)])

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl:
            return None
        return entry.value

    def set(self, key: str, value: T) -> T:
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())
        return value

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CacheEntry", "TTLCache"]
