from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """Read-through cache whose entries expire a fixed time after they are stored.

    The clock is injectable so callers (and tests) control time. There is no
    eviction beyond expiry; keys are expected to come from a small set such
    as the employee-performance time filters.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at < self.ttl_seconds:
            return entry.value
        del self._entries[key]
        return None

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.set(key, value)
        return value
