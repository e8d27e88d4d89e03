from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Any
    timestamp: float


def make_key(operation: str, *params: object) -> str:
    """Deterministic cache key: operation name followed by every parameter.

    Backslashes and ":" inside parameters are escaped so parts never merge.
    """
    return ":".join([operation, *(_escape_key_part(str(p)) for p in params)])


def _escape_key_part(part: str) -> str:
    return part.replace("\\", "\\\\").replace(":", "\\:")


class ResponseCache:
    """
    Time-boxed memo of parsed results, keyed by operation + parameters.

    Entries are never updated in place; set() replaces the whole entry.
    Expired entries stay until the next set() for the same key supersedes them.
    """

    def __init__(self, ttl_sec: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = float(ttl_sec)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return cached data, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp < self._ttl:
            return entry.data
        return None

    def set(self, key: str, data: Any) -> None:
        entry = CacheEntry(key=key, data=data, timestamp=self._clock())
        with self._lock:
            self._entries[key] = entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
