from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


def cache_key(endpoint: str, options: Optional[Dict[str, Any]] = None) -> str:
    """Deterministic key for an (endpoint, options) pair."""
    serialized = json.dumps(options or {}, sort_keys=True, separators=(",", ":"), default=str)
    return f"{endpoint}-{serialized}"


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    timestamp: float


class ResponseCache:
    """Key to entry mapping with time-to-live staleness.

    Stale entries are ignored on lookup and replaced on the next store; they
    are never purged in the background.
    """

    def __init__(self, ttl: float, clock: Optional[Callable[[], float]] = None) -> None:
        self.ttl = float(ttl)
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> Optional[CacheEntry]:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.now() - entry.timestamp >= self.ttl:
            return None
        return entry

    def set(self, key: str, payload: Any) -> None:
        if not self.enabled:
            return
        self._entries[key] = CacheEntry(payload=payload, timestamp=self.now())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
