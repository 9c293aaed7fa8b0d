"""In-memory TTL caches used to memoize upstream responses."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple


class _Miss:
    """Sentinel type returned by ``TTLCache.get`` when nothing usable is stored."""

    _instance: Optional["_Miss"] = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


class TTLCache:
    """Key/value store whose entries expire a fixed number of seconds after ``set``.

    Expired entries are only dropped when looked up. The event loop runs every
    coroutine on one thread and each method here completes without awaiting,
    so per-key get/set are atomic with respect to concurrent requests.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}  # key -> (value, expiry)

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        value, expiry = entry
        if self._clock() > expiry:
            del self._entries[key]
            return MISS
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock() + self.ttl)

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)


def generate_cache_key(operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build a key from an operation name and its parameters, independent of parameter order."""
    return f"{operation}:{json.dumps(dict(params or {}), sort_keys=True, default=str)}"


@dataclass
class CacheRegistry:
    """The three caches shared by every upstream adapter."""

    listings: TTLCache
    reference: TTLCache
    stats: TTLCache

    @classmethod
    def from_settings(cls, settings: Any, clock: Callable[[], float] = time.monotonic) -> "CacheRegistry":
        return cls(
            listings=TTLCache(settings.listings_cache_ttl, clock=clock),
            reference=TTLCache(settings.reference_cache_ttl, clock=clock),
            stats=TTLCache(settings.stats_cache_ttl, clock=clock),
        )

    def clear(self) -> None:
        self.listings.clear()
        self.reference.clear()
        self.stats.clear()

    def stats_snapshot(self) -> Dict[str, int]:
        return {
            "listings": self.listings.size(),
            "reference": self.reference.size(),
            "stats": self.stats.size(),
        }
