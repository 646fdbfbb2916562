"""
Key/value cache with per-entry expiry for risk lookups.

InMemoryTTLCache is process-local. Multi-instance deployments should pass a
shared backend implementing the same two coroutines into RiskService.
"""
import time
from typing import Any, Optional, Protocol


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...


class InMemoryTTLCache:
    def __init__(self, ttl_seconds: float, clock=time.monotonic, max_entries: int = 10_000):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict = {}

    async def get(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value) -> None:
        # Last write wins; values are pure functions of the key
        if len(self._entries) >= self._max_entries:
            self._evict_expired()
        if len(self._entries) >= self._max_entries:
            self._entries.pop(next(iter(self._entries)))
        self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def _evict_expired(self):
        now = self._clock()
        for key in [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]:
            del self._entries[key]

    def __len__(self):
        return len(self._entries)
