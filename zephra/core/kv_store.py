"""Key-value store with per-key expiry.

Rate-limit counters and CSRF tokens live behind this interface so that a
shared store (Redis, Upstash) can replace the in-memory implementation when
the API runs on more than one instance.
"""

import time
from collections.abc import Callable
from typing import Any, NamedTuple, Protocol

from cachetools import TLRUCache  # type: ignore[import-untyped]

# Upper bound on live keys; when full the entry closest to expiry is evicted
MAX_ENTRIES = 100_000


class KeyValueStore(Protocol):
    """Capabilities the application needs from a key-value store."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> None: ...

    def increment(self, key: str, ttl_seconds: float) -> int: ...


class _Entry(NamedTuple):
    value: Any
    expires_at: float


def _expires_at(_key: str, entry: _Entry, _now: float) -> float:
    return entry.expires_at


class InMemoryKeyValueStore:
    """Process-local store backed by a cachetools TLRUCache.

    Each entry carries its own absolute expiry. Expired entries are never
    returned and are purged whenever a key is written. Only safe for
    single-instance deployments.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int = MAX_ENTRIES,
    ) -> None:
        self._clock = clock
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=maxsize, ttu=_expires_at, timer=clock
        )

    def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._cache[key] = _Entry(value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def increment(self, key: str, ttl_seconds: float) -> int:
        """Increment a counter, starting a fresh TTL when the key is new or expired.

        An existing counter keeps its original expiry.
        """
        entry = self._cache.get(key)
        if entry is None:
            self._cache[key] = _Entry(1, self._clock() + ttl_seconds)
            return 1
        count = int(entry.value) + 1
        self._cache[key] = _Entry(count, entry.expires_at)
        return count

    def __len__(self) -> int:
        return len(self._cache)


_store: KeyValueStore = InMemoryKeyValueStore()


def get_kv_store() -> KeyValueStore:
    """Return the process-wide key-value store."""
    return _store


def set_kv_store(store: KeyValueStore) -> None:
    """Replace the process-wide key-value store (shared backends, tests)."""
    global _store
    _store = store
