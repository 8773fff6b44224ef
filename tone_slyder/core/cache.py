"""
Response cache for request deduplication.

Process-local key/value store with per-entry expiry. Expired entries are
dropped lazily on read and by a sweep that runs on access once the sweep
interval has elapsed.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600
DEFAULT_SWEEP_INTERVAL_SECONDS = 300


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its absolute expiry time."""
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResponseCache:
    """Thread-safe TTL cache.

    Entries are never updated in place; a set for an existing key replaces
    the entry, so the later write wins.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be > 0")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be > 0")
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._last_sweep = clock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        now = self._clock()
        self._maybe_sweep(now)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        now = self._clock()
        self._maybe_sweep(now)
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove every expired entry.

        Returns how many entries were removed.
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._last_sweep = now
        if expired:
            logger.debug("Cache sweep removed %d entries, %d remaining", len(expired), len(self))
        return len(expired)

    def _maybe_sweep(self, now: float) -> None:
        with self._lock:
            due = now - self._last_sweep >= self.sweep_interval
        if due:
            self.sweep()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
