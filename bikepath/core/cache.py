"""TTL cache for route search results.

A FIFO cache with TTL expiration over an injected backing store,
so a deployment can swap the process-local dict for a shared mapping.
Entries are evicted in insertion order once ``max_size`` is reached; a
hit does not refresh an entry.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from typing import Any, Callable, MutableMapping, Optional

logger = logging.getLogger("bikepath.core.cache")


class TTLCache:
    """Bounded cache with per-entry expiry."""

    def __init__(
        self,
        max_size: int = 256,
        ttl_seconds: float = 300,
        store: Optional[MutableMapping[str, tuple[Any, float]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_size = max_size
        self.ttl = ttl_seconds
        self._store = store if store is not None else {}
        self._clock = clock

    @staticmethod
    def _normalize(key: str) -> str:
        """Normalize a query key so spacing and case do not split entries."""
        text = key.lower().strip()
        text = re.sub(r"\s+", " ", text)
        return text

    @staticmethod
    def _hash(text: str) -> str:
        return hashlib.sha256(text.encode()).hexdigest()[:16]

    def make_key(self, *parts: Any) -> str:
        """Build a cache key from query parts (``None`` renders as empty)."""
        joined = "|".join("" if p is None else str(p) for p in parts)
        return self._hash(self._normalize(joined))

    def get(self, key: str) -> Optional[Any]:
        """Look up a cached value. Returns None on miss or expiry."""
        entry = self._store.get(key)
        if entry is None:
            return None
        value, ts = entry
        if self._clock() - ts > self.ttl:
            del self._store[key]
            return None
        logger.debug("Cache hit for key: %s", key)
        return value

    def put(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest entry when full."""
        if key not in self._store and len(self._store) >= self.max_size:
            oldest_key = min(self._store, key=lambda k: self._store[k][1])
            del self._store[oldest_key]
        self._store[key] = (value, self._clock())

    def invalidate(self) -> None:
        """Clear all cached entries."""
        self._store.clear()
        logger.info("Route search cache cleared")

    @property
    def size(self) -> int:
        return len(self._store)
