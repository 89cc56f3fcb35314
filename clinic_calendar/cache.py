"""Explicit TTL cache with least-recently-used eviction."""

import json
import logging
import time
from collections import OrderedDict
from datetime import date, datetime
from typing import Any, Callable, Generic, NamedTuple, Optional, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

V = TypeVar("V")


class _Entry(NamedTuple):
    value: Any
    expires_at: float


class CacheStats(BaseModel):
    """Point-in-time cache counters."""

    namespace: str
    size: int
    hits: int
    misses: int
    hit_rate: float


class TTLCache(Generic[V]):
    """Bounded cache whose entries expire after a time-to-live.

    The clock is injected so expiry can be driven deterministically; it
    must return seconds as a float and never go backwards.
    """

    def __init__(
        self,
        namespace: str = "calendar",
        max_size: int = 100,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.namespace = namespace
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        now = self._clock()
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("LRU eviction %s:%s", self.namespace, evicted)
        self._entries[key] = _Entry(value, now + (ttl if ttl is not None else self.default_ttl))

    def get(self, key: str) -> Optional[V]:
        """Return the live value for *key*, or ``None`` on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache expired %s:%s", self.namespace, key)
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.expires_at > self._clock()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with *prefix*; returns the count."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
        logger.debug("Cache cleared: %s", self.namespace)

    def evict_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired entries from %s", len(expired), self.namespace)
        return len(expired)

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            namespace=self.namespace,
            size=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / total if total else 0.0,
        )

    @staticmethod
    def make_key(*parts: Any) -> str:
        """Join *parts* into a key; dates use ISO format, mappings JSON."""
        rendered = []
        for part in parts:
            if isinstance(part, (datetime, date)):
                rendered.append(part.isoformat())
            elif isinstance(part, BaseModel):
                rendered.append(part.model_dump_json())
            elif isinstance(part, (dict, list, tuple)):
                rendered.append(json.dumps(part, sort_keys=True, default=str))
            else:
                rendered.append(str(part))
        return ":".join(rendered)
