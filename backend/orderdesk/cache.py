# Overview: In-process TTL cache used for read-side projections polled by the dashboard.

"""
Read-side cache.

Keys are plain strings. Parametrized keys (one per search term, per report
period, ...) are registered under a group when they are stored, so that a
whole family can be evicted without scanning the keyspace.

Entries always carry a TTL; the default (1 second) bounds staleness even
when an invalidation is missed.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class CacheEntry:
    value: Any
    expires_at: float
    group: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryCache:
    """Thread-safe dict-backed cache with per-entry TTL and key groups."""

    def __init__(self, default_ttl: int = 1):
        self.default_ttl = default_ttl
        self._entries: dict[str, CacheEntry] = {}
        self._groups: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def init_app(self, app) -> None:
        self.default_ttl = int(app.config.get("CACHE_DEFAULT_TTL_SECONDS", self.default_ttl))
        app.extensions["orderdesk_cache"] = self

    def get(self, key: str) -> Any:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                self._evict_key(key)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None, group: Optional[str] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._evict_key(key)
            self._entries[key] = CacheEntry(value=value, expires_at=time.monotonic() + ttl, group=group)
            if group:
                self._groups.setdefault(group, set()).add(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._evict_key(key)

    def delete_group(self, group: str) -> int:
        with self._lock:
            keys = self._groups.pop(group, set())
            for key in keys:
                self._entries.pop(key, None)
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._groups.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _evict_key(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        if entry.group:
            members = self._groups.get(entry.group)
            if members is not None:
                members.discard(key)
                if not members:
                    del self._groups[entry.group]
        return True
