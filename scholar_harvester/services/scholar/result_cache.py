"""
In-process cache for final operation results.

TTL + LRU bounded map keyed by operation name and parameters. Expired entries
are dropped lazily on read and periodically by a daemon sweeper thread.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger('scholar_harvester.services.scholar.result_cache')


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl_seconds: float

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl_seconds


def make_key(operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    'search_publications:author="x"&query="y"'; parameter order does not matter.
    """
    items = sorted((params or {}).items())
    encoded = "&".join(f"{k}={json.dumps(v, sort_keys=True, default=str)}" for k, v in items)
    return f"{operation}:{encoded}"


class ResultCache:
    def __init__(
        self,
        *,
        enabled: bool = True,
        ttl_seconds: float = 3600.0,
        max_items: int = 512,
        sweep_interval_seconds: float = 60.0,
    ):
        self._enabled = bool(enabled)
        self._ttl = max(0.0, float(ttl_seconds))
        self._max_items = max(0, int(max_items))
        self._sweep_interval = max(0.1, float(sweep_interval_seconds))
        self._lock = threading.Lock()
        self._data: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @classmethod
    def from_settings(cls, settings: Any) -> "ResultCache":
        return cls(
            enabled=settings.cache_enabled,
            ttl_seconds=settings.cache_ttl_seconds,
            max_items=settings.cache_max_items,
            sweep_interval_seconds=settings.cache_sweep_interval_seconds,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled and self._max_items > 0

    make_key = staticmethod(make_key)

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None

        now = time.time()
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expired(now):
                self._data.pop(key, None)
                self._expirations += 1
                self._misses += 1
                return None
            self._data.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if not self.enabled:
            return

        ttl_seconds = self._ttl if ttl is None else max(0.0, float(ttl))
        entry = CacheEntry(key=key, value=value, created_at=time.time(), ttl_seconds=ttl_seconds)
        with self._lock:
            self._data[key] = entry
            self._data.move_to_end(key)
            while len(self._data) > self._max_items:
                self._data.popitem(last=False)
                self._evictions += 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = time.time()
        with self._lock:
            expired = [k for k, entry in self._data.items() if entry.expired(now)]
            for k in expired:
                del self._data[k]
            self._expirations += len(expired)
        if expired:
            logger.debug("Swept %s expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "enabled": self.enabled,
                "size": len(self._data),
                "max_items": self._max_items,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def start_sweeper(self) -> None:
        if not self.enabled:
            return
        with self._lock:
            if self._sweeper is not None and self._sweeper.is_alive():
                return
            self._stop.clear()
            self._sweeper = threading.Thread(target=self._sweep_loop, name="scholar-cache-sweeper", daemon=True)
            self._sweeper.start()

    def stop_sweeper(self, timeout: float = 1.0) -> None:
        self._stop.set()
        sweeper = self._sweeper
        if sweeper is not None:
            sweeper.join(timeout=timeout)
        self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            self.sweep()
