"""Address -> coordinate cache shared by every pipeline in the process.

Keys are the lower-cased, trimmed address text. Concurrent pipelines may
populate the same key twice; the last write wins and both values are equal in
practice, so no locking is done.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass


@dataclass(frozen=True)
class GeocodeCacheEntry:
    lat: float
    lon: float
    resolved_address: str | None


def cache_key(address: str) -> str:
    return address.lower().strip()


class GeocodeCache:
    def __init__(self, max_entries: int | None = None) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[str, GeocodeCacheEntry] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: str) -> bool:
        return cache_key(address) in self._entries

    def get(self, address: str) -> GeocodeCacheEntry | None:
        key = cache_key(address)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        if self.max_entries is not None:
            self._entries.move_to_end(key)
        return entry

    def put(self, address: str, entry: GeocodeCacheEntry) -> None:
        key = cache_key(address)
        self._entries[key] = entry
        if self.max_entries is None:
            return
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0


# Process-lifetime cache reused across batch runs.
_SHARED_GEOCODE_CACHE = GeocodeCache()


def shared_cache() -> GeocodeCache:
    return _SHARED_GEOCODE_CACHE


def configure_shared_cache(max_entries: int | None) -> GeocodeCache:
    _SHARED_GEOCODE_CACHE.max_entries = max_entries
    return _SHARED_GEOCODE_CACHE
