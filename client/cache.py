from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from core.entities import ResolvedPlace, WeatherSnapshot


@dataclass(frozen=True)
class CacheEntry:
    key: str
    place: ResolvedPlace
    snapshot: WeatherSnapshot


class LookupCache:
    """In-memory lookup cache, dual keyed by query key and display name.

    Keys are case-insensitive. An entry is written once and never replaced:
    storing under a key that already exists keeps the original entry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._storage: Dict[str, CacheEntry] = {}

    @staticmethod
    def normalize(key: str) -> str:
        return key.strip().lower()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._storage.get(self.normalize(key))

    def add(self, key: str, place: ResolvedPlace, snapshot: WeatherSnapshot) -> CacheEntry:
        """Store the result under ``key`` and the place name; return the stored entry."""
        normalized = self.normalize(key)
        with self._lock:
            entry = self._storage.setdefault(normalized, CacheEntry(normalized, place, snapshot))
            self._storage.setdefault(self.normalize(entry.place.display_name), entry)
            return entry

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()


__all__ = ["CacheEntry", "LookupCache"]
