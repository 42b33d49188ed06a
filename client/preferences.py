"""Client-local key-value state: unit preference, search history, geolocation consent."""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)

UNIT_KEY = "unit"
HISTORY_KEY = "city-history"
GEO_CONSENT_KEY = "geo-consent"

CELSIUS = "C"
FAHRENHEIT = "F"


class Preferences:
    """JSON file backed store; ``path=None`` keeps everything in memory.

    None of these values influence lookup correctness, so unreadable or
    unwritable files degrade to an empty store with a warning.
    """

    def __init__(self, path: Optional[Path] = None, history_size: int = 5) -> None:
        self.path = path
        self.history_size = history_size
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._save()

    # -- Unit -------------------------------------------------------------
    @property
    def unit(self) -> str:
        unit = self.get(UNIT_KEY, CELSIUS)
        return unit if unit in (CELSIUS, FAHRENHEIT) else CELSIUS

    @unit.setter
    def unit(self, value: str) -> None:
        if value not in (CELSIUS, FAHRENHEIT):
            raise ValueError(f"unit must be {CELSIUS!r} or {FAHRENHEIT!r}")
        self.set(UNIT_KEY, value)

    # -- Geolocation consent ------------------------------------------------
    @property
    def geo_consent(self) -> str:
        return self.get(GEO_CONSENT_KEY, "") or ""

    @geo_consent.setter
    def geo_consent(self, value: str) -> None:
        self.set(GEO_CONSENT_KEY, value)

    # -- History ------------------------------------------------------------
    def history(self) -> List[str]:
        items = self.get(HISTORY_KEY, [])
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, str)]

    def add_to_history(self, place: str) -> List[str]:
        """Move ``place`` to the front, dropping case-insensitive duplicates."""
        entry = place.strip()
        if not entry:
            return self.history()
        items = [item for item in self.history() if item.lower() != entry.lower()]
        items.insert(0, entry)
        items = items[: self.history_size]
        self.set(HISTORY_KEY, items)
        return items

    # -- Persistence --------------------------------------------------------
    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable preferences file %s", self.path, exc_info=True)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.write_text(json.dumps(self._data, ensure_ascii=False), encoding="utf-8")
        except OSError:
            logger.warning("Could not write preferences to %s", self.path, exc_info=True)


__all__ = ["CELSIUS", "FAHRENHEIT", "Preferences"]
