"""In-memory health registry backing the ``/health`` endpoint.

Counters are per process and reset on restart; they only describe how the
upstream providers behaved since then.
"""
from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional


class HealthRegistry:
    """Stores provider error counters and the time of the last failure."""

    def __init__(self) -> None:
        self._provider_errors: Dict[str, int] = {}
        self._last_failure: Optional[str] = None
        self._lock = Lock()

    def record_provider_error(self, provider: str, increment: int = 1) -> None:
        if not provider:
            raise ValueError("provider must be provided")
        if increment <= 0:
            raise ValueError("increment must be positive")
        with self._lock:
            self._provider_errors[provider] = (
                self._provider_errors.get(provider, 0) + increment
            )
            self._last_failure = self.now_iso()

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            providers = dict(self._provider_errors)
            last_failure = self._last_failure
        return {"ok": True, "time": self.now_iso(), "providers": providers, "last_failure": last_failure}

    @staticmethod
    def now_iso() -> str:
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = ["HealthRegistry"]
