"""Client configuration read from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

SUPERSEDE = "supersede"
DROP = "drop"
BUSY_POLICIES = (SUPERSEDE, DROP)


def _default_state_path() -> Path:
    return Path(os.getenv("WEATHER_STATE_PATH", str(Path.home() / ".weather-lookup.json")))


@dataclass
class ClientConfig:
    backend_url: str = os.getenv("WEATHER_BACKEND_URL", "http://localhost:8000")
    timeout: float = float(os.getenv("WEATHER_CLIENT_TIMEOUT", "25"))
    # Minimum time between accepting two identical repeated lookups.
    debounce_window: float = float(os.getenv("WEATHER_DEBOUNCE_WINDOW", "0.6"))
    history_size: int = int(os.getenv("WEATHER_HISTORY_SIZE", "5"))
    busy_policy: str = os.getenv("WEATHER_BUSY_POLICY", SUPERSEDE)
    # A superseded request keeps its worker until it answers or times out.
    workers: int = int(os.getenv("WEATHER_CLIENT_WORKERS", "8"))
    state_path: Path = field(default_factory=_default_state_path)

    def __post_init__(self) -> None:
        if self.busy_policy not in BUSY_POLICIES:
            raise ValueError(f"busy_policy must be one of {BUSY_POLICIES}, got {self.busy_policy!r}")
        if self.history_size < 1:
            raise ValueError("history_size must be positive")
        if self.workers < 1:
            raise ValueError("workers must be positive")


__all__ = ["BUSY_POLICIES", "ClientConfig", "DROP", "SUPERSEDE"]
