"""Core abstractions for the weather lookup domain."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from core.entities import ResolvedPlace, WeatherSnapshot


@dataclass(slots=True)
class WeatherResult:
    """A resolved place together with its forecast."""

    place: ResolvedPlace
    snapshot: WeatherSnapshot

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "place": self.place.display_name,
            "lat": self.place.lat,
            "lon": self.place.lon,
        }
        payload.update(self.snapshot.to_payload())
        return payload


class Geocoder(Protocol):
    """Resolves free text to the best matching place."""

    name: str

    def search(self, text: str) -> Optional[ResolvedPlace]:
        """Return the first match or ``None`` when the provider has no match."""
        ...


class ReverseGeocoder(Protocol):
    """Names a coordinate pair."""

    name: str

    def reverse(self, latitude: float, longitude: float) -> str:
        """Return a display name, empty when the provider knows nothing."""
        ...


class Forecaster(Protocol):
    """Returns current conditions and a multi-day forecast."""

    name: str

    def forecast(self, latitude: float, longitude: float) -> WeatherSnapshot:
        ...
