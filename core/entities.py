from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator


def format_place(*parts: Optional[str]) -> str:
    """Join the non-empty name parts as ``"City, Region, Country"``."""
    return ", ".join(str(part).strip() for part in parts if part and str(part).strip())


def coordinates_label(latitude: float, longitude: float) -> str:
    return f"({latitude:.2f}, {longitude:.2f})"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lon)

    def cache_key(self) -> str:
        return f"{self.lat:.3f},{self.lon:.3f}"


@dataclass(frozen=True)
class ResolvedPlace:
    """Geocoding output: coordinates plus a human readable name.

    ``display_name`` is never empty; when no name parts are known it falls back
    to the coordinates formatted to two decimals.
    """

    display_name: str
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not self.display_name:
            object.__setattr__(self, "display_name", coordinates_label(self.lat, self.lon))


class CurrentConditions(BaseModel):
    """Current weather block as returned by the forecaster.

    Humidity, precipitation and pressure are not reported by every upstream
    model and may be missing.
    """

    model_config = ConfigDict(extra="allow")

    time: Optional[str] = None
    temperature_2m: float
    apparent_temperature: float
    wind_speed_10m: float
    weather_code: int
    relative_humidity_2m: Optional[float] = None
    precipitation: Optional[float] = None
    pressure_msl: Optional[float] = None


class DailyForecast(BaseModel):
    """Per-day arrays, all of the same length.

    The precipitation probability and sum arrays may be omitted entirely.
    """

    model_config = ConfigDict(extra="allow")

    time: List[str]
    temperature_2m_max: List[Optional[float]]
    temperature_2m_min: List[Optional[float]]
    weather_code: List[Optional[int]]
    precipitation_probability_max: Optional[List[Optional[float]]] = None
    precipitation_sum: Optional[List[Optional[float]]] = None

    @model_validator(mode="after")
    def _check_lengths(self) -> "DailyForecast":
        expected = len(self.time)
        for name in ("temperature_2m_max", "temperature_2m_min", "weather_code",
                     "precipitation_probability_max", "precipitation_sum"):
            values = getattr(self, name)
            if values is not None and len(values) != expected:
                raise ValueError(f"daily.{name} has {len(values)} entries, expected {expected}")
        return self

    def __len__(self) -> int:
        return len(self.time)

    def truncated(self, days: int) -> "DailyForecast":
        data = self.model_dump()
        for key, values in data.items():
            if isinstance(values, list):
                data[key] = values[:days]
        return DailyForecast.model_validate(data)


class WeatherSnapshot(BaseModel):
    current: CurrentConditions
    daily: DailyForecast

    def to_payload(self) -> Dict[str, Any]:
        return {
            "current": self.current.model_dump(exclude_none=True),
            "daily": self.daily.model_dump(exclude_none=True),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WeatherSnapshot":
        return cls.model_validate({"current": payload.get("current"), "daily": payload.get("daily")})


__all__ = [
    "Coordinates",
    "CurrentConditions",
    "DailyForecast",
    "ResolvedPlace",
    "WeatherSnapshot",
    "coordinates_label",
    "format_place",
]
