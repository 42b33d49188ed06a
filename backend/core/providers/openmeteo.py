"""Open-Meteo geocoding and forecast providers."""
from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from backend.core.abstractions import Forecaster, Geocoder
from backend.core.providers.base import HTTPProvider, ProviderError
from core.entities import ResolvedPlace, WeatherSnapshot, format_place

CURRENT_FIELDS = (
    "temperature_2m",
    "apparent_temperature",
    "wind_speed_10m",
    "weather_code",
    "relative_humidity_2m",
    "precipitation",
    "pressure_msl",
)
DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "weather_code",
    "precipitation_probability_max",
    "precipitation_sum",
)


class OpenMeteoGeocoder(HTTPProvider, Geocoder):
    name = "open-meteo-geocoding"
    base_url = "https://geocoding-api.open-meteo.com/v1/search"

    def __init__(self, language: str = "es", **kwargs) -> None:
        super().__init__(**kwargs)
        self.language = language

    def search(self, text: str) -> Optional[ResolvedPlace]:
        params = {"name": text, "count": 1, "language": self.language, "format": "json"}
        data = self._get_json(self.base_url, params, expect=dict) or {}
        results = data.get("results") or []
        if not isinstance(results, list):
            raise ProviderError("malformed geocoding results")
        if not results:
            return None
        match = results[0]
        try:
            latitude = float(match["latitude"])
            longitude = float(match["longitude"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError("malformed geocoding result") from exc
        return ResolvedPlace(
            display_name=format_place(match.get("name"), match.get("admin1"), match.get("country")),
            lat=latitude,
            lon=longitude,
        )


class OpenMeteoForecaster(HTTPProvider, Forecaster):
    name = "open-meteo-forecast"
    base_url = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, forecast_days: int = 5, **kwargs) -> None:
        super().__init__(**kwargs)
        self.forecast_days = forecast_days

    def forecast(self, latitude: float, longitude: float) -> WeatherSnapshot:
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(CURRENT_FIELDS),
            "daily": ",".join(DAILY_FIELDS),
            "forecast_days": self.forecast_days,
            "timezone": "auto",
        }
        data = self._get_json(self.base_url, params, expect=dict) or {}
        if not data.get("current") or not data.get("daily"):
            raise ProviderError("missing current or daily weather")
        try:
            snapshot = WeatherSnapshot.from_payload(data)
        except ValidationError as exc:
            self._log.error("Unexpected forecast payload: %s", exc)
            raise ProviderError("invalid forecast payload") from exc
        if len(snapshot.daily) > self.forecast_days:
            snapshot = WeatherSnapshot(current=snapshot.current, daily=snapshot.daily.truncated(self.forecast_days))
        return snapshot


__all__ = ["OpenMeteoForecaster", "OpenMeteoGeocoder"]
