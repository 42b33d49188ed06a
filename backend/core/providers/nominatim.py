"""Nominatim (OpenStreetMap) forward and reverse geocoders."""
from __future__ import annotations

from typing import Any, Dict, Optional

from backend.core.abstractions import Geocoder, ReverseGeocoder
from backend.core.providers.base import HTTPProvider, ProviderError
from core.entities import ResolvedPlace, format_place

DEFAULT_USER_AGENT = "weather-lookup/1.0"


def _locality(address: Dict[str, Any]) -> Optional[str]:
    return address.get("city") or address.get("town") or address.get("village") or address.get("hamlet")


def _format_address(address: Dict[str, Any]) -> str:
    if not isinstance(address, dict):
        return ""
    return format_place(_locality(address), address.get("state") or address.get("region"), address.get("country"))


class NominatimGeocoder(HTTPProvider, Geocoder):
    """Fallback geocoder; Nominatim requires an identifying User-Agent."""

    name = "nominatim"
    base_url = "https://nominatim.openstreetmap.org/search"
    user_agent = DEFAULT_USER_AGENT

    def __init__(self, language: str = "es", **kwargs) -> None:
        super().__init__(**kwargs)
        self.language = language

    def search(self, text: str) -> Optional[ResolvedPlace]:
        params = {
            "q": text,
            "format": "jsonv2",
            "limit": 1,
            "addressdetails": 1,
            "accept-language": self.language,
        }
        results = self._get_json(self.base_url, params, expect=list) or []
        if not results:
            return None
        match = results[0]
        try:
            latitude = float(match["lat"])
            longitude = float(match["lon"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError("malformed geocoding result") from exc
        name = _format_address(match.get("address") or {}) or format_place(match.get("name"))
        return ResolvedPlace(display_name=name or match.get("display_name", ""), lat=latitude, lon=longitude)


class NominatimReverseGeocoder(HTTPProvider, ReverseGeocoder):
    name = "nominatim-reverse"
    base_url = "https://nominatim.openstreetmap.org/reverse"
    user_agent = DEFAULT_USER_AGENT

    def __init__(self, language: str = "es", **kwargs) -> None:
        super().__init__(**kwargs)
        self.language = language

    def reverse(self, latitude: float, longitude: float) -> str:
        params = {"lat": latitude, "lon": longitude, "format": "jsonv2", "accept-language": self.language}
        data = self._get_json(self.base_url, params, expect=dict) or {}
        return _format_address(data.get("address") or {})


__all__ = ["NominatimGeocoder", "NominatimReverseGeocoder"]
