"""BigDataCloud reverse geocoding."""
from __future__ import annotations

from backend.core.abstractions import ReverseGeocoder
from backend.core.providers.base import HTTPProvider
from core.entities import format_place


class BigDataCloudReverseGeocoder(HTTPProvider, ReverseGeocoder):
    name = "bigdatacloud"
    base_url = "https://api.bigdatacloud.net/data/reverse-geocode-client"

    def __init__(self, language: str = "es", **kwargs) -> None:
        super().__init__(**kwargs)
        self.language = language

    def reverse(self, latitude: float, longitude: float) -> str:
        params = {"latitude": latitude, "longitude": longitude, "localityLanguage": self.language}
        data = self._get_json(self.base_url, params, expect=dict) or {}
        region = data.get("principalSubdivision")
        city = data.get("city") or data.get("locality")
        if not city:
            return format_place(region, data.get("countryName"))
        return format_place(city, region, data.get("countryName"))


__all__ = ["BigDataCloudReverseGeocoder"]
