"""Weather query service: geocoding fallback chain composed with the forecaster."""
from __future__ import annotations

import logging
import math
import unicodedata
from typing import Iterable, List, Optional, Sequence

from backend.core.abstractions import Forecaster, Geocoder, ReverseGeocoder, WeatherResult
from backend.core.health import HealthRegistry
from backend.core.providers.base import ProviderError, ProviderTimeout
from core.entities import ResolvedPlace, coordinates_label


logger = logging.getLogger(__name__)


class WeatherServiceError(RuntimeError):
    """Base class for failures of a weather query."""


class InvalidInput(WeatherServiceError):
    """Empty query text or unusable coordinates."""


class NotFound(WeatherServiceError):
    """No geocoder produced a match after the whole fallback chain."""


class UpstreamFailure(WeatherServiceError):
    """The forecaster answered with an error or an unusable payload."""


class UpstreamTimeout(UpstreamFailure):
    """The forecaster did not answer within its deadline."""


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def candidate_queries(text: str) -> List[str]:
    """Progressively simpler query strings to try against the primary geocoder.

    ``"São Paulo, Brasil"`` yields ``["São Paulo, Brasil", "São Paulo", "Sao Paulo"]``.
    """
    raw = text.strip()
    if not raw:
        return []
    first = raw.split(",", 1)[0].strip() if "," in raw else raw
    candidates = [raw]
    for candidate in (first, strip_diacritics(first)):
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates


class WeatherQueryService:
    """Turn a place name or a coordinate pair into a place plus its forecast."""

    def __init__(
        self,
        geocoder: Geocoder,
        fallback_geocoder: Optional[Geocoder],
        forecaster: Forecaster,
        reverse_geocoders: Iterable[ReverseGeocoder] = (),
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self._geocoder = geocoder
        self._fallback_geocoder = fallback_geocoder
        self._forecaster = forecaster
        self._reverse_geocoders: List[ReverseGeocoder] = list(reverse_geocoders)
        self._health = health or HealthRegistry()

    @property
    def health(self) -> HealthRegistry:
        return self._health

    def resolve_by_name(self, text: str) -> WeatherResult:
        candidates = candidate_queries(text or "")
        if not candidates:
            raise InvalidInput("city is required")
        place = self._geocode(candidates)
        if place is None:
            raise NotFound(f"No geocoder matched {text.strip()!r}")
        return WeatherResult(place=place, snapshot=self._forecast(place.lat, place.lon))

    def resolve_by_coords(self, latitude: float, longitude: float) -> WeatherResult:
        if not (math.isfinite(latitude) and math.isfinite(longitude)):
            raise InvalidInput("coordinates must be finite numbers")
        if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
            raise InvalidInput("coordinates out of range")
        name = self._reverse(latitude, longitude) or coordinates_label(latitude, longitude)
        place = ResolvedPlace(display_name=name, lat=latitude, lon=longitude)
        return WeatherResult(place=place, snapshot=self._forecast(latitude, longitude))

    # Helpers ------------------------------------------------------------
    def _geocode(self, candidates: Sequence[str]) -> Optional[ResolvedPlace]:
        for candidate in candidates:
            place = self._try_geocoder(self._geocoder, candidate)
            if place is not None:
                return place
        if self._fallback_geocoder is None:
            return None
        logger.info("Primary geocoder exhausted, trying %s", self._fallback_geocoder.name)
        return self._try_geocoder(self._fallback_geocoder, candidates[0])

    def _try_geocoder(self, geocoder: Geocoder, text: str) -> Optional[ResolvedPlace]:
        try:
            place = geocoder.search(text)
        except ProviderError as exc:
            logger.warning("Geocoder %s failed for %r: %s", geocoder.name, text, exc)
            self._health.record_provider_error(geocoder.name)
            return None
        if place is None:
            logger.debug("Geocoder %s has no match for %r", geocoder.name, text)
        return place

    def _reverse(self, latitude: float, longitude: float) -> str:
        for provider in self._reverse_geocoders:
            try:
                name = provider.reverse(latitude, longitude)
            except ProviderError as exc:
                logger.warning("Reverse geocoder %s failed: %s", provider.name, exc)
                self._health.record_provider_error(provider.name)
                continue
            if name:
                return name
        return ""

    def _forecast(self, latitude: float, longitude: float):
        try:
            return self._forecaster.forecast(latitude, longitude)
        except ProviderTimeout as exc:
            self._health.record_provider_error(self._forecaster.name)
            raise UpstreamTimeout(f"{self._forecaster.name} timed out") from exc
        except ProviderError as exc:
            self._health.record_provider_error(self._forecaster.name)
            raise UpstreamFailure(f"{self._forecaster.name} failed: {exc}") from exc


__all__ = [
    "InvalidInput",
    "NotFound",
    "UpstreamFailure",
    "UpstreamTimeout",
    "WeatherQueryService",
    "WeatherServiceError",
    "candidate_queries",
    "strip_diacritics",
]
