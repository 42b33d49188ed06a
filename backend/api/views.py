"""REST API views for weather lookups and favorites."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Callable

from django.conf import settings
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.api.schemas import CoordinatesQuery, FavoritePayload
from backend.core import models
from backend.core.abstractions import WeatherResult
from backend.core.health import HealthRegistry
from backend.core.providers.base import RequestConfig
from backend.core.providers.bigdatacloud import BigDataCloudReverseGeocoder
from backend.core.providers.nominatim import NominatimGeocoder, NominatimReverseGeocoder
from backend.core.providers.openmeteo import OpenMeteoForecaster, OpenMeteoGeocoder
from backend.core.services.weather_service import (
    InvalidInput,
    NotFound,
    WeatherQueryService,
    WeatherServiceError,
)


logger = logging.getLogger(__name__)

MISSING_CITY = "Falta city"
INVALID_COORDS = "Lat/Lon inválidos"
CITY_NOT_FOUND = "Ciudad no encontrada"
WEATHER_FAILED = "No se pudo obtener el clima"
DB_ERROR = "DB error"
FAVORITE_NOT_FOUND = "No existe"


@lru_cache(maxsize=1)
def get_health_registry() -> HealthRegistry:
    return HealthRegistry()


def build_weather_service() -> WeatherQueryService:
    """Build a service for one request; providers are not shared between requests."""
    language = settings.WEATHER_GEOCODER_LANGUAGE
    nominatim = settings.NOMINATIM_URL.rstrip("/")

    def config() -> RequestConfig:
        return RequestConfig(timeout=settings.WEATHER_PROVIDER_TIMEOUT, user_agent=settings.NOMINATIM_USER_AGENT)

    return WeatherQueryService(
        geocoder=OpenMeteoGeocoder(
            language=language, base_url=settings.OPEN_METEO_GEOCODING_URL, request_config=config()
        ),
        fallback_geocoder=NominatimGeocoder(
            language=language, base_url=f"{nominatim}/search", request_config=config()
        ),
        forecaster=OpenMeteoForecaster(
            forecast_days=settings.WEATHER_FORECAST_DAYS,
            base_url=settings.OPEN_METEO_FORECAST_URL,
            request_config=config(),
        ),
        reverse_geocoders=(
            BigDataCloudReverseGeocoder(
                language=language, base_url=settings.BIGDATACLOUD_REVERSE_URL, request_config=config()
            ),
            NominatimReverseGeocoder(
                language=language, base_url=f"{nominatim}/reverse", request_config=config()
            ),
        ),
        health=get_health_registry(),
    )


def get_session_factory() -> models.SessionFactory:
    if not models.is_configured():
        models.configure_engine(settings.DATABASE_URL)
    return models.get_session_factory()


def _error(message: str, code: int) -> Response:
    return Response({"error": message}, status=code)


def _with_database(work: Callable[[models.SessionFactory], Response]) -> Response:
    factory = get_session_factory()
    try:
        return work(factory)
    except factory.database_errors:
        logger.exception("Favorites database error")
        return _error(DB_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _record_search(city: str | None, result: WeatherResult) -> None:
    """Write the audit row; a failure here never affects the response."""
    try:
        with models.session_scope(get_session_factory()) as session:
            models.record_search(
                session, city=city, place=result.place.display_name, lat=result.place.lat, lon=result.place.lon
            )
    except Exception:  # noqa: BLE001
        logger.warning("Failed to record search for %r", city, exc_info=True)


def _weather_response(resolve: Callable[[], WeatherResult], city: str | None, invalid_message: str) -> Response:
    try:
        result = resolve()
    except InvalidInput:
        return _error(invalid_message, status.HTTP_400_BAD_REQUEST)
    except NotFound as exc:
        logger.info("%s", exc)
        return _error(CITY_NOT_FOUND, status.HTTP_404_NOT_FOUND)
    except WeatherServiceError:
        logger.exception("Weather lookup failed")
        return _error(WEATHER_FAILED, status.HTTP_500_INTERNAL_SERVER_ERROR)
    _record_search(city, result)
    return Response(result.to_payload(), status=status.HTTP_200_OK)


class HealthView(APIView):
    def get(self, request, *args, **kwargs):
        return Response(get_health_registry().snapshot(), status=status.HTTP_200_OK)


class WeatherByCityView(APIView):
    """Resolve a city name and return its current conditions and forecast."""

    def get(self, request, *args, **kwargs):
        city = str(request.query_params.get("city", "")).strip()
        if not city:
            return _error(MISSING_CITY, status.HTTP_400_BAD_REQUEST)
        service = build_weather_service()
        return _weather_response(lambda: service.resolve_by_name(city), city, MISSING_CITY)


class WeatherByCoordsView(APIView):
    """Return the weather for a coordinate pair, naming it on a best-effort basis."""

    def get(self, request, *args, **kwargs):
        try:
            query = CoordinatesQuery(lat=request.query_params.get("lat"), lon=request.query_params.get("lon"))
        except ValidationError:
            return _error(INVALID_COORDS, status.HTTP_400_BAD_REQUEST)
        service = build_weather_service()
        return _weather_response(lambda: service.resolve_by_coords(query.lat, query.lon), None, INVALID_COORDS)


def _parse_favorite(data: Any) -> FavoritePayload | None:
    try:
        return FavoritePayload.model_validate(data if isinstance(data, dict) else {})
    except ValidationError:
        return None


class FavoritesView(APIView):
    def get(self, request, *args, **kwargs):
        def work(factory: models.SessionFactory) -> Response:
            with models.session_scope(factory) as session:
                favorites = models.list_favorites(session)
            return Response([favorite.as_dict() for favorite in favorites], status=status.HTTP_200_OK)

        return _with_database(work)

    def post(self, request, *args, **kwargs):
        payload = _parse_favorite(request.data)
        if payload is None:
            return _error(MISSING_CITY, status.HTTP_400_BAD_REQUEST)

        def work(factory: models.SessionFactory) -> Response:
            favorite = models.add_favorite(payload.city, payload.lat, payload.lon, session_factory=factory)
            return Response(favorite.as_dict(), status=status.HTTP_200_OK)

        return _with_database(work)


class FavoriteToggleView(APIView):
    """Add the city when it is not a favorite yet, remove it otherwise."""

    def post(self, request, *args, **kwargs):
        payload = _parse_favorite(request.data)
        if payload is None:
            return _error(MISSING_CITY, status.HTTP_400_BAD_REQUEST)

        def work(factory: models.SessionFactory) -> Response:
            result = models.toggle_favorite(payload.city, payload.lat, payload.lon, session_factory=factory)
            logger.info("Favorite %s %s", payload.city, "removed" if result.removed else "added")
            return Response(result.as_dict(), status=status.HTTP_200_OK)

        return _with_database(work)


class FavoriteSearchView(APIView):
    def get(self, request, *args, **kwargs):
        text = str(request.query_params.get("city", ""))

        def work(factory: models.SessionFactory) -> Response:
            with models.session_scope(factory) as session:
                favorites = models.search_favorites(session, text)
            return Response([favorite.as_dict() for favorite in favorites], status=status.HTTP_200_OK)

        return _with_database(work)


class FavoriteDetailView(APIView):
    def get(self, request, favorite_id: int, *args, **kwargs):
        def work(factory: models.SessionFactory) -> Response:
            with models.session_scope(factory) as session:
                favorite = models.get_favorite(session, favorite_id)
            if favorite is None:
                return _error(FAVORITE_NOT_FOUND, status.HTTP_404_NOT_FOUND)
            return Response(favorite.as_dict(), status=status.HTTP_200_OK)

        return _with_database(work)

    def delete(self, request, favorite_id: int, *args, **kwargs):
        def work(factory: models.SessionFactory) -> Response:
            with models.session_scope(factory) as session:
                deleted = models.delete_favorite(session, favorite_id)
            if not deleted:
                return _error(FAVORITE_NOT_FOUND, status.HTTP_404_NOT_FOUND)
            return Response({"ok": True, "deleted": favorite_id}, status=status.HTTP_200_OK)

        return _with_database(work)
