"""Management command to fetch weather using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import build_weather_service
from backend.core.services.weather_service import InvalidInput, NotFound, WeatherServiceError


class Command(BaseCommand):
    help = "Fetch current weather and the daily forecast for a city or a coordinate pair"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--lat", type=float, help="Latitude")
        parser.add_argument("--lon", type=float, help="Longitude")
        parser.add_argument("--city", type=str, help="City name, e.g. 'Rosario, Argentina'")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        city = options.get("city")
        latitude = options.get("lat")
        longitude = options.get("lon")
        service = build_weather_service()

        try:
            if city:
                result = service.resolve_by_name(city)
            elif latitude is not None and longitude is not None:
                result = service.resolve_by_coords(latitude, longitude)
            else:
                raise CommandError("--city or both --lat and --lon are required")
        except InvalidInput as exc:
            raise CommandError(str(exc)) from exc
        except NotFound as exc:
            raise CommandError(f"City not found: {city}") from exc
        except WeatherServiceError as exc:
            raise CommandError("Weather lookup failed") from exc

        self.stdout.write(json.dumps(result.to_payload(), ensure_ascii=False))
