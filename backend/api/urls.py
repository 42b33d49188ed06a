"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import (
    FavoriteDetailView,
    FavoriteSearchView,
    FavoritesView,
    FavoriteToggleView,
    HealthView,
    WeatherByCityView,
    WeatherByCoordsView,
)

urlpatterns = [
    path("health", HealthView.as_view(), name="health"),
    path("weather", WeatherByCityView.as_view(), name="weather"),
    path("weather/coords", WeatherByCoordsView.as_view(), name="weather-coords"),
    path("favorites", FavoritesView.as_view(), name="favorites"),
    path("favorites/toggle", FavoriteToggleView.as_view(), name="favorites-toggle"),
    path("favorites/search", FavoriteSearchView.as_view(), name="favorites-search"),
    path("favorites/<int:favorite_id>", FavoriteDetailView.as_view(), name="favorite-detail"),
]
