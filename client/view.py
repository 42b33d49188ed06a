"""Views the search controller renders into."""
from __future__ import annotations

import sys
import threading
from datetime import date
from typing import Callable, List, Optional, Protocol, TextIO

from client.preferences import CELSIUS
from core.entities import CurrentConditions, DailyForecast, WeatherSnapshot

INFO = "info"
ERROR = "error"


class View(Protocol):
    """Renders whatever the controller hands it; holds no lookup logic."""

    def render(self, place: str, snapshot: WeatherSnapshot) -> None:
        ...

    def set_status(self, message: str, kind: str = INFO) -> None:
        ...

    def set_loading(self, loading: bool) -> None:
        ...

    def hide_results(self) -> None:
        ...

    def show_history(self, places: List[str]) -> None:
        ...


def to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def kmh_to_mph(kmh: float) -> float:
    return kmh * 0.621371


def weather_icon(code: Optional[int]) -> str:
    """Emoji for a WMO weather interpretation code."""
    if code is None:
        return "🌤️"
    if code == 0:
        return "☀️"
    if 1 <= code <= 3:
        return "⛅"
    if code in (45, 48):
        return "🌫️"
    if 51 <= code <= 57 or 80 <= code <= 82:
        return "🌦️"
    if 61 <= code <= 67:
        return "🌧️"
    if 71 <= code <= 77:
        return "🌨️"
    if code in (85, 86):
        return "❄️"
    if code in (95, 96, 99):
        return "⛈️"
    return "🌤️"


class ConsoleView:
    """Plain text rendering for the terminal client."""

    def __init__(self, stream: TextIO = sys.stdout, unit: Callable[[], str] = lambda: CELSIUS) -> None:
        self.stream = stream
        self._unit = unit
        self._lock = threading.Lock()
        self.results_visible = False

    # Formatting -----------------------------------------------------------
    def temperature(self, celsius: Optional[float]) -> str:
        if celsius is None:
            return "—"
        if self._unit() == CELSIUS:
            return f"{celsius:.1f}°C"
        return f"{to_fahrenheit(celsius):.1f}°F"

    def wind(self, kmh: Optional[float]) -> str:
        if kmh is None:
            return "—"
        if self._unit() == CELSIUS:
            return f"{kmh:.0f} km/h"
        return f"{kmh_to_mph(kmh):.0f} mph"

    def current_lines(self, place: str, current: CurrentConditions) -> List[str]:
        lines = [
            f"{weather_icon(current.weather_code)}  {place}",
            f"  Temperatura    {self.temperature(current.temperature_2m)}",
            f"  Sensación      {self.temperature(current.apparent_temperature)}",
            f"  Viento         {self.wind(current.wind_speed_10m)}",
        ]
        if current.relative_humidity_2m is not None:
            lines.append(f"  Humedad        {current.relative_humidity_2m:.0f}%")
        if current.precipitation is not None:
            lines.append(f"  Precipitación  {current.precipitation:.1f} mm")
        if current.pressure_msl is not None:
            lines.append(f"  Presión        {current.pressure_msl:.0f} hPa")
        return lines

    def daily_lines(self, daily: DailyForecast, days: int = 5) -> List[str]:
        lines = []
        for index, day in enumerate(daily.time[:days]):
            try:
                label = date.fromisoformat(day).strftime("%a %d/%m")
            except ValueError:
                label = day
            row = (
                f"  {label:<10} {weather_icon(daily.weather_code[index])}  "
                f"mín {self.temperature(daily.temperature_2m_min[index])}  "
                f"máx {self.temperature(daily.temperature_2m_max[index])}"
            )
            if daily.precipitation_probability_max is not None and daily.precipitation_probability_max[index] is not None:
                row += f"  lluvia {daily.precipitation_probability_max[index]:.0f}%"
            if daily.precipitation_sum is not None and daily.precipitation_sum[index] is not None:
                row += f" {daily.precipitation_sum[index]:.1f} mm"
            lines.append(row)
        return lines

    # View protocol ----------------------------------------------------------
    def render(self, place: str, snapshot: WeatherSnapshot) -> None:
        lines = self.current_lines(place, snapshot.current) + self.daily_lines(snapshot.daily)
        with self._lock:
            self.results_visible = True
            self.stream.write("\n".join(lines) + "\n")
            self.stream.flush()

    def set_status(self, message: str, kind: str = INFO) -> None:
        if not message:
            return
        prefix = "!" if kind == ERROR else "·"
        with self._lock:
            self.stream.write(f"{prefix} {message}\n")
            self.stream.flush()

    def set_loading(self, loading: bool) -> None:
        if loading:
            self.set_status("Buscando…")

    def hide_results(self) -> None:
        self.results_visible = False

    def show_history(self, places: List[str]) -> None:
        if places:
            self.set_status("Recientes: " + " · ".join(places))


__all__ = ["ConsoleView", "ERROR", "INFO", "View", "kmh_to_mph", "to_fahrenheit", "weather_icon"]
