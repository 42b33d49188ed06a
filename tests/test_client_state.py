from __future__ import annotations

import io
import json

import pytest
import responses

from client.cli import Session, run
from client.preferences import CELSIUS, FAHRENHEIT, Preferences
from client.view import ConsoleView, weather_icon
from core.entities import CurrentConditions, DailyForecast, WeatherSnapshot


def test_history_is_bounded_and_deduplicated() -> None:
    preferences = Preferences(history_size=3)

    for city in ("Lima", "Quito", "Bogotá", "lima", "Caracas"):
        preferences.add_to_history(city)

    assert preferences.history() == ["Caracas", "lima", "Bogotá"]


def test_preferences_persist_to_file(tmp_path) -> None:
    path = tmp_path / "state.json"
    preferences = Preferences(path)
    preferences.unit = FAHRENHEIT
    preferences.geo_consent = "granted"
    preferences.add_to_history("Rosario, Argentina")

    reloaded = Preferences(path)

    assert reloaded.unit == FAHRENHEIT
    assert reloaded.geo_consent == "granted"
    assert reloaded.history() == ["Rosario, Argentina"]
    assert json.loads(path.read_text(encoding="utf-8"))["city-history"] == ["Rosario, Argentina"]


def test_unreadable_preferences_start_empty(tmp_path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    preferences = Preferences(path)

    assert preferences.unit == CELSIUS
    assert preferences.history() == []


def test_unit_must_be_known() -> None:
    with pytest.raises(ValueError):
        Preferences().unit = "K"


def _snapshot() -> WeatherSnapshot:
    return WeatherSnapshot(
        current=CurrentConditions(
            temperature_2m=20.0, apparent_temperature=18.0, wind_speed_10m=10.0, weather_code=61, pressure_msl=1013.2
        ),
        daily=DailyForecast(
            time=["2024-05-01", "2024-05-02"],
            temperature_2m_max=[22.0, None],
            temperature_2m_min=[11.0, 12.0],
            weather_code=[61, 0],
            precipitation_sum=[3.5, 0.0],
        ),
    )


def test_console_view_renders_in_selected_unit() -> None:
    stream = io.StringIO()
    preferences = Preferences()
    view = ConsoleView(stream, unit=lambda: preferences.unit)

    view.render("Lima, Perú", _snapshot())
    preferences.unit = FAHRENHEIT
    view.render("Lima, Perú", _snapshot())

    output = stream.getvalue()
    assert "20.0°C" in output
    assert "68.0°F" in output
    assert "1013 hPa" in output
    assert "3.5 mm" in output
    assert "—" in output
    assert view.results_visible


def test_weather_icons() -> None:
    assert weather_icon(0) == "☀️"
    assert weather_icon(95) == "⛈️"
    assert weather_icon(None) == "🌤️"


WEATHER = {
    "place": "Quito, Ecuador",
    "lat": -0.22,
    "lon": -78.51,
    "current": {"temperature_2m": 14.0, "apparent_temperature": 13.0, "wind_speed_10m": 6.0, "weather_code": 3},
    "daily": {"time": ["2024-05-01"], "temperature_2m_max": [19.0], "temperature_2m_min": [9.0], "weather_code": [3]},
}


@responses.activate
def test_cli_single_lookup() -> None:
    responses.add(responses.GET, "http://backend.test/weather", json=WEATHER)
    stdout = io.StringIO()

    code = run(["--backend", "http://backend.test", "--no-state", "Quito"], stdout=stdout)

    assert code == 0
    assert "Quito, Ecuador" in stdout.getvalue()


@responses.activate
def test_cli_single_lookup_failure() -> None:
    responses.add(responses.GET, "http://backend.test/weather", json={"error": "Ciudad no encontrada"}, status=404)
    stdout = io.StringIO()

    code = run(["--backend", "http://backend.test", "--no-state", "Atlantis"], stdout=stdout)

    assert code == 1
    assert "Ciudad no encontrada" in stdout.getvalue()


@responses.activate
def test_cli_session_commands() -> None:
    responses.add(responses.GET, "http://backend.test/weather", json=WEATHER)
    responses.add(responses.GET, "http://backend.test/favorites", json=[{"id": 1, "city": "Quito, Ecuador"}])
    stdin = io.StringIO("Quito\n:unit F\n:favs\n:coords nope\n:quit\nnever read\n")
    stdout = io.StringIO()

    code = run(["--backend", "http://backend.test", "--no-state"], stdin=stdin, stdout=stdout)

    output = stdout.getvalue()
    assert code == 0
    assert "Uso: :coords LAT LON" in output
    assert "Recientes: Quito, Ecuador" in output
    assert len([call for call in responses.calls if "/weather" in call.request.url]) == 1


def test_session_quit() -> None:
    assert Session(None, None, None).handle(":quit") is False
