from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

import pytest

from client.cache import LookupCache
from client.cancellation import CancellationToken
from client.config import DROP, ClientConfig
from client.controller import SearchController, normalize_query
from client.errors import HTTPFailure, InvalidQuery, ServerUnreachable
from client.preferences import FAHRENHEIT, Preferences
from core.entities import Coordinates, CurrentConditions, DailyForecast, ResolvedPlace, WeatherSnapshot

WAIT = 5


def make_snapshot(temperature: float) -> WeatherSnapshot:
    return WeatherSnapshot(
        current=CurrentConditions(
            temperature_2m=temperature, apparent_temperature=temperature, wind_speed_10m=4.0, weather_code=0
        ),
        daily=DailyForecast(
            time=["2024-05-01"], temperature_2m_max=[temperature + 3], temperature_2m_min=[temperature - 3], weather_code=[0]
        ),
    )


def place(name: str) -> ResolvedPlace:
    return ResolvedPlace(name, 1.0, 2.0)


class ScriptedClient:
    """Answers from a script; a gate holds the answer until the test releases it."""

    def __init__(self, honor_cancel: bool = True) -> None:
        self.honor_cancel = honor_cancel
        self.outcomes: Dict[str, object] = {}
        self.gates: Dict[str, threading.Event] = {}
        self.started: Dict[str, threading.Event] = {}
        self.calls: List[str] = []
        self.toggles: List[Tuple[str, float, float]] = []
        self._lock = threading.Lock()

    def answer(self, query: str, outcome: object, gated: bool = False) -> None:
        self.outcomes[query] = outcome
        self.started[query] = threading.Event()
        if gated:
            self.gates[query] = threading.Event()

    def release(self, query: str) -> None:
        self.gates[query].set()

    def _respond(self, query: str, token: Optional[CancellationToken]):
        with self._lock:
            self.calls.append(query)
        self.started[query].set()
        gate = self.gates.get(query)
        if gate is not None:
            assert gate.wait(WAIT)
        if self.honor_cancel and token is not None:
            token.raise_if_cancelled()
        outcome = self.outcomes[query]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def weather_by_city(self, city: str, token: Optional[CancellationToken] = None):
        return self._respond(city, token)

    def weather_by_coords(self, lat: float, lon: float, token: Optional[CancellationToken] = None):
        return self._respond(f"{lat},{lon}", token)

    def toggle_favorite(self, city: str, lat: float, lon: float):
        self.toggles.append((city, lat, lon))
        return {"added": True, "row": {"city": city}}


class RecordingView:
    def __init__(self) -> None:
        self.events: List[tuple] = []
        self.on_render = None

    def render(self, place: str, snapshot: WeatherSnapshot) -> None:
        self.events.append(("render", place, snapshot.current.temperature_2m))
        if self.on_render is not None:
            self.on_render()

    def set_status(self, message: str, kind: str = "info") -> None:
        self.events.append(("status", message, kind))

    def set_loading(self, loading: bool) -> None:
        self.events.append(("loading", loading))

    def hide_results(self) -> None:
        self.events.append(("hide",))

    def show_history(self, places: List[str]) -> None:
        self.events.append(("history", list(places)))

    def renders(self) -> List[str]:
        return [event[1] for event in self.events if event[0] == "render"]

    def errors(self) -> List[str]:
        return [event[1] for event in self.events if event[0] == "status" and event[2] == "error"]


class TimeController:
    def __init__(self) -> None:
        self.now = 100.0

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture()
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture()
def clock() -> TimeController:
    return TimeController()


@pytest.fixture()
def controller(client, view, clock):
    config = ClientConfig(debounce_window=0.6, history_size=5)
    with SearchController(client, view, clock=clock, config=config, preferences=Preferences()) as ctrl:
        yield ctrl


def test_normalize_query() -> None:
    assert normalize_query("  Buenos Aires ") == "buenos aires"
    assert normalize_query("   ") == ""
    assert normalize_query(Coordinates(-34.60372, -58.38159)) == "-34.604,-58.382"
    with pytest.raises(InvalidQuery):
        normalize_query(Coordinates(float("nan"), 0.0))


def test_successful_lookup_renders_and_caches(controller, client, view) -> None:
    client.answer("Seúl", (place("Seoul, South Korea"), make_snapshot(18.0)))

    entry = controller.lookup("  Seúl ").result(WAIT)

    assert entry.place.display_name == "Seoul, South Korea"
    assert view.renders() == ["Seoul, South Korea"]
    assert ("loading", True) in view.events
    assert view.events[-1] == ("history", ["Seoul, South Korea"])
    assert controller.epoch == 1
    assert controller.last_result.display_name == "Seoul, South Korea"
    assert "seúl" in controller.cache
    assert "seoul, south korea" in controller.cache


def test_newer_lookup_supersedes_in_flight_one(controller, client, view) -> None:
    client.answer("Madrid", (place("Madrid, España"), make_snapshot(25.0)), gated=True)
    client.answer("Lima", (place("Lima, Perú"), make_snapshot(19.0)))

    first = controller.lookup("Madrid")
    assert client.started["Madrid"].wait(WAIT)
    second = controller.lookup("Lima")
    assert second.result(WAIT).place.display_name == "Lima, Perú"

    client.release("Madrid")

    assert first.result(WAIT) is None
    assert view.renders() == ["Lima, Perú"]
    assert controller.last_result.display_name == "Lima, Perú"
    assert "madrid" not in controller.cache
    assert view.errors() == []


def test_stale_result_is_discarded_even_when_not_cancelled(view, clock) -> None:
    client = ScriptedClient(honor_cancel=False)
    client.answer("Madrid", (place("Madrid, España"), make_snapshot(25.0)), gated=True)
    client.answer("Lima", (place("Lima, Perú"), make_snapshot(19.0)))

    with SearchController(client, view, clock=clock, preferences=Preferences()) as controller:
        first = controller.lookup("Madrid")
        assert client.started["Madrid"].wait(WAIT)
        controller.lookup("Lima").result(WAIT)
        client.release("Madrid")

        assert first.result(WAIT) is None
        assert view.renders() == ["Lima, Perú"]
        assert "madrid" not in controller.cache
        assert controller.preferences.history() == ["Lima, Perú"]


def test_stale_failure_is_not_reported(controller, client, view) -> None:
    client.answer("Madrid", ServerUnreachable(), gated=True)
    client.answer("Lima", (place("Lima, Perú"), make_snapshot(19.0)))

    first = controller.lookup("Madrid")
    assert client.started["Madrid"].wait(WAIT)
    controller.lookup("Lima").result(WAIT)
    client.release("Madrid")
    first.result(WAIT)

    assert view.errors() == []
    assert ("hide",) not in view.events


def test_repeat_inside_debounce_window_is_dropped(controller, client, view, clock) -> None:
    client.answer("Paris", (place("Paris, France"), make_snapshot(15.0)))
    controller.lookup("Paris").result(WAIT)

    clock.advance(0.3)
    assert controller.lookup(" PARIS ") is None
    assert controller.epoch == 1

    clock.advance(0.5)
    repeated = controller.lookup("paris")

    assert repeated is not None
    assert repeated.done()
    assert client.calls == ["Paris"]
    assert view.renders() == ["Paris, France", "Paris, France"]
    assert controller.epoch == 2


def test_cache_hit_by_display_name(controller, client, view) -> None:
    client.answer("seul", (place("Seoul, South Korea"), make_snapshot(18.0)))
    controller.lookup("seul").result(WAIT)

    entry = controller.lookup("Seoul, South Korea").result(WAIT)

    assert entry.place.display_name == "Seoul, South Korea"
    assert client.calls == ["seul"]
    assert view.renders() == ["Seoul, South Korea", "Seoul, South Korea"]


def test_cache_entries_are_never_overwritten() -> None:
    cache = LookupCache()
    first = cache.add("Lima", place("Lima, Perú"), make_snapshot(19.0))
    second = cache.add("lima", place("Lima, Ohio"), make_snapshot(5.0))

    assert second is first
    assert cache.get(" LIMA ").place.display_name == "Lima, Perú"
    assert cache.get("lima, perú") is first
    assert cache.get("lima, ohio") is None


def test_first_failure_hides_results(controller, client, view) -> None:
    client.answer("Atlantis", HTTPFailure(404, "Ciudad no encontrada"))

    assert controller.lookup("Atlantis").result(WAIT) is None

    assert view.errors() == ["Ciudad no encontrada"]
    assert ("hide",) in view.events
    assert ("loading", False) in view.events
    assert not controller.has_rendered


def test_failure_after_render_keeps_previous_result(controller, client, view) -> None:
    client.answer("Paris", (place("Paris, France"), make_snapshot(15.0)))
    client.answer("Atlantis", HTTPFailure(404, "Ciudad no encontrada"))
    controller.lookup("Paris").result(WAIT)

    controller.lookup("Atlantis").result(WAIT)

    assert view.errors() == ["Ciudad no encontrada"]
    assert ("hide",) not in view.events
    assert controller.last_result.display_name == "Paris, France"


def test_blank_and_invalid_queries_are_not_admitted(controller, client, view) -> None:
    assert controller.lookup("   ") is None
    assert controller.lookup(Coordinates(float("inf"), 1.0)) is None

    assert controller.epoch == 0
    assert client.calls == []
    assert view.errors() == ["Coordenadas inválidas"]


def test_coordinates_lookup(controller, client, view) -> None:
    client.answer("-34.6,-58.38", (ResolvedPlace("", -34.6, -58.38), make_snapshot(22.0)))

    entry = controller.lookup(Coordinates(-34.6, -58.38)).result(WAIT)

    assert entry.place.display_name == "(-34.60, -58.38)"
    assert "-34.600,-58.380" in controller.cache


def test_lookup_from_render_callback_is_dropped(controller, client, view) -> None:
    client.answer("Paris", (place("Paris, France"), make_snapshot(15.0)))
    client.answer("Lyon", (place("Lyon, France"), make_snapshot(14.0)))
    nested = []
    view.on_render = lambda: nested.append(controller.lookup("Lyon"))

    controller.lookup("Paris").result(WAIT)

    assert nested == [None]
    assert client.calls == ["Paris"]
    assert not controller.busy


def test_drop_policy_ignores_lookups_while_busy(client, view, clock) -> None:
    client.answer("Madrid", (place("Madrid, España"), make_snapshot(25.0)), gated=True)
    client.answer("Lima", (place("Lima, Perú"), make_snapshot(19.0)))
    config = ClientConfig(busy_policy=DROP)

    with SearchController(client, view, clock=clock, config=config, preferences=Preferences()) as controller:
        first = controller.lookup("Madrid")
        assert client.started["Madrid"].wait(WAIT)
        assert controller.busy
        assert controller.lookup("Lima") is None

        client.release("Madrid")
        assert first.result(WAIT).place.display_name == "Madrid, España"
        assert not controller.busy

        assert controller.lookup("Lima").result(WAIT).place.display_name == "Lima, Perú"
        assert view.renders() == ["Madrid, España", "Lima, Perú"]


def test_drop_policy_releases_guard_after_failure(client, view, clock) -> None:
    client.answer("Atlantis", ServerUnreachable())
    client.answer("Lima", (place("Lima, Perú"), make_snapshot(19.0)))
    config = ClientConfig(busy_policy=DROP)

    with SearchController(client, view, clock=clock, config=config, preferences=Preferences()) as controller:
        controller.lookup("Atlantis").result(WAIT)

        assert not controller.busy
        assert controller.lookup("Lima").result(WAIT) is not None
        assert view.errors() == ["No se pudo conectar con el servidor."]


def test_refresh_units_rerenders_from_cache(controller, client, view) -> None:
    client.answer("Paris", (place("Paris, France"), make_snapshot(15.0)))
    controller.lookup("Paris").result(WAIT)

    controller.refresh_units(FAHRENHEIT)

    assert controller.preferences.unit == FAHRENHEIT
    assert view.renders() == ["Paris, France", "Paris, France"]
    assert client.calls == ["Paris"]


def test_toggle_current_favorite(controller, client, view) -> None:
    assert controller.toggle_current_favorite() is None

    client.answer("Paris", (place("Paris, France"), make_snapshot(15.0)))
    controller.lookup("Paris").result(WAIT)

    assert controller.toggle_current_favorite() == {"added": True, "row": {"city": "Paris, France"}}
    assert client.toggles == [("Paris, France", 1.0, 2.0)]


def test_start_with_geolocation(controller, client, view) -> None:
    client.answer("-31.42,-64.18", (place("Córdoba, Argentina"), make_snapshot(24.0)))

    future = controller.start(locator=lambda: (-31.42, -64.18))

    assert future.result(WAIT).place.display_name == "Córdoba, Argentina"
    assert controller.preferences.geo_consent == "granted"


def test_start_falls_back_to_history_when_location_denied(controller, client, view) -> None:
    controller.preferences.add_to_history("Rosario, Argentina")
    client.answer("Rosario, Argentina", (place("Rosario, Argentina"), make_snapshot(20.0)))

    def denied():
        raise PermissionError("denied")

    future = controller.start(locator=denied)

    assert controller.preferences.geo_consent == "denied"
    assert future.result(WAIT).place.display_name == "Rosario, Argentina"

    asked = []
    controller.start(locator=lambda: asked.append(True) or (0.0, 0.0))
    assert asked == []


def test_start_without_history_does_nothing(controller, client) -> None:
    assert controller.start() is None
    assert client.calls == []


def test_closed_controller_refuses_lookups(client, view) -> None:
    controller = SearchController(client, view, preferences=Preferences())
    controller.close()

    with pytest.raises(RuntimeError):
        controller.lookup("Lima")


def test_failure_after_close_is_not_reported(view) -> None:
    client = ScriptedClient(honor_cancel=False)
    client.answer("Lima", ServerUnreachable(), gated=True)
    controller = SearchController(client, view, preferences=Preferences())

    pending = controller.lookup("Lima")
    assert client.started["Lima"].wait(WAIT)
    controller.close()
    client.release("Lima")

    assert pending.result(WAIT) is None
    assert controller.epoch == 2
    assert view.errors() == []
    assert ("hide",) not in view.events


def test_superseded_requests_leave_workers_for_the_newest(view, clock) -> None:
    client = ScriptedClient(honor_cancel=False)
    client.answer("Madrid", (place("Madrid, España"), make_snapshot(25.0)), gated=True)
    client.answer("Quito", (place("Quito, Ecuador"), make_snapshot(14.0)), gated=True)
    client.answer("Lima", (place("Lima, Perú"), make_snapshot(19.0)))

    with SearchController(client, view, clock=clock, config=ClientConfig(workers=3), preferences=Preferences()) as ctrl:
        ctrl.lookup("Madrid")
        assert client.started["Madrid"].wait(WAIT)
        ctrl.lookup("Quito")
        assert client.started["Quito"].wait(WAIT)

        assert ctrl.lookup("Lima").result(WAIT).place.display_name == "Lima, Perú"

        client.release("Madrid")
        client.release("Quito")
    assert view.renders() == ["Lima, Perú"]


def test_worker_count_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ClientConfig(workers=0)
