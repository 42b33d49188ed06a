"""Search controller: owns the lifecycle of user triggered weather lookups.

Every admitted lookup takes a new epoch. A result (or failure) is applied to
the view only while its epoch is still the current one, and the check plus
the view update happen under the controller lock, so once a newer lookup has
been admitted an older one can no longer touch the view. Cancellation of the
superseded network call is best effort; the epoch check is what guarantees
ordering.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from client.api import WeatherAPIClient
from client.cache import CacheEntry, LookupCache
from client.cancellation import CancellationToken
from client.config import DROP, ClientConfig
from client.errors import Cancelled, InvalidQuery, SearchError
from client.preferences import Preferences
from client.view import ERROR, INFO, View
from core.entities import Coordinates, ResolvedPlace, WeatherSnapshot


logger = logging.getLogger(__name__)

PlaceQuery = Union[str, Coordinates]
Locator = Callable[[], Tuple[float, float]]


def normalize_query(query: PlaceQuery) -> str:
    """Cache key for a query; empty for blank text."""
    if isinstance(query, Coordinates):
        if not query.is_finite():
            raise InvalidQuery("Coordenadas inválidas")
        return query.cache_key()
    if isinstance(query, str):
        return query.strip().lower()
    raise TypeError(f"Unsupported query type: {type(query).__name__}")


class SearchController:
    def __init__(
        self,
        client: WeatherAPIClient,
        view: View,
        *,
        cache: Optional[LookupCache] = None,
        preferences: Optional[Preferences] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
        config: Optional[ClientConfig] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._client = client
        self._view = view
        self._cache = cache or LookupCache()
        self._preferences = preferences or Preferences(history_size=self.config.history_size)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="weather-lookup"
        )
        self._clock = clock
        self._lock = threading.RLock()

        self._epoch = 0
        self._busy = False
        self._token: Optional[CancellationToken] = None
        self._pending: Optional[Future] = None
        self._last_key: Optional[str] = None
        self._last_render_at: Optional[float] = None
        self._last_result: Optional[ResolvedPlace] = None
        self._has_rendered = False
        self._closed = False

    # Introspection --------------------------------------------------------
    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def has_rendered(self) -> bool:
        return self._has_rendered

    @property
    def last_result(self) -> Optional[ResolvedPlace]:
        return self._last_result

    @property
    def cache(self) -> LookupCache:
        return self._cache

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    # Lookups ----------------------------------------------------------------
    def lookup(self, query: PlaceQuery) -> Optional[Future]:
        """Start a lookup; returns its future, or ``None`` when it was not admitted.

        Blank text is a no-op. A repeat of the last rendered key inside the
        debounce window is dropped, and so is a call made while the controller
        is busy (see ``ClientConfig.busy_policy``).
        """
        try:
            key = normalize_query(query)
        except InvalidQuery as exc:
            self._view.set_status(exc.message, ERROR)
            return None
        if not key:
            return None

        with self._lock:
            if self._closed:
                raise RuntimeError("SearchController is closed")
            if self._within_debounce(key):
                logger.debug("Dropping repeated lookup %r inside the debounce window", key)
                return None
            if self._busy:
                logger.debug("Dropping lookup %r while another one is being processed", key)
                return None

            self._busy = True
            handed_off = False
            try:
                self._epoch += 1
                epoch = self._epoch
                self._cancel_outstanding()

                entry = self._cache.get(key)
                if entry is not None:
                    logger.debug("Cache hit for %r (epoch %s)", key, epoch)
                    future: Future = Future()
                    future.set_result(self._settle_success(epoch, key, entry.place, entry.snapshot))
                    return future

                token = CancellationToken()
                self._token = token
                self._view.set_loading(True)
                future = self._executor.submit(self._fetch, epoch, key, query, token)
                self._pending = future
                handed_off = True
                logger.debug("Lookup %r issued (epoch %s)", key, epoch)
                return future
            finally:
                # Under the drop policy the guard stays up until the network call settles.
                if not (handed_off and self.config.busy_policy == DROP):
                    self._busy = False

    def _within_debounce(self, key: str) -> bool:
        if key != self._last_key or self._last_render_at is None:
            return False
        return self._clock() - self._last_render_at < self.config.debounce_window

    def _cancel_outstanding(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _request(self, query: PlaceQuery, token: CancellationToken) -> Tuple[ResolvedPlace, WeatherSnapshot]:
        if isinstance(query, Coordinates):
            return self._client.weather_by_coords(query.lat, query.lon, token)
        return self._client.weather_by_city(query.strip(), token)

    def _fetch(self, epoch: int, key: str, query: PlaceQuery, token: CancellationToken) -> Optional[CacheEntry]:
        try:
            place, snapshot = self._request(query, token)
        except Cancelled:
            logger.debug("Lookup %r cancelled (epoch %s)", key, epoch)
            return None
        except SearchError as exc:
            self._settle_failure(epoch, key, exc)
            return None
        except Exception:
            logger.exception("Unexpected failure while looking up %r", key)
            self._settle_failure(epoch, key, SearchError())
            return None
        else:
            return self._settle_success(epoch, key, place, snapshot)
        finally:
            if self.config.busy_policy == DROP:
                with self._lock:
                    self._busy = False

    @contextmanager
    def _processing(self) -> Iterator[None]:
        previous = self._busy
        self._busy = True
        try:
            yield
        finally:
            self._busy = previous

    def _settle_success(
        self, epoch: int, key: str, place: ResolvedPlace, snapshot: WeatherSnapshot
    ) -> Optional[CacheEntry]:
        with self._lock, self._processing():
            if epoch != self._epoch:
                logger.debug("Discarding stale result for %r (epoch %s, current %s)", key, epoch, self._epoch)
                return None
            entry = self._cache.add(key, place, snapshot)
            self._token = None
            self._pending = None
            self._last_key = key
            self._last_render_at = self._clock()
            self._last_result = entry.place
            self._has_rendered = True
            history = self._preferences.add_to_history(entry.place.display_name)

            self._view.set_loading(False)
            self._view.render(entry.place.display_name, entry.snapshot)
            self._view.set_status("", INFO)
            self._view.show_history(history)
            return entry

    def _settle_failure(self, epoch: int, key: str, error: SearchError) -> None:
        with self._lock, self._processing():
            if epoch != self._epoch:
                logger.debug("Ignoring failure of stale lookup %r: %s", key, error.message)
                return
            logger.info("Lookup %r failed: %s", key, error.message)
            self._token = None
            self._pending = None
            self._view.set_loading(False)
            self._view.set_status(error.message, ERROR)
            if not self._has_rendered:
                self._view.hide_results()

    # Everything around the lookup ----------------------------------------------
    def refresh_units(self, unit: str) -> None:
        """Switch the temperature unit and re-render the last result from cache."""
        self._preferences.unit = unit
        with self._lock:
            if self._last_key is None:
                return
            entry = self._cache.get(self._last_key)
            if entry is not None:
                self._view.render(entry.place.display_name, entry.snapshot)

    def toggle_current_favorite(self) -> Optional[Dict[str, Any]]:
        place = self._last_result
        if place is None:
            return None
        try:
            result = self._client.toggle_favorite(place.display_name, place.lat, place.lon)
        except SearchError:
            logger.warning("Favorite toggle failed for %r", place.display_name, exc_info=True)
            self._view.set_status("No se pudo actualizar favoritos", ERROR)
            return None
        message = "Quitado de favoritos" if result.get("removed") else "Agregado a favoritos"
        self._view.set_status(f"{message}: {place.display_name}", INFO)
        return result

    def start(self, locator: Optional[Locator] = None) -> Optional[Future]:
        """Initial lookup: geolocation when allowed, else the most recent history entry."""
        if locator is not None and self._preferences.geo_consent != "denied":
            self._view.set_status("Obteniendo tu ubicación…", INFO)
            try:
                lat, lon = locator()
            except Exception as exc:  # noqa: BLE001
                logger.info("Geolocation unavailable: %s", exc)
                self._preferences.geo_consent = "denied"
                self._view.set_status(
                    "No se pudo usar tu ubicación (permiso denegado o tiempo agotado).", ERROR
                )
                if not self._has_rendered:
                    self._view.hide_results()
            else:
                self._preferences.geo_consent = "granted"
                return self.lookup(Coordinates(lat, lon))

        history = self._preferences.history()
        if history:
            return self.lookup(history[0])
        return None

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._epoch += 1
            self._cancel_outstanding()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "SearchController":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["PlaceQuery", "SearchController", "normalize_query"]
