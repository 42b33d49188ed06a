"""HTTP client for the weather lookup backend."""
from __future__ import annotations

import logging
import socket
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError
from requests import Response

from client.cancellation import CancellationToken
from client.errors import Cancelled, HTTPFailure, Offline, RequestTimeout, ServerUnreachable
from core.entities import ResolvedPlace, WeatherSnapshot


logger = logging.getLogger(__name__)

PROBE_ADDRESS = ("1.1.1.1", 53)


def probe_network(address: Tuple[str, int] = PROBE_ADDRESS, timeout: float = 1.5) -> bool:
    """Tell a dead network apart from a dead server."""
    try:
        with socket.create_connection(address, timeout=timeout):
            return True
    except OSError:
        return False


class WeatherAPIClient:
    """Talks to ``/weather``, ``/weather/coords`` and ``/favorites``.

    Every call is bounded by ``timeout``. Lookups accept a
    :class:`CancellationToken`; a cancelled token raises :class:`Cancelled`
    before the request is sent and again once the response is back, so a
    superseded answer is never returned to the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 25.0,
        is_online: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self._is_online = is_online or probe_network

    # Weather ------------------------------------------------------------
    def weather_by_city(
        self, city: str, token: Optional[CancellationToken] = None
    ) -> Tuple[ResolvedPlace, WeatherSnapshot]:
        data = self._call("GET", "/weather", token=token, params={"city": city})
        return self._parse_weather(data)

    def weather_by_coords(
        self, lat: float, lon: float, token: Optional[CancellationToken] = None
    ) -> Tuple[ResolvedPlace, WeatherSnapshot]:
        data = self._call("GET", "/weather/coords", token=token, params={"lat": lat, "lon": lon})
        if data.get("lat") is None:
            data = dict(data, lat=lat, lon=lon)
        return self._parse_weather(data)

    # Favorites ----------------------------------------------------------
    def list_favorites(self) -> List[Dict[str, Any]]:
        return self._call("GET", "/favorites")

    def toggle_favorite(self, city: str, lat: Optional[float] = None, lon: Optional[float] = None) -> Dict[str, Any]:
        return self._call("POST", "/favorites/toggle", json={"city": city, "lat": lat, "lon": lon})

    # Helpers ------------------------------------------------------------
    def _call(self, method: str, path: str, *, token: Optional[CancellationToken] = None, **kwargs) -> Any:
        if token is not None:
            token.raise_if_cancelled()
        url = f"{self.base_url}{path}"
        logger.debug("%s %s %s", method, url, kwargs.get("params") or "")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            self._raise_if_cancelled(token, url)
            raise RequestTimeout() from exc
        except requests.ConnectionError as exc:
            self._raise_if_cancelled(token, url)
            if not self._is_online():
                raise Offline() from exc
            raise ServerUnreachable() from exc
        if token is not None and token.cancelled:
            response.close()
            self._raise_if_cancelled(token, url)
        return self._decode(response)

    @staticmethod
    def _raise_if_cancelled(token: Optional[CancellationToken], url: str) -> None:
        if token is not None and token.cancelled:
            logger.debug("Discarding outcome of cancelled request %s", url)
            raise Cancelled()

    def _decode(self, response: Response) -> Any:
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            raise HTTPFailure(response.status_code, message)
        if data is None:
            raise HTTPFailure(response.status_code, "Respuesta inválida del servidor.")
        return data

    @staticmethod
    def _parse_weather(data: Dict[str, Any]) -> Tuple[ResolvedPlace, WeatherSnapshot]:
        try:
            snapshot = WeatherSnapshot.from_payload(data)
            place = ResolvedPlace(
                display_name=str(data.get("place") or ""),
                lat=float(data["lat"]),
                lon=float(data["lon"]),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise HTTPFailure(200, "Respuesta inválida del servidor.") from exc
        return place, snapshot


__all__ = ["WeatherAPIClient", "probe_network"]
