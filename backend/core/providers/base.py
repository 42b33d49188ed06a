"""Shared HTTP plumbing for upstream geocoding and forecast providers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests import Response


logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Base provider error."""


class ProviderTimeout(ProviderError):
    """Raised when an upstream call exceeds its deadline."""


class QuotaExceeded(ProviderError):
    """Raised when a provider reports a quota/usage limit issue."""


@dataclass
class RequestConfig:
    timeout: float = 12.0
    user_agent: Optional[str] = None


class HTTPProvider:
    """Base class that bounds every upstream call by a fixed timeout."""

    name = "http"
    base_url = ""
    user_agent: Optional[str] = None

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.base_url = base_url or self.base_url
        self.request_config = request_config or RequestConfig()
        self.session = session or requests.Session()
        self._log = logging.getLogger(self.__class__.__name__)

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            self._log.warning("Quota exceeded: %s", response.text[:200])
            raise QuotaExceeded("quota exceeded")
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text[:200])
            raise ProviderError(f"HTTP {response.status_code}")
        return response

    def _request(self, method: str, url: str, **kwargs) -> Response:
        headers = dict(kwargs.pop("headers", None) or {})
        user_agent = self.request_config.user_agent or self.user_agent
        if user_agent:
            headers.setdefault("User-Agent", user_agent)
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request to %s timed out", self.name)
            raise ProviderTimeout("timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request to %s failed: %s", self.name, exc)
            raise ProviderError("request failed") from exc
        return self._handle_response(response)

    def _get_json(self, url: str, params: dict, expect: Optional[type] = None) -> Any:
        """Fetch and decode a JSON body; ``expect`` is the required top-level type."""
        response = self._request("GET", url, params=params)
        try:
            data = response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON from %s", self.name)
            raise ProviderError("invalid json") from exc
        if expect is not None and data is not None and not isinstance(data, expect):
            self._log.error("Unexpected %s payload from %s", type(data).__name__, self.name)
            raise ProviderError("unexpected payload")
        return data


__all__ = ["HTTPProvider", "ProviderError", "ProviderTimeout", "QuotaExceeded", "RequestConfig"]
