"""Failure kinds a lookup can end with, each carrying its user-facing message."""
from __future__ import annotations

from typing import Optional


class SearchError(RuntimeError):
    """Base error; ``message`` is what the status line shows."""

    default_message = "Ocurrió un error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidQuery(SearchError):
    default_message = "Ubicación inválida"


class RequestTimeout(SearchError):
    default_message = "El servidor tardó demasiado en responder."


class HTTPFailure(SearchError):
    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message or f"Error {status_code}")


class Offline(SearchError):
    default_message = "Estás sin conexión. Verificá tu internet."


class ServerUnreachable(SearchError):
    default_message = "No se pudo conectar con el servidor."


class Cancelled(SearchError):
    """The lookup was superseded by a newer one; never shown to the user."""

    default_message = "cancelled"


__all__ = [
    "Cancelled",
    "HTTPFailure",
    "InvalidQuery",
    "Offline",
    "RequestTimeout",
    "SearchError",
    "ServerUnreachable",
]
