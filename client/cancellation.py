from __future__ import annotations

import threading

from client.errors import Cancelled


class CancellationToken:
    """Cooperative cancellation flag shared between the controller and the network layer.

    The controller owns creation and cancellation; the network layer only
    checks it at its suspension points (before sending, after receiving).
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()


__all__ = ["CancellationToken"]
