"""Cooperative cancellation for long-running synchronous operations."""

from __future__ import annotations

import threading

from hubresolve.core.exceptions import OperationCancelledError


class CancellationToken:
    """Thread-safe flag checked at every I/O boundary."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")
