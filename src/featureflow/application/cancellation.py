"""Cooperative cancellation honoured only at the dispatcher's suspension point."""

from __future__ import annotations

import threading


class CancellationToken:
    """
    Thread-safe abort flag.

    A user abort (e.g. Ctrl-C in the CLI) sets the flag from any thread; the
    Dispatcher checks it immediately before and after awaiting an executor,
    never in the middle of applying an update.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled by user") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason
