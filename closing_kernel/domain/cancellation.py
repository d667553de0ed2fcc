"""Cooperative cancellation for long-running close and recalculation runs."""

import threading

from closing_kernel.exceptions import CloseCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    A caller (or another thread) calls ``cancel()``; the running aggregation
    calls ``raise_if_cancelled()`` between accounts and unwinds with
    CloseCancelledError, which rolls back the enclosing transaction.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, period_code: str | None = None) -> None:
        if self._event.is_set():
            raise CloseCancelledError(period_code)
