"""Thread-safe cancellation token checked between hydration pages."""

from __future__ import annotations

import threading

__all__ = ["CancellationEvent", "OperationCancelledError", "raise_if_cancelled"]


class OperationCancelledError(RuntimeError):
    """Raised when a hydration run is aborted via cancellation."""


class CancellationEvent:
    """Small wrapper around :class:`threading.Event` shared by caller and ingestor."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        """Signal cancellation."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError()


def raise_if_cancelled(cancellation: CancellationEvent | None) -> None:
    """Raise when *cancellation* has been signalled; ``None`` never cancels."""
    if cancellation is not None:
        cancellation.raise_if_cancelled()
