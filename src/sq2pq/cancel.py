"""Cooperative cancellation shared by every in-flight export task."""

import logging
import threading
from collections.abc import Callable
from typing import Optional

from .domain.enums import ExportState
from .types import ExportCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Run-wide cancellation signal.

    Tasks poll it at their blocking points. Blocking resources (database
    connections) register an interrupt callback that fires when the token is
    cancelled, so a long query aborts instead of running to completion.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the run and interrupt every registered resource."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())

        logger.warning(f"Cancellation requested, interrupting {len(callbacks)} in-flight operations")
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.debug(f"Interrupt callback failed: {e}")

    def register(self, callback: Callable[[], None]) -> int:
        """
        Register an interrupt callback.

        The callback runs immediately when the token is already cancelled.

        Returns:
            Handle for unregister()
        """
        with self._lock:
            if not self._event.is_set():
                handle = self._next_id
                self._next_id += 1
                self._callbacks[handle] = callback
                return handle
        callback()
        return -1

    def unregister(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)

    def raise_if_cancelled(self, table: Optional[str] = None, stage: Optional[ExportState] = None) -> None:
        if self._event.is_set():
            raise ExportCancelled("export cancelled", table, stage)
