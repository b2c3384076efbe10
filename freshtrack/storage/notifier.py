"""Change notification channel for ledger subscribers."""

import threading
from typing import Callable, List

from ..utils.logger import get_ledger_logger

Listener = Callable[[], None]


class ChangeNotifier:
    """Broadcasts a payload-free "data changed" signal.

    Each ledger owns its own notifier, so independent instances never share
    subscribers. A failing subscriber is logged and skipped; it never aborts
    the mutation that triggered the broadcast.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self.logger = get_ledger_logger()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners = [cb for cb in self._listeners if cb is not listener]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener()
            except Exception as e:
                self.logger.error(f"Change listener {listener!r} failed: {str(e)}", exc_info=True)
