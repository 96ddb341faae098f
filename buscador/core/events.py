import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

FILES_LOADED = "files_loaded"
FILE_REMOVED = "file_removed"
SEARCH_COMPLETED = "search_completed"
HISTORY_CLEARED = "history_cleared"

Callback = Callable[[Any], None]


class EventBus:
    """Explicit subscribe/emit channel between the session and its consumers."""

    def __init__(self):
        self._handlers: Dict[str, List[Callback]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, callback: Callback) -> None:
        with self._lock:
            self._handlers.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callback) -> bool:
        with self._lock:
            handlers = self._handlers.get(event) or []
            if callback in handlers:
                handlers.remove(callback)
                return True
            return False

    def emit(self, event: str, payload: Any = None) -> int:
        """Run callbacks in registration order. Returns how many succeeded."""
        with self._lock:
            handlers = list(self._handlers.get(event) or [])
        delivered = 0
        for cb in handlers:
            try:
                cb(payload)
                delivered += 1
            except Exception:
                logger.exception("Event handler failed for %s", event)
        return delivered

    def handler_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event) or [])
