# mtgcollection/events.py
import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

IMPORT_PROGRESS = 'import-progress'

Handler = Callable[[Any], None]


def progress_payload(current: int, total: int, message: str) -> Dict[str, Any]:
    return {'current': int(current), 'total': int(total), 'message': message}


class EventBus:
    """In-process publish/subscribe keyed by event name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: Dict[str, List[Handler]] = {}

    def listen(self, event: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

        def unlisten() -> None:
            with self._lock:
                handlers = self._handlers.get(event, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unlisten

    def emit(self, event: str, payload: Any) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                # A broken listener must not abort the operation that emits
                logger.exception("Handler for %s failed", event)
